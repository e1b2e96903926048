import logging

from .client import AttemptAPIError

logger = logging.getLogger(__name__)


class AutosaveController:
    """
    Debounced per-section saving.

    Every edit restarts the section's idle timer; when it fires the whole
    answer map for that section is saved. ``saving`` holds the sections with a
    save in flight, at most one each. Background failures are logged and
    dropped; ``save_now`` lets them reach the caller.
    """

    def __init__(self, scheduler, save_fn, debounce_seconds=8):
        self.scheduler = scheduler
        self.save_fn = save_fn
        self.debounce_seconds = debounce_seconds
        self.saving = set()
        self.last_error = None
        self._pending = {}

    def note_edit(self, section_id, answers):
        self.cancel(section_id)
        snapshot = dict(answers)
        task = self.scheduler.call_later(self.debounce_seconds, lambda: self._fire(section_id))
        self._pending[section_id] = (task, snapshot)

    def has_pending(self, section_id):
        return section_id in self._pending

    def cancel(self, section_id):
        pending = self._pending.pop(section_id, None)
        if pending:
            pending[0].cancel()

    def cancel_all(self):
        for section_id in list(self._pending):
            self.cancel(section_id)

    def save_now(self, section_id, answers=None):
        """Save immediately, skipping the debounce. Errors propagate."""
        pending = self._pending.get(section_id)
        if answers is None and pending is None:
            return False
        snapshot = dict(answers) if answers is not None else pending[1]
        self.cancel(section_id)
        return self._save(section_id, snapshot, background=False)

    def _fire(self, section_id):
        pending = self._pending.pop(section_id, None)
        if pending:
            self._save(section_id, pending[1], background=True)

    def _save(self, section_id, answers, background):
        if section_id in self.saving:
            # Try again once the in-flight save is done
            task = self.scheduler.call_later(self.debounce_seconds, lambda: self._fire(section_id))
            self._pending[section_id] = (task, answers)
            return False

        self.saving.add(section_id)
        try:
            self.save_fn(section_id, answers)
            self.last_error = None
            return True
        except AttemptAPIError as exc:
            self.last_error = exc
            if not background:
                raise
            logger.warning("Autosave for section %s failed: %s", section_id, exc)
            return False
        finally:
            self.saving.discard(section_id)
