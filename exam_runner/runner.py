import logging

from assessments import navigation
from assessments.parts import part_progress
from .autosave import AutosaveController
from .client import AttemptAPIError
from .timer import CountdownTimer

logger = logging.getLogger(__name__)


class NavigationError(Exception):
    """The navigation mode does not allow opening that section."""


class SectionLockedError(Exception):
    """Edits to a locked or read-only section."""


class AttemptRunner:
    """
    Drives one attempt the way the browser client does.

    LINEAR and IELTS run one timer per section and submit that section when
    it runs out; FREE runs one exam-wide timer and submits the attempt.
    """

    def __init__(self, client, attempt_id, scheduler, confirm_submit=None):
        self.client = client
        self.attempt_id = attempt_id
        self.scheduler = scheduler
        self.confirm_submit = confirm_submit or (lambda: True)

        self.payload = None
        self.mode = navigation.FREE
        self.sections = []
        self.answers = {}
        self.locked = set()
        self.current_section_id = None
        self.submitted = False
        self.section_timers = {}
        self.exam_timer = None
        self.autosave = None

    # --- Loading ---

    def bootstrap(self):
        self.payload = self.client.bootstrap(self.attempt_id)
        self.mode = self.payload['navigationMode']
        self.sections = self.payload['sections']
        saved = self.payload.get('savedAnswers') or {}
        self.answers = {s['id']: dict(saved.get(str(s['id'])) or {}) for s in self.sections}
        self.locked = {s['id'] for s in self.sections if s['locked']}
        self.submitted = self.payload['status'] in ('SUBMITTED', 'GRADED')
        self.autosave = AutosaveController(
            self.scheduler, self._save_section, self.payload.get('autosaveDebounceSeconds', 8)
        )
        if self.submitted:
            return self.payload

        if self.mode == navigation.FREE:
            open_sections = [s for s in self.sections if s['id'] not in self.locked]
            remaining = open_sections[0]['timeRemaining'] if open_sections else 0
            self.exam_timer = CountdownTimer(self.scheduler, remaining, on_expire=self._on_exam_expired)
            self.exam_timer.start()

        first_open = next((s['id'] for s in self.sections if s['id'] not in self.locked), None)
        in_progress = next(
            (s['id'] for s in self.sections if s['status'] == 'IN_PROGRESS' and s['id'] not in self.locked), None
        )
        target = in_progress or first_open
        if target is not None:
            self.select_section(target)
        return self.payload

    def section(self, section_id):
        for section in self.sections:
            if section['id'] == section_id:
                return section
        raise KeyError(section_id)

    def policy(self):
        states = [{"id": s['id'], "type": s['type'], "locked": s['id'] in self.locked} for s in self.sections]
        return navigation.NavigationPolicy(self.mode, states, self.current_section_id)

    # --- Navigation ---

    def select_section(self, section_id):
        policy = self.policy()
        if not policy.is_selectable(section_id):
            raise NavigationError(f"Section {section_id} is not available")

        if section_id in self.locked:
            # Read-only review of a finished module
            self.current_section_id = section_id
            return

        if self.current_section_id is not None and self.current_section_id != section_id:
            self._flush(self.current_section_id)

        closing = policy.sections_locked_by_entering(section_id)
        response = self.client.start_section(self.attempt_id, section_id)
        for closed in closing:
            self._mark_locked(closed)
        self.current_section_id = section_id

        if self.mode != navigation.FREE and section_id not in self.section_timers:
            timer = CountdownTimer(
                self.scheduler, response.get('timeRemaining', self.section(section_id)['durationMin'] * 60),
                on_expire=lambda: self._on_section_expired(section_id),
            )
            self.section_timers[section_id] = timer
            timer.start()

    def next_section_id(self):
        """The section a Next button would open, if any."""
        policy = self.policy()
        index = policy.index_of(self.current_section_id)
        if index is None:
            return None
        for section in self.sections[index + 1:]:
            if section['id'] not in self.locked and policy.is_selectable(section['id']):
                return section['id']
        return None

    # --- Answers ---

    def set_answer(self, question_id, value):
        section_id = self.current_section_id
        if section_id is None or self.submitted:
            raise SectionLockedError("No open section")
        if section_id in self.locked or not self.policy().is_editable(section_id):
            raise SectionLockedError(f"Section {section_id} is locked")
        self.answers[section_id][str(question_id)] = value
        self.autosave.note_edit(section_id, self.answers[section_id])

    def progress(self, section_id=None):
        section = self.section(section_id or self.current_section_id)
        return part_progress(section['parts'], self.answers[section['id']])

    def time_remaining(self, section_id=None):
        if self.exam_timer is not None:
            return self.exam_timer.time_remaining
        timer = self.section_timers.get(section_id or self.current_section_id)
        return timer.time_remaining if timer else None

    def save(self):
        """Manual save of the current section; errors reach the caller."""
        section_id = self.current_section_id
        return self.autosave.save_now(section_id, self.answers[section_id])

    def _save_section(self, section_id, answers):
        self.client.save(self.attempt_id, section_id, answers)

    def _flush(self, section_id):
        if self.autosave.has_pending(section_id):
            self.autosave.save_now(section_id)

    # --- Submitting ---

    def submit_section(self, section_id=None):
        section_id = section_id or self.current_section_id
        if section_id in self.locked:
            raise SectionLockedError(f"Section {section_id} is already submitted")
        self.autosave.cancel(section_id)
        try:
            self.client.end_section(self.attempt_id, section_id, self.answers[section_id])
        except AttemptAPIError as exc:
            # 409: the server has already locked it. Anything else leaves the
            # clock running so expiry still submits.
            if exc.status == 409:
                self._mark_locked(section_id)
            raise
        self._mark_locked(section_id)

    def submit_attempt(self, confirmed=False):
        if self.submitted:
            raise SectionLockedError("Attempt is already submitted")
        if not confirmed and not self.confirm_submit():
            return None

        section_id = self.current_section_id
        if section_id is not None and section_id not in self.locked and self.policy().is_editable(section_id):
            self.autosave.save_now(section_id, self.answers[section_id])

        result = self.client.submit(self.attempt_id)
        self._close()
        return result

    def _mark_locked(self, section_id):
        self.locked.add(section_id)
        self.autosave.cancel(section_id)
        timer = self.section_timers.get(section_id)
        if timer:
            timer.stop()

    def _close(self):
        self.submitted = True
        self.autosave.cancel_all()
        for section in self.sections:
            self._mark_locked(section['id'])
        if self.exam_timer:
            self.exam_timer.stop()

    # --- Expiry ---

    def _on_section_expired(self, section_id):
        logger.info("Time is up for section %s of attempt %s; submitting", section_id, self.attempt_id)
        try:
            self.submit_section(section_id)
        except AttemptAPIError as exc:
            logger.error("Automatic submit of section %s failed: %s", section_id, exc)
        self._mark_locked(section_id)

    def _on_exam_expired(self):
        logger.info("Time is up for attempt %s; submitting", self.attempt_id)
        try:
            self.submit_attempt(confirmed=True)
        except AttemptAPIError as exc:
            logger.error("Automatic submit of attempt %s failed: %s", self.attempt_id, exc)
            for section in self.sections:
                self._mark_locked(section['id'])
