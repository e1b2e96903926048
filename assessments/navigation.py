"""
Which sections a student may open and edit.

The rules are shared by the API (authoritative) and ``exam_runner``. They
operate on a list of section states in delivery order:

    [{"id": 1, "type": "LISTENING", "locked": False}, ...]

and the id of the section the student is currently on.

LINEAR  modules unlock one after another; only the first open module is editable.
FREE    every section can be opened; anything not locked is editable.
IELTS   sections are grouped by type; a student may stay in the current
        section or move on to the first section of the next type, which
        locks every earlier type.
"""

LINEAR = "LINEAR"
FREE = "FREE"
IELTS = "IELTS"


class NavigationPolicy:
    def __init__(self, mode, sections, current_id=None):
        self.mode = mode
        self.sections = list(sections)
        self.current_id = current_id

    # --- helpers ---

    def index_of(self, section_id):
        for index, section in enumerate(self.sections):
            if section["id"] == section_id:
                return index
        return None

    @property
    def unlock_pointer(self):
        """Index of the first module that is not locked (LINEAR)."""
        for index, section in enumerate(self.sections):
            if not section["locked"]:
                return index
        return len(self.sections)

    def _current_index(self):
        index = self.index_of(self.current_id) if self.current_id is not None else None
        if index is None:
            index = min(self.unlock_pointer, len(self.sections) - 1)
        return index

    def _next_type_start(self, index):
        current_type = self.sections[index]["type"]
        for later in range(index + 1, len(self.sections)):
            if self.sections[later]["type"] != current_type:
                return later
        return None

    # --- policy ---

    def is_selectable(self, section_id):
        index = self.index_of(section_id)
        if index is None:
            return False
        if self.mode == LINEAR:
            return index <= self.unlock_pointer or self.sections[index]["locked"]
        if self.mode == IELTS:
            if self.sections[index]["locked"]:
                return False
            current = self._current_index()
            if index == current:
                return True
            return index == self._next_type_start(current)
        return True

    def is_editable(self, section_id):
        index = self.index_of(section_id)
        if index is None or self.sections[index]["locked"]:
            return False
        if self.mode == LINEAR:
            return index == self.unlock_pointer
        if self.mode == IELTS:
            return index == self._current_index()
        return True

    def sections_locked_by_entering(self, section_id):
        """IELTS: ids of earlier-type sections that close once ``section_id`` is opened."""
        if self.mode != IELTS:
            return []
        index = self.index_of(section_id)
        if index is None:
            return []
        entered_type = self.sections[index]["type"]
        earlier = []
        for section in self.sections[:index]:
            if section["type"] != entered_type and not section["locked"]:
                earlier.append(section["id"])
        return earlier

    def can_submit_attempt(self):
        """LINEAR needs every module before the last one submitted first."""
        if self.mode != LINEAR:
            return True
        return all(section["locked"] for section in self.sections[:-1])
