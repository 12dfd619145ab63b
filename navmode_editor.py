"""Management of navigation modes (named routing profiles)."""

from graph_editor import EditorError


class NavModeEditor:
    def __init__(self, api):
        self.api = api
        self.nav_modes = []

    def refresh(self):
        resp = self.api.get_all_nav_modes() or {}
        self.nav_modes = resp.get("NavModes") or []
        return self.nav_modes

    def _names(self):
        return {str(m.get("name", "")).strip() for m in self.nav_modes}

    def add(self, name, from_through=False):
        trimmed = (name or "").rstrip()
        if not trimmed:
            raise EditorError("Name cannot be empty.")
        if trimmed in self._names():
            raise EditorError("Can't have duplicate names!")
        if not self.api.add_nav_mode(trimmed, bool(from_through)):
            raise EditorError("Failed to add NavMode.")
        return self.refresh()

    def edit(self, nav_mode_id, name):
        trimmed = (name or "").rstrip()
        if not trimmed:
            raise EditorError("Name cannot be empty.")
        existing = next((m for m in self.nav_modes if str(m.get("id")) == str(nav_mode_id)), None)
        if existing is None:
            raise EditorError("Unknown NavMode.")
        if trimmed != str(existing.get("name", "")).strip() and trimmed in self._names():
            raise EditorError("Can't have duplicate names!")
        if not self.api.edit_nav_mode(str(nav_mode_id), trimmed, existing.get("fromThrough")):
            raise EditorError("Failed to update NavMode.")
        return self.refresh()

    def delete(self, nav_mode_id):
        if not self.api.delete_nav_mode(str(nav_mode_id)):
            raise EditorError("Failed to delete NavMode.")
        return self.refresh()
