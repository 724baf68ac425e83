from __future__ import annotations

from typing import Any, Dict, List, Optional

from .schema import CodeBuffer, CursorMark, EditorRef


class PresenceRelay:
    """Volatile collaborative-editing state, keyed by bug id.

    Nothing here feeds scoring or history; every method returns the payload
    the room should relay so the transport decisions stay with the room.
    """

    def __init__(self) -> None:
        self._focus: Dict[str, Dict[str, EditorRef]] = {}
        self._buffers: Dict[str, CodeBuffer] = {}
        self._cursors: Dict[str, Dict[str, CursorMark]] = {}

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------
    def set_focus(self, player_id: str, name: Optional[str], bug_id: Optional[str]) -> Dict[str, Any]:
        self._drop_focus(player_id)
        if bug_id:
            self._focus.setdefault(bug_id, {})[player_id] = EditorRef(id=player_id, name=name)
        return {"id": player_id, "name": name, "bugId": bug_id}

    def update_code(self, player_id: str, name: Optional[str], bug_id: str, code: str) -> Dict[str, Any]:
        buffer = CodeBuffer(id=player_id, name=name, bug_id=bug_id, code=code)
        self._buffers[bug_id] = buffer
        return buffer.wire()

    def move_cursor(
        self,
        player_id: str,
        name: Optional[str],
        bug_id: str,
        line: int,
        column: int,
    ) -> Dict[str, Any]:
        mark = CursorMark(id=player_id, name=name, bug_id=bug_id, line=line, column=column)
        self._cursors.setdefault(bug_id, {})[player_id] = mark
        return mark.wire()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def editors(self, bug_id: str) -> List[EditorRef]:
        return list(self._focus.get(bug_id, {}).values())

    def focus_of(self, player_id: str) -> Optional[str]:
        for bug_id, editors in self._focus.items():
            if player_id in editors:
                return bug_id
        return None

    def buffer(self, bug_id: str) -> Optional[CodeBuffer]:
        return self._buffers.get(bug_id)

    def cursors(self, bug_id: str) -> Dict[str, CursorMark]:
        return dict(self._cursors.get(bug_id, {}))

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------
    def forget_bug(self, bug_id: str) -> None:
        self._focus.pop(bug_id, None)
        self._buffers.pop(bug_id, None)
        self._cursors.pop(bug_id, None)

    def forget_player(self, player_id: str) -> Optional[str]:
        """Drop a departed player's focus and cursors; returns the bug they were on."""

        focused = self.focus_of(player_id)
        self._drop_focus(player_id)
        for bug_id in list(self._cursors):
            self._cursors[bug_id].pop(player_id, None)
            if not self._cursors[bug_id]:
                del self._cursors[bug_id]
        return focused

    def reset(self) -> None:
        self._focus.clear()
        self._buffers.clear()
        self._cursors.clear()

    def _drop_focus(self, player_id: str) -> None:
        for bug_id in list(self._focus):
            self._focus[bug_id].pop(player_id, None)
            if not self._focus[bug_id]:
                del self._focus[bug_id]
