"""Editing focus, live code mirroring and cursor relay."""

from .schema import CodeBuffer, CodeUpdateIn, CursorMark, CursorPositionIn, EditingIn, EditorRef, PointerIn
from .service import PresenceRelay

__all__ = [
    "CodeBuffer",
    "CodeUpdateIn",
    "CursorMark",
    "CursorPositionIn",
    "EditingIn",
    "EditorRef",
    "PointerIn",
    "PresenceRelay",
]
