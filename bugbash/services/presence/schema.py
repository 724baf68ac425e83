from __future__ import annotations

from typing import Optional

from pydantic import Field

from bugbash.services.bugs.schema import WireModel


class EditingIn(WireModel):
    bug_id: Optional[str] = None


class CodeUpdateIn(WireModel):
    bug_id: str
    code: str


class CursorPositionIn(WireModel):
    bug_id: str
    line: int = Field(..., ge=0)
    column: int = Field(..., ge=0)


class PointerIn(WireModel):
    x: float
    y: float


class EditorRef(WireModel):
    id: str
    name: Optional[str] = None


class CodeBuffer(WireModel):
    id: str
    name: Optional[str] = None
    bug_id: str
    code: str


class CursorMark(WireModel):
    id: str
    name: Optional[str] = None
    bug_id: str
    line: int
    column: int
