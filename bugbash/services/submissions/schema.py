from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

from bugbash.services.bugs.schema import WireModel

ApplyOutcome = Literal["applied", "rejected", "stale"]


class Verdict(BaseModel):
    fixed: bool
    explanation: str


class FixSubmission(WireModel):
    bug_id: str
    code: str


class FixResult(WireModel):
    bug_id: Optional[str]
    fixed: bool
    explanation: str
    submitted_by: Optional[str] = None
