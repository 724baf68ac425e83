from __future__ import annotations

import json
import re
from typing import Any, Optional

import yaml

from bugbash.services.bugs.schema import Bug, RoomState
from bugbash.services.bugs.service import retire
from bugbash.services.oracle.service import OracleService

from .schema import ApplyOutcome, Verdict

NOT_FOUND_EXPLANATION = "Bug not found or already resolved."
UNPARSABLE_EXPLANATION = "Could not parse validation result."
SERVICE_ERROR_EXPLANATION = "Validation service error."
STALE_EXPLANATION = "Bug is no longer active; the fix was not applied."

_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def _load_object(blob: str) -> Any:
    try:
        return json.loads(blob)
    except json.JSONDecodeError:
        pass
    try:
        return yaml.safe_load(blob)
    except yaml.YAMLError:
        return None


def parse_verdict(text: Optional[str]) -> Verdict:
    """Pull ``{"fixed": bool, "explanation": str}`` out of free-form oracle text.

    Anything that does not yield a real boolean ``fixed`` collapses to a
    conservative not-fixed verdict.
    """

    fallback = Verdict(fixed=False, explanation=UNPARSABLE_EXPLANATION)
    match = _OBJECT_RE.search(text or "")
    if not match:
        return fallback
    data = _load_object(match.group(0))
    if not isinstance(data, dict) or not isinstance(data.get("fixed"), bool):
        return fallback
    explanation = data.get("explanation")
    if not isinstance(explanation, str) or not explanation.strip():
        explanation = "Fix accepted." if data["fixed"] else "Fix rejected."
    return Verdict(fixed=data["fixed"], explanation=explanation.strip())


class SubmissionPipeline:
    """Validates proposed fixes and applies accepted ones to room state."""

    def __init__(self, oracle: OracleService) -> None:
        self.oracle = oracle

    def locate(self, state: RoomState, bug_id: Optional[str]) -> Optional[Bug]:
        return state.find_visible_bug(bug_id)

    async def judge(self, original: str, candidate: str) -> Verdict:
        """Oracle failures propagate; malformed answers become a not-fixed verdict."""

        raw = await self.oracle.request_validation(original, candidate)
        return parse_verdict(raw)

    def apply(
        self,
        state: RoomState,
        bug_id: str,
        verdict: Verdict,
        *,
        submitted_by: str,
        candidate: str,
    ) -> ApplyOutcome:
        if state.status != "playing" or state.find_visible_bug(bug_id) is None:
            return "stale"
        if not verdict.fixed:
            return "rejected"
        retire(state, bug_id, "fixed", resolved_by=submitted_by, fixed_code=candidate)
        return "applied"
