"""Fix validation and application."""

from .schema import ApplyOutcome, FixResult, FixSubmission, Verdict
from .service import (
    NOT_FOUND_EXPLANATION,
    SERVICE_ERROR_EXPLANATION,
    STALE_EXPLANATION,
    UNPARSABLE_EXPLANATION,
    SubmissionPipeline,
    parse_verdict,
)

__all__ = [
    "ApplyOutcome",
    "FixResult",
    "FixSubmission",
    "NOT_FOUND_EXPLANATION",
    "SERVICE_ERROR_EXPLANATION",
    "STALE_EXPLANATION",
    "UNPARSABLE_EXPLANATION",
    "SubmissionPipeline",
    "Verdict",
    "parse_verdict",
]
