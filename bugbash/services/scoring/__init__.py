"""End-of-round scoring."""

from .service import PENALTY_PER_BUG, compute_score, summarize_round

__all__ = ["PENALTY_PER_BUG", "compute_score", "summarize_round"]
