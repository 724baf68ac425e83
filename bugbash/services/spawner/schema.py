from __future__ import annotations

from pydantic import BaseModel, model_validator


class SpawnPolicy(BaseModel):
    min_interval_s: int = 10
    max_interval_s: int = 20
    max_active_bugs: int = 2
    max_visible_bugs: int = 2
    reveal_delay_s: float = 3.0
    bug_timeout_s: float = 60.0

    @model_validator(mode="after")
    def _check_bounds(self) -> "SpawnPolicy":
        if self.min_interval_s > self.max_interval_s:
            raise ValueError("min_interval_s must not exceed max_interval_s")
        if self.max_active_bugs < 1 or self.max_visible_bugs < 1:
            raise ValueError("bug caps must be at least 1")
        return self
