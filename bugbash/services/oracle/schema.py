from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class CompletionRequest(BaseModel):
    system: str
    user: str
    max_tokens: Optional[int] = None
