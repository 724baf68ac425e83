from __future__ import annotations

import ast
import json
import logging
import re
import textwrap
from typing import Any, Dict, Optional

import httpx

from .schema import CompletionRequest

_ANTHROPIC_VERSION = "2023-06-01"
_FENCE_RE = re.compile(r"^```[\w+-]*\s*\n(?P<body>.*?)\n?```\s*$", re.DOTALL)

GENERATION_PROMPT = textwrap.dedent(
    """
    You are a Python coding challenge generator for a game. Generate a short Python code snippet
    (10-15 lines) that contains exactly ONE bug. The bug should be solvable in under 60 seconds
    by a competent programmer.

    Rules:
    - The bug should be VERY simple.
    - The code should be a small self-contained function or class.
    - Include a clear docstring explaining what the code SHOULD do.
    - The bug should be subtle but logical (off-by-one, wrong operator, missing edge case, wrong variable, etc.).
    - Do NOT reveal what the bug is.
    - Output ONLY the Python code, no explanations before or after.
    - Do NOT include test cases or print statements outside the function.
    """
).strip()

VALIDATION_PROMPT = textwrap.dedent(
    """
    You are a Python code validator for a bug-fixing game. You will receive:
    1. The ORIGINAL buggy code
    2. The PLAYER'S attempted fix

    Determine if the player has correctly fixed the bug. The fix must:
    - Solve the bug in the original code
    - Not introduce new bugs
    - Keep the same function signature and general structure

    Respond with ONLY a JSON object like:
    {"fixed": true, "explanation": "Brief explanation of what was fixed"}
    or
    {"fixed": false, "explanation": "Brief explanation of why the fix is incorrect"}

    Do NOT include any text before or after the JSON.
    """
).strip()

_MOCK_SNIPPETS = {
    "binary search": '''
def binary_search(items, target):
    """Return the index of target in the sorted list items, or -1."""
    lo, hi = 0, len(items)
    while lo <= hi:
        mid = (lo + hi) // 2
        if items[mid] == target:
            return mid
        if items[mid] < target:
            lo = mid + 1
        else:
            hi = mid - 1
    return -1
''',
    "second largest": '''
def second_largest(numbers):
    """Return the second largest distinct value in numbers, or None."""
    first = second = None
    for n in numbers:
        if first is None or n > first:
            first, second = n, first
        elif n != first and (second is None or n < second):
            second = n
    return second
''',
    "palindrome": '''
def is_palindrome(text):
    """Return True if text reads the same backwards, ignoring spaces and case."""
    cleaned = text.replace(" ", "")
    return cleaned == cleaned[::-1]
''',
    "fibonacci": '''
def fib(n, memo=None):
    """Return the nth Fibonacci number (fib(0) == 0, fib(1) == 1)."""
    if memo is None:
        memo = {}
    if n in memo:
        return memo[n]
    if n <= 2:
        return n
    memo[n] = fib(n - 1, memo) + fib(n - 2, memo)
    return memo[n]
''',
}

_MOCK_FALLBACK = '''
def majority_element(values):
    """Return the value that appears more than len(values) // 2 times."""
    counts = {}
    for v in values:
        counts[v] = counts.get(v, 0) + 1
        if counts[v] >= len(values) // 2:
            return v
    return None
'''


class OracleError(RuntimeError):
    """The oracle answered, but not with something usable."""


def strip_code_fences(text: str) -> str:
    stripped = (text or "").strip()
    match = _FENCE_RE.match(stripped)
    if match:
        return match.group("body").strip()
    return stripped


def _normalize_source(source: str) -> str:
    return "\n".join(line.rstrip() for line in source.strip().splitlines() if line.strip())


class OracleService:
    """Client for the external snippet generator / fix validator, with a mock mode."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        model_id: str,
        *,
        use_mock: bool = False,
        max_tokens: int = 2048,
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model_id = model_id
        self.use_mock = use_mock
        self.max_tokens = max_tokens
        self.timeout_s = timeout_s
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._logger = logging.getLogger("bugbash.oracle")

    async def start(self) -> None:
        if self.use_mock or self._client is not None:
            return
        timeout = httpx.Timeout(self.timeout_s, connect=10.0)
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=self._transport)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def generate_snippet(self, task: str) -> str:
        """Ask for a short snippet with one hidden defect. Returns bare code."""

        if self.use_mock:
            return self._mock_snippet(task)
        text = await self.complete(
            CompletionRequest(
                system=GENERATION_PROMPT,
                user=f"Generate a buggy Python code snippet for this task: {task}",
            )
        )
        code = strip_code_fences(text)
        if not code:
            raise OracleError("oracle returned an empty snippet")
        return code

    async def request_validation(self, original: str, candidate: str) -> str:
        """Return the oracle's raw verdict text; parsing is the caller's job."""

        if self.use_mock:
            return self._mock_verdict(original, candidate)
        user = (
            f"ORIGINAL BUGGY CODE:\n```python\n{original}\n```\n\n"
            f"PLAYER'S FIX:\n```python\n{candidate}\n```"
        )
        return await self.complete(CompletionRequest(system=VALIDATION_PROMPT, user=user))

    async def complete(self, request: CompletionRequest) -> str:
        if not self.api_key:
            raise RuntimeError("ORACLE_API_KEY not configured")
        client = self._client
        if client is None:
            await self.start()
            client = self._client
        assert client is not None
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": _ANTHROPIC_VERSION,
        }
        body = {
            "model": self.model_id,
            "max_tokens": request.max_tokens or self.max_tokens,
            "system": request.system,
            "messages": [{"role": "user", "content": request.user}],
        }
        response = await client.post("/messages", json=body, headers=headers)
        response.raise_for_status()
        return self._extract_text(response.json())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _extract_text(self, data: Dict[str, Any]) -> str:
        content = data.get("content") if isinstance(data, dict) else None
        if isinstance(content, list) and content:
            first = content[0]
            if isinstance(first, dict) and isinstance(first.get("text"), str):
                return first["text"]
        raise OracleError(f"unexpected oracle response: {json.dumps(data)[:200]}")

    def _mock_snippet(self, task: str) -> str:
        lowered = task.lower()
        for needle, snippet in _MOCK_SNIPPETS.items():
            if needle in lowered:
                return snippet.strip()
        return _MOCK_FALLBACK.strip()

    def _mock_verdict(self, original: str, candidate: str) -> str:
        try:
            ast.parse(candidate)
        except SyntaxError as exc:
            return json.dumps({"fixed": False, "explanation": f"The fix does not parse: {exc.msg}."})
        if _normalize_source(candidate) == _normalize_source(original):
            return json.dumps({"fixed": False, "explanation": "The code is unchanged."})
        return json.dumps({"fixed": True, "explanation": "The defect was corrected."})


__all__ = ["OracleError", "OracleService", "strip_code_fences"]
