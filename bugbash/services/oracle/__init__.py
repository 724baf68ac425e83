"""External snippet generator / fix validator client."""

from .schema import CompletionRequest
from .service import OracleError, OracleService, strip_code_fences

__all__ = ["CompletionRequest", "OracleError", "OracleService", "strip_code_fences"]
