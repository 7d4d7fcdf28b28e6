from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    TEXTBOOK_NOT_FOUND = "TEXTBOOK_NOT_FOUND"
    COLLECTION_NOT_FOUND = "COLLECTION_NOT_FOUND"
    MODULE_NOT_FOUND = "MODULE_NOT_FOUND"
    UPSTREAM_NOT_FOUND = "UPSTREAM_NOT_FOUND"
    UPSTREAM_FETCH_FAILED = "UPSTREAM_FETCH_FAILED"
    URL_NOT_ALLOWED = "URL_NOT_ALLOWED"
    MARKUP_INVALID = "MARKUP_INVALID"
    MODEL_NOT_CONFIGURED = "MODEL_NOT_CONFIGURED"
    MODEL_CALL_FAILED = "MODEL_CALL_FAILED"


class OpenStaxError(Exception):
    """Raised by tool handlers and pipelines for all expected failure conditions.

    Caught by the dispatcher and serialised into a JSON-RPC error response whose
    ``data`` carries the code, suggestion and recoverable flag.
    Never catch this inside business logic; let it propagate so the client
    receives the message naming what was missing.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str = "",
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def error_data(self) -> dict[str, Any]:
        """Machine-readable detail carried in the JSON-RPC ``error.data`` field."""
        return {
            "code": str(self.code),
            "suggestion": self.suggestion,
            "recoverable": self.recoverable,
        }
