"""Error kinds raised by the task engine and rendered by the command layer."""

from __future__ import annotations

from typing import Any

VALIDATION_ERROR = "VALIDATION_ERROR"
TASK_NOT_FOUND = "TASK_NOT_FOUND"
TASK_ID_AMBIGUOUS = "TASK_ID_AMBIGUOUS"
NOT_INITIALIZED = "NOT_INITIALIZED"
STORE_CORRUPT = "STORE_CORRUPT"
LOCK_TIMEOUT = "LOCK_TIMEOUT"
IO_ERROR = "IO_ERROR"


class TasqueError(RuntimeError):
    """A failed operation with a stable error code.

    ``details`` carries structured context for machine consumers, for
    example the candidate ids of an ambiguous prefix.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        exit_code: int = 1,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.exit_code = exit_code

    def __repr__(self) -> str:
        return f"TasqueError({self.code!r}, {self.message!r})"


def validation_error(message: str, **details: Any) -> TasqueError:
    return TasqueError(VALIDATION_ERROR, message, details or None)
