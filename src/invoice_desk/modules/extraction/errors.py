from __future__ import annotations

import enum
from typing import Any


class ErrorKind(str, enum.Enum):
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    VALIDATION_FAILED = "VALIDATION_FAILED"


class ExtractionError(RuntimeError):
    """Base for every failure of the extraction pipeline.

    The kind is assigned where the error is raised and is what callers branch
    on; the message is for humans and logs only.
    """

    kind: ErrorKind = ErrorKind.UPSTREAM_ERROR

    def __init__(self, message: str, *, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind

    @property
    def message(self) -> str:
        return str(self)


class QuotaExceededError(ExtractionError):
    kind = ErrorKind.QUOTA_EXCEEDED


class ConfigurationError(ExtractionError):
    """Credential missing from the environment or rejected by the upstream."""

    kind = ErrorKind.INVALID_CREDENTIAL


class UpstreamUnavailableError(ExtractionError):
    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class ExtractionValidationError(ExtractionError):
    kind = ErrorKind.VALIDATION_FAILED

    def __init__(self, message: str, *, violations: list[dict[str, Any]]) -> None:
        super().__init__(message)
        self.violations = violations


class ExtractionFailedError(ExtractionError):
    """Wraps any non-quota, non-credential failure with the original message."""

    def __init__(self, message: str, *, cause: ExtractionError | None = None) -> None:
        super().__init__(message, kind=cause.kind if cause is not None else None)
        self.violations: list[dict[str, Any]] = list(getattr(cause, "violations", []) or [])


class UnsupportedBackendError(ExtractionError):
    pass
