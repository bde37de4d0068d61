"""
Error types raised by the analysis pipeline.

Every error records the stage it came from and how many records it affected,
so callers can decide whether to retry, accept partial results, or abort.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SpotiprofileError(Exception):
    """Base class for all spotiprofile errors."""

    def __init__(self, message: str, stage: Optional[str] = None, affected: int = 0):
        self.stage = stage
        self.affected = affected
        self.message = message
        if stage:
            message = f"[{stage}] {message}"
        super().__init__(message)


class FormatError(SpotiprofileError):
    """The payload as a whole is not an array of listening events."""

    def __init__(self, message: str, stage: str = "normalize", affected: int = 0):
        super().__init__(message, stage=stage, affected=affected)


class EmptyInputError(SpotiprofileError):
    """No events are left to analyze."""

    def __init__(self, message: str = "No events to analyze", stage: str = "metrics", affected: int = 0):
        super().__init__(message, stage=stage, affected=affected)


class ExternalServiceError(SpotiprofileError):
    """A collaborator call failed after exhausting its retries.

    ``partial`` holds whatever results were gathered before the failure.
    """

    def __init__(
        self,
        message: str,
        stage: str = "enrich",
        affected: int = 0,
        partial: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, stage=stage, affected=affected)
        self.partial = dict(partial or {})
        self.cause = cause


class ConfigurationError(SpotiprofileError):
    """Exception for configuration-related errors."""

    def __init__(self, message: str):
        super().__init__(message, stage="config")
