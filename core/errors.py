"""
Error taxonomy for the detection and recommendation pipeline.

Only CameraAccessDenied escapes to callers of the session; the other
conditions are absorbed where they happen and surfaced as messages.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class AssistantError(Exception):
    """Base exception for shopping assistant errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class ModelUnavailable(AssistantError):
    """All model sources failed to load; permanent for the process."""

    def __init__(self, sources: list[str], details: Optional[Dict[str, Any]] = None):
        message = (
            "Failed to load face detection models. "
            "Please check your internet connection."
        )
        super().__init__(
            message=message,
            status_code=503,
            details=details or {"sources": list(sources)},
        )


class CameraAccessDenied(AssistantError):
    """The camera could not be opened (no device or permission denied)."""

    def __init__(self, camera_index: int, reason: str = ""):
        message = "Camera access denied"
        super().__init__(
            message=message,
            status_code=403,
            details={"camera_index": camera_index, "reason": reason},
        )


class DetectionFailed(AssistantError):
    """A single inference call failed; the sampling loop keeps going."""

    def __init__(self, error: Exception):
        message = "Failed to detect expressions. Please ensure your face is clearly visible."
        super().__init__(
            message=message,
            status_code=500,
            details={"error": str(error), "error_type": type(error).__name__},
        )


class CatalogUnavailable(AssistantError):
    """The product catalog query failed."""

    def __init__(self, error: Exception | str):
        message = f"Catalog query failed: {error}"
        super().__init__(
            message=message,
            status_code=502,
            details={
                "error": str(error),
                "error_type": type(error).__name__ if isinstance(error, Exception) else "str",
            },
        )
