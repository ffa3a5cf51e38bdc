"""
Dynamic Timeout Exceptions
==========================
Error taxonomy for tiered admission.
"""

from typing import Optional


class DynamicTimeoutError(Exception):
    """Base exception for dynamic timeout errors."""
    pass


class AdmissionRefusedError(DynamicTimeoutError):
    """Raised when every tier is saturated and the call is not executed."""

    def __init__(self, message: str, request_count: int, target: Optional[str] = None):
        self.request_count = request_count
        self.target = target
        super().__init__(message)


class BackendUnavailableError(DynamicTimeoutError):
    """Raised when the shared store or admission backend cannot be reached."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)
