"""
Exceptions surfaced to HTTP callers.

Provider-level failures do not appear here: adapters turn them into
``ProviderResult.error_reason`` strings and the fallback chain moves on.
"""
from typing import List, Optional


class GawinError(Exception):
    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        super().__init__(message or self.error)
        if message:
            self.error = message
        self.details = details


class ValidationError(GawinError):
    status_code = 400
    error = "Invalid request"


class MalformedRequestError(ValidationError):
    error = "Invalid request: messages array is required"


class ContentPolicyError(ValidationError):
    error = "Content policy violation"

    def __init__(self, reasons: List[str]):
        self.reasons = list(reasons)
        super().__init__(self.error, details="; ".join(self.reasons))


class FileValidationError(ValidationError):
    error = "Invalid file upload"


class SessionNotFoundError(GawinError):
    status_code = 404
    error = "No active session"


class UnknownActionError(GawinError):
    status_code = 400
    error = "Unknown action"


class BrowserActionError(GawinError):
    status_code = 502
    error = "Browser action failed"
