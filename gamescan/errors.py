"""Error taxonomy shared by the pipeline and the HTTP layer."""

from typing import Any, Dict, Optional


class ErrorCodes:
    """Stable error codes returned in API error envelopes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    AI_SERVICE_ERROR = "AI_SERVICE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SCAN_NOT_READY = "SCAN_NOT_READY"


class AppError(Exception):
    """
    Base class for all application errors.

    Carries the error code and HTTP status the API layer reports for it.
    """

    code: str = ErrorCodes.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}


class ValidationError(AppError):
    """Malformed input rejected at the boundary."""

    code = ErrorCodes.VALIDATION_ERROR
    status_code = 400


class NotFound(AppError):
    """Unknown scan id (or missing stored file)."""

    code = ErrorCodes.NOT_FOUND
    status_code = 404


class ScanNotReady(AppError):
    """The scan's status or confirmed fields do not allow the operation."""

    code = ErrorCodes.SCAN_NOT_READY
    status_code = 400


class InvalidFileType(AppError):
    code = ErrorCodes.INVALID_FILE_TYPE
    status_code = 400


class FileTooLarge(AppError):
    code = ErrorCodes.FILE_TOO_LARGE
    status_code = 413


class InferenceBackendError(AppError):
    """The inference backend failed, timed out or returned a malformed payload."""

    code = ErrorCodes.AI_SERVICE_ERROR
    status_code = 502


class InvalidTransition(AppError):
    """
    Illegal scan status change.

    Stages check legality before transitioning, so reaching this is a defect.
    """

    code = ErrorCodes.INTERNAL_ERROR
    status_code = 500

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Illegal scan transition {from_status} -> {to_status}")


class InternalError(AppError):
    code = ErrorCodes.INTERNAL_ERROR
    status_code = 500
