from typing import Optional


class RelayError(Exception):
    """Base class for errors that map to a JSON error response."""

    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.error)
        self.message = message

    def to_content(self) -> dict:
        content = {"error": self.error}
        if self.message:
            content["message"] = self.message
        return content


class ValidationError(RelayError):
    """Raised when the inbound request is malformed."""

    status_code = 400
    error = "Bad Request"


class NoFileUploaded(ValidationError):
    error = "No file uploaded"


class MissingFunctionType(ValidationError):
    error = "Function type is required"


class UnsupportedMediaType(ValidationError):
    error = "Invalid file format"


class PayloadTooLarge(ValidationError):
    status_code = 413
    error = "File size exceeds limit"


class InvalidProcessingParams(ValidationError):
    error = "Invalid processing parameters"


class UnknownFunctionType(RelayError):
    status_code = 400
    error = "Invalid function type"

    def __init__(self, function_type: str):
        super().__init__()
        self.function_type = function_type


class RemoteError(RelayError):
    """Raised when the processing provider rejects a call or cannot be reached."""


class RemoteUploadError(RemoteError):
    pass


class RemoteTaskCreationError(RemoteError):
    pass


class RemoteResultError(RemoteError):
    pass


class WorkflowConfigError(Exception):
    """Raised when the workflow file cannot be loaded."""
