"""
Custom exception classes for the CSV Agent Editor.
User errors map to 4xx responses, system errors to 5xx.

Data-shape problems inside a step (unknown columns and the like) are never
raised; the engine degrades to a no-op instead.
"""

class AppException(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

class FileProcessingError(AppException):
    """Raised when file upload or parsing fails."""
    def __init__(self, message: str = "Failed to process the uploaded file."):
        super().__init__(message, status_code=400)

class TranslationError(AppException):
    """Raised inside the translator when the LLM call or its output is unusable."""
    def __init__(self, message: str = "AI failed to understand the command."):
        super().__init__(message, status_code=502)

class InvalidStepError(AppException):
    """Raised when a client-supplied step payload does not match any operation."""
    def __init__(self, message: str = "The step is invalid or incomplete."):
        super().__init__(message, status_code=400)

class SessionStateError(AppException):
    """Raised when an action is not allowed in the current session status."""
    def __init__(self, message: str = "That action is not available right now."):
        super().__init__(message, status_code=409)

class HistoryError(AppException):
    """Raised when a commit would break the history/step-log alignment."""
    def __init__(self, message: str = "History is out of sync with the step log."):
        super().__init__(message, status_code=500)
