"""Exception classes for femdown."""

from typing import Optional, Dict, Any


class FemdownError(Exception):
    """Base exception for all femdown errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join([f"{k}: {v}" for k, v in self.details.items()])
            return f"{self.message} ({details_str})"
        return self.message


class AuthenticationError(FemdownError):
    """Login and session errors. Always fatal."""

    def __init__(self, message: str, url: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.url = url


class LoginAbortedError(AuthenticationError):
    """The user closed the browser or navigated away before logging in."""
    pass


class SessionExpiredError(AuthenticationError):
    """The stored session was rejected by the server."""
    pass


class NetworkError(FemdownError):
    """Network and API communication errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.status_code = status_code
        self.url = url


class ConnectionError(NetworkError):
    """Failed to establish network connection."""
    pass


class TimeoutError(NetworkError):
    """Network request timed out."""
    pass


class RateLimitError(NetworkError):
    """Rate limit exceeded."""
    pass


class ServerError(NetworkError):
    """Server returned an error response."""
    pass


class ParseError(FemdownError):
    """Listing data could not be understood."""

    def __init__(self, message: str, content_type: Optional[str] = None, url: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.content_type = content_type
        self.url = url


class VideoSourceError(ParseError):
    """The video source endpoint answered with a message instead of a URL."""
    pass


class DownloadError(FemdownError):
    """Video, subtitle and file system errors."""

    def __init__(self, message: str, file_path: Optional[str] = None, url: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.file_path = file_path
        self.url = url


class ConfigurationError(FemdownError):
    """Configuration and setup errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.config_key = config_key


class ValidationError(FemdownError):
    """Invalid user input."""

    def __init__(self, message: str, field_name: Optional[str] = None, field_value: Optional[Any] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.field_name = field_name
        self.field_value = field_value


class InvalidCourseIdError(ValidationError):
    """A course id or course URL could not be parsed."""
    pass
