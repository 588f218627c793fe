"""
Structured error system for PAM CLI.

Library code raises these errors and never prints them; the command layer
decides which failures abort a command and which are reported as warnings.
"""

from pathlib import Path
from typing import Any, Dict, Optional


class PamError(Exception):
    """Base exception for all PAM CLI errors."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        return {
            "message": self.message,
            "status": self.status,
            "code": self.code,
            "details": self.details,
            "type": self.__class__.__name__
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.status:
            parts.append(f"(Status: {self.status})")
        return " ".join(parts)


class ConfigError(PamError):
    """Config file unreadable or malformed, or an unknown config key."""

    def __init__(
        self,
        message: str = "Configuration error",
        path: Optional[Path] = None,
        config_field: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, code="CONFIG_ERROR", **kwargs)
        self.path = path
        if path is not None:
            self.details["path"] = str(path)
        if config_field:
            self.details["config_field"] = config_field


class ValidationError(PamError):
    """Caller-supplied operation parameters are malformed.

    Raised before any network call is made.
    """

    def __init__(
        self,
        message: str = "Invalid parameters",
        field: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, code="VALIDATION_ERROR", **kwargs)
        if field:
            self.details["field"] = field


class RemoteError(PamError):
    """The service answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status: int,
        body: Optional[str] = None,
        endpoint: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, status=status, code="REMOTE_ERROR", **kwargs)
        self.body = body
        if endpoint:
            self.details["endpoint"] = endpoint

    def __str__(self) -> str:
        text = super().__str__()
        if self.body:
            text = f"{text}: {self.body}"
        return text


class DecodeError(PamError):
    """A 2xx response body did not match the expected schema."""

    def __init__(
        self,
        message: str = "Could not decode response",
        endpoint: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, code="DECODE_ERROR", **kwargs)
        if endpoint:
            self.details["endpoint"] = endpoint


class TransportError(PamError):
    """Connection-level failure; the request never produced a response."""

    def __init__(
        self,
        message: str = "Network error",
        **kwargs
    ):
        kwargs.setdefault("code", "TRANSPORT_ERROR")
        super().__init__(message, **kwargs)


class RequestTimeoutError(TransportError):
    """The request exceeded the client's fixed timeout."""

    def __init__(
        self,
        message: str = "Request timeout",
        timeout_seconds: Optional[float] = None,
        **kwargs
    ):
        super().__init__(message, code="TIMEOUT_ERROR", **kwargs)
        if timeout_seconds:
            self.details["timeout_seconds"] = timeout_seconds


def create_user_friendly_message(error: PamError) -> str:
    """
    Create a user-friendly error message.

    Args:
        error: The PamError to convert

    Returns:
        User-friendly error message
    """
    if isinstance(error, ConfigError):
        path = error.details.get("path")
        if path:
            return f"{error.message}. Check or re-create the file with 'pam config init --force' ({path})."
        return error.message

    elif isinstance(error, ValidationError):
        return error.message

    elif isinstance(error, RequestTimeoutError):
        return "The request to PAM timed out. The service may be busy, please try again."

    elif isinstance(error, TransportError):
        return "Could not reach PAM. Check your network connection and the configured API URL."

    elif isinstance(error, RemoteError):
        if error.status in (401, 403):
            return f"PAM rejected the request ({error.status}). Check PAM_CLI_API_KEY and your user email."
        if error.status == 404:
            return f"Not found on PAM ({error.status}): {error.body or error.message}"
        return str(error)

    elif isinstance(error, DecodeError):
        return f"PAM returned an unexpected response: {error.message}"

    return str(error)
