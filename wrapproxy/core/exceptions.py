"""Core exceptions for the proxy."""

from typing import Optional


class ProxyError(Exception):
    """Base exception for proxy errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(ProxyError):
    """Raised when there's an issue with the configuration."""


class InvalidRequestError(ProxyError):
    """Raised when an incoming request is invalid."""

    status_code = 400

    def __init__(self, message: str, code: str = "invalid_request") -> None:
        super().__init__(message)
        self.code = code


class AuthenticationError(ProxyError):
    """Raised when no API key is available for the upstream call."""

    status_code = 401


class UpstreamConnectionError(ProxyError):
    """Raised when the upstream could not be reached."""

    status_code = 502

    def __init__(self, message: str, model: Optional[str] = None) -> None:
        super().__init__(message)
        self.model = model


class ResponseParseError(ProxyError):
    """Raised when a buffered upstream response is not a usable JSON object."""

    status_code = 500


class UpstreamReadError(ProxyError):
    """Raised when a buffered upstream body could not be read to the end."""

    status_code = 500
