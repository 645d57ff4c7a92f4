"""Errors raised when talking to the API."""

from __future__ import annotations


class AnthropicError(Exception):
    """Base class for API client errors."""

    def __init__(self, message: str = "Unknown error") -> None:
        super().__init__(message)
        self.message = message


class ApiTimeoutError(AnthropicError):
    """The request did not complete in time."""

    def __init__(self, message: str = "Request timed out") -> None:
        super().__init__(message)


class NetworkError(AnthropicError):
    """A transport-level failure while sending or receiving."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Network error: {message}")
        self.detail = message


class ApiConnectionError(AnthropicError):
    """A connection to the API could not be established."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Connection error: {message}")
        self.detail = message


class HttpError(AnthropicError):
    """The API answered with a non-success HTTP status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"HTTP error {status}: {message}")
        self.status = status
        self.detail = message


class InvalidApiKeyError(AnthropicError):
    """The API key was rejected or missing."""

    def __init__(self, message: str = "Invalid API key") -> None:
        super().__init__(message)


class StreamError(AnthropicError):
    """A streamed response could not be read or parsed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Stream error: {message}")
        self.detail = message