"""Custom exception hierarchy."""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class ProviderError(APIClientError):
    """Raised when a search provider cannot produce a usable answer.

    Covers transport, authentication and response-shape failures of a
    single provider. The fan-out converts it into an error-tagged answer.
    """
    def __init__(self, provider: str, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, original_error=original_error)
        self.provider = provider


class SynthesisError(AppError):
    """Raised when the synthesis call fails or returns an invalid payload.

    Fatal for the cell being filled.
    """
    def __init__(
        self,
        message: str,
        raw_response: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error=original_error)
        self.raw_response = raw_response


class EnrichmentError(AppError):
    """Raised when a cell fill fails as a whole."""
    def __init__(self, column_id: str, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, original_error=original_error)
        self.column_id = column_id


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass
