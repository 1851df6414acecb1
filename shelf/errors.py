"""Exception types shared across the library core."""


class ShelfError(Exception):
    """Base class for library errors surfaced to the caller."""
    pass


class ScanError(ShelfError):
    """Raised when a scan root itself cannot be enumerated."""
    pass


class ProviderError(ShelfError):
    """Exception raised for metadata provider failures."""

    def __init__(self, message: str, provider: str | None = None, status: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class RateLimitError(ProviderError):
    """The provider refused the call because of its rate limit (HTTP 429)."""
    pass
