class AuthenticationError(Exception):
    """Raised when OAuth credentials are missing, rejected, or cannot be obtained."""


class IntegrationError(Exception):
    """Raised when a Google Tasks call or the callback listener fails."""


class RateLimitError(Exception):
    """Raised when the Google Tasks rate limit is hit."""
