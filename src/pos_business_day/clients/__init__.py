"""Store client implementations."""

from pos_business_day.clients.backoffice import (
    AuthenticationError,
    BackOfficeAPIClient,
    BackOfficeAPIError,
    RateLimitError,
)

__all__ = [
    "BackOfficeAPIClient",
    "BackOfficeAPIError",
    "AuthenticationError",
    "RateLimitError",
]
