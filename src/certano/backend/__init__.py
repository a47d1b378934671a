"""Remote backend access."""

from certano.backend.client import (
    BackendClient,
    BackendConnectionError,
    BackendError,
    BackendResponseError,
    DeliveryResult,
)

__all__ = [
    "BackendClient",
    "BackendConnectionError",
    "BackendError",
    "BackendResponseError",
    "DeliveryResult",
]
