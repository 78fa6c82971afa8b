# storefront/core/errors.py
"""
Domain errors raised by the cart / favourites layer.

Routers translate these into HTTP responses; nothing here is fatal to
the process.
"""


class StorefrontError(Exception):
    """Base class for storefront domain errors."""


class PersistenceSerializationError(StorefrontError):
    """A collection snapshot could not be serialized to JSON."""


class StorageQuotaExceededError(StorefrontError):
    """Writing a slot would push the device over its storage quota."""

    def __init__(self, key: str, required: int, quota: int):
        self.key = key
        self.required = required
        self.quota = quota
        super().__init__(
            f"Storage quota exceeded writing '{key}' ({required} > {quota} bytes)"
        )


class CartLineNotFoundError(StorefrontError):
    def __init__(self, line_id: str):
        self.line_id = line_id
        super().__init__(f"Cart line '{line_id}' not found")


class ShareableCartError(StorefrontError):
    """Invalid operation on a shareable cart (wrong state, empty cart...)."""
