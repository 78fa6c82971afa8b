# storefront/models/storage.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class StorageSlot(SQLModel, table=True):
    """
    One durable key-value slot.

    A device mirrors one browser's local storage; inside a device,
    keys follow the "<collection>_<identityId-or-guest>" convention and
    the value is the JSON array of the collection's entities.
    """

    __tablename__ = "storage_slots"

    device_id: str = Field(
        primary_key=True,
        max_length=64,
        description="Client device owning the slot",
    )

    key: str = Field(
        primary_key=True,
        max_length=255,
        description="Slot name, e.g. best_brightness_cart_guest",
    )

    value: str = Field(
        description="Serialized JSON payload",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last write timestamp (UTC)",
    )
