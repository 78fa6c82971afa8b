# storefront/models/shareable_cart.py
import secrets
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


def generate_share_token() -> str:
    return secrets.token_urlsafe(16)


class ShareableCart(SQLModel, table=True):
    """
    A frozen copy of a customer's cart that somebody else can pay for.

    cart_data holds {"items": [...CartLine...], "totals": {...}} taken
    at share time; it is never re-synced with the owner's live cart.
    """

    __tablename__ = "shareable_carts"

    share_token: str = Field(
        default_factory=generate_share_token,
        primary_key=True,
        max_length=64,
    )

    owner_id: str = Field(
        index=True,
        description="Identity id of the cart owner",
    )
    owner_name: str | None = None
    owner_email: str | None = None

    cart_data: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )

    # active | paid | cancelled | expired
    status: str = Field(
        default="active",
        index=True,
        description="Shareable cart lifecycle",
    )

    order_id: str | None = Field(
        default=None,
        description="Order placed from this cart, once paid",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    expires_at: datetime
    paid_at: datetime | None = None
