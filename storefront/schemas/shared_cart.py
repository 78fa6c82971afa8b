# storefront/schemas/shared_cart.py
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field

from storefront.schemas.cart import CartLine, CartTotals

ShareStatus = Literal["active", "paid", "cancelled", "expired"]


class SharedCartCreate(SQLModel):
    """
    Optional owner details shown to whoever opens the link.
    """

    model_config = ConfigDict(extra="forbid")

    owner_name: str | None = Field(default=None, max_length=100)


class SharedCartPaid(SQLModel):
    model_config = ConfigDict(extra="forbid")

    order_id: str = Field(min_length=1, max_length=64)


class SharedCartRead(SQLModel):
    share_token: str
    owner_id: str
    owner_name: str | None
    owner_email: str | None
    status: ShareStatus
    order_id: str | None
    items: list[CartLine]
    totals: CartTotals
    shipping_amount: float
    final_total: float
    created_at: datetime
    expires_at: datetime
    paid_at: datetime | None
