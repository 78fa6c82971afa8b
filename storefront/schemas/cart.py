# storefront/schemas/cart.py
import uuid
from datetime import datetime, timezone

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from storefront.schemas.product import ProductRef


class CartLine(SQLModel):
    """
    One cart row. Presentation fields are snapshotted at add-time
    and are not live-updated from the catalog.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    product_id: str
    name: str
    price: float
    original_price: float | None = None
    quantity: int = Field(ge=1)
    sku: str | None = None
    image_url: str | None = None
    added_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class CartLineRead(CartLine):
    """
    Cart line returned to clients, including line_total.
    """

    line_total: float


class CartTotals(SQLModel):
    """
    Derived cart figures. Always recomputed from the lines, never stored.
    """

    item_count: int
    subtotal: float
    loyalty_points_used: int = 0
    loyalty_discount: float = 0.0
    promo_code: str | None = None
    promo_discount: float = 0.0
    discount_amount: float
    total: float


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    namespace: str
    items: list[CartLineRead]
    totals: CartTotals


class CheckoutSummary(SQLModel):
    """
    Totals shown on the checkout page.
    """

    totals: CartTotals
    shipping_amount: float
    final_total: float
    max_quantity_per_line: int


# ---- Request payloads ----


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.

    The per-order maximum is a storefront rule enforced here,
    not by the cart itself.
    """

    model_config = ConfigDict(extra="forbid")

    product: ProductRef
    quantity: int = Field(default=1, gt=0, le=10)


class CartItemUpdate(SQLModel):
    """
    Payload for updating quantity of a cart line. 0 removes the line.
    """

    model_config = ConfigDict(extra="forbid")

    quantity: int = Field(ge=0, le=10)


class LoyaltyRedeem(SQLModel):
    model_config = ConfigDict(extra="forbid")

    points: int = Field(gt=0)


class PromoApply(SQLModel):
    model_config = ConfigDict(extra="forbid")

    code: str = Field(max_length=50)
    amount: float = Field(gt=0)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("code cannot be empty")
        return v
