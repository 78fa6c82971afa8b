# storefront/schemas/favourite.py
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, computed_field
from sqlmodel import SQLModel, Field

StockStatus = Literal[
    "unknown", "out-of-stock", "low-stock", "running-low", "in-stock"
]
NoticeLevel = Literal["info", "success", "warning", "error"]

# Stock badge thresholds used on the product cards
LOW_STOCK_MAX = 3
RUNNING_LOW_MAX = 10


class StockLevel(SQLModel):
    """
    Stock lookup result for one product.
    """

    model_config = ConfigDict(extra="forbid")

    stock_count: int = Field(ge=0)
    in_stock: bool


def classify_stock(
    stock_count: int,
    in_stock: bool,
    checked_at: datetime | None = None,
) -> StockStatus:
    if checked_at is None:
        return "unknown"
    if not in_stock or stock_count <= 0:
        return "out-of-stock"
    if stock_count <= LOW_STOCK_MAX:
        return "low-stock"
    if stock_count <= RUNNING_LOW_MAX:
        return "running-low"
    return "in-stock"


class FavouriteItem(BaseModel):
    """
    Saved product snapshot. Only the stock fields change after creation.
    """

    id: str
    product_id: str
    name: str
    price: float
    original_price: float | None = None
    image_url: str | None = None
    sku: str | None = None
    category: str = "Unknown"
    brand: str | None = None
    description: str | None = None
    rating: float | None = None
    reviews_count: int | None = None
    promotion_badge: str | None = None
    promotion_discount: float | None = None

    stock_count: int = 0
    in_stock: bool = False
    stock_checked_at: datetime | None = None

    added_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def stock_status(self) -> StockStatus:
        return classify_stock(self.stock_count, self.in_stock, self.stock_checked_at)


class Notice(SQLModel):
    """
    User-facing message produced by a mutation (rendered as a toast).
    """

    level: NoticeLevel
    message: str


class FavouritesSummary(SQLModel):
    namespace: str
    items: list[FavouriteItem]
    count: int


class FavouriteMutationResult(SQLModel):
    notice: Notice
    favourites: FavouritesSummary


class FavouriteStatus(SQLModel):
    product_id: str
    is_favourite: bool
    stock_status: StockStatus | None = None


class StockRefreshResult(SQLModel):
    changed: int
    favourites: FavouritesSummary
