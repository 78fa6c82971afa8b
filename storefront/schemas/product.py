# storefront/schemas/product.py
from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field


class ProductRef(SQLModel):
    """
    Product shape consumed from the catalog.

    The cart and favourites only snapshot these fields; they do not
    validate or enrich them beyond basic shape.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    price: float = Field(ge=0)
    original_price: float | None = None
    image_url: str | None = None
    sku: str | None = None
    category: str | None = None
    brand: str | None = None
    description: str | None = None
    rating: float | None = None
    reviews_count: int | None = None
    promotion_badge: str | None = None
    promotion_discount: float | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        # catalog ids arrive as ints from some views
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("id", "name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v
