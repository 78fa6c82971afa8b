# storefront/core/config.py
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Nothing is strictly required for local development: the stock lookup
    defaults to the built-in mock table and storage to a SQLite file.

    Production env vars (.env):
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_URL / SUPABASE_KEY (anon key, used by the stock lookup)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)
    """

    PROJECT_NAME: str = "Best Brightness Storefront API"
    API_V1_STR: str = "/api/v1"

    # Durable key-value storage
    DATABASE_URL: str = "sqlite:///./best_brightness.db"
    STORAGE_QUOTA_BYTES: int = 5 * 1024 * 1024
    GUEST_NAMESPACE: str = "guest"
    CART_COLLECTION: str = "best_brightness_cart"
    FAVOURITES_COLLECTION: str = "best_brightness_favourites"

    # Supabase
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None
    SUPABASE_JWT_SECRET: str | None = None
    SUPABASE_JWT_ALG: str = "HS256"

    # Stock lookup + periodic refresh
    STOCK_LOOKUP_BACKEND: Literal["mock", "supabase"] = "mock"
    STOCK_REFRESH_INTERVAL_SECONDS: float = 30.0
    STOCK_REFRESH_JITTER_SECONDS: float = 0.0

    # Cart pricing rules
    LOYALTY_POINT_VALUE: float = 0.10
    FREE_SHIPPING_THRESHOLD: float = 500.0
    SHIPPING_FEE: float = 50.0
    MAX_QUANTITY_PER_ORDER: int = 10

    # Guest data is left untouched on sign-in unless this is enabled
    MERGE_GUEST_ON_SIGN_IN: bool = False

    # Shareable carts
    SHARE_CART_TTL_HOURS: int = 72

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
