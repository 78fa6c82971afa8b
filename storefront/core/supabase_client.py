# storefront/core/supabase_client.py
from functools import lru_cache

from supabase import create_client, Client

from storefront.core.config import get_settings


@lru_cache
def supabase_public() -> Client:
    """
    Create a Supabase client with the anon/public key.

    Use cases:
      - live stock lookups against the public products table

    Note: This client still respects RLS.

    Raises:
        RuntimeError: if SUPABASE_URL or SUPABASE_KEY is not set.
    """
    settings = get_settings()
    if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
        raise RuntimeError("Missing SUPABASE_URL / SUPABASE_KEY in .env")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
