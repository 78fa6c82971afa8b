# storefront/services/stock_lookup.py
import logging
from typing import Iterable, Protocol

from supabase import Client

from storefront.core.config import Settings
from storefront.schemas.favourite import StockLevel

logger = logging.getLogger(__name__)


def default_stock() -> StockLevel:
    """Stock assumed for products the lookup does not know about."""
    return StockLevel(stock_count=0, in_stock=False)


class StockLookup(Protocol):
    def get_stock(self, product_id: str) -> StockLevel | None: ...

    def get_many(self, product_ids: Iterable[str]) -> dict[str, StockLevel]: ...


# Stock figures the storefront ships with until live inventory is wired in
MOCK_STOCK_DATA: dict[str, tuple[int, bool]] = {
    "1": (7, True),
    "2": (3, True),
    "3": (23, True),
    "4": (45, True),
    "5": (0, False),
    "6": (8, True),
    "7": (15, True),
    "8": (127, True),
    "9": (1, True),
    "10": (42, True),
    "11": (5, True),
    "12": (9, True),
}


class MockStockLookup:
    """
    In-memory stock table.

    set_stock() lets demos and tests simulate inventory moving.
    """

    def __init__(self, data: dict[str, tuple[int, bool]] | None = None):
        source = MOCK_STOCK_DATA if data is None else data
        self._data = {
            pid: StockLevel(stock_count=count, in_stock=in_stock)
            for pid, (count, in_stock) in source.items()
        }

    def get_stock(self, product_id: str) -> StockLevel | None:
        level = self._data.get(product_id)
        return level.model_copy() if level else None

    def get_many(self, product_ids: Iterable[str]) -> dict[str, StockLevel]:
        result: dict[str, StockLevel] = {}
        for pid in product_ids:
            level = self.get_stock(pid)
            if level is not None:
                result[pid] = level
        return result

    def set_stock(self, product_id: str, stock_count: int, in_stock: bool | None = None) -> None:
        if in_stock is None:
            in_stock = stock_count > 0
        self._data[product_id] = StockLevel(stock_count=stock_count, in_stock=in_stock)

    def forget(self, product_id: str) -> None:
        self._data.pop(product_id, None)


class SupabaseStockLookup:
    """
    Live stock from the Supabase `products` table.

    Network / PostgREST errors propagate; callers decide whether a
    failed lookup is fatal.
    """

    TABLE = "products"
    COLUMNS = "id, stock_count, in_stock"

    def __init__(self, client: Client):
        self.client = client

    @staticmethod
    def _to_level(row: dict) -> StockLevel:
        count = max(int(row.get("stock_count") or 0), 0)
        in_stock = row.get("in_stock")
        if in_stock is None:
            in_stock = count > 0
        return StockLevel(stock_count=count, in_stock=bool(in_stock))

    def get_stock(self, product_id: str) -> StockLevel | None:
        response = (
            self.client.table(self.TABLE)
            .select(self.COLUMNS)
            .eq("id", product_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return self._to_level(response.data[0])

    def get_many(self, product_ids: Iterable[str]) -> dict[str, StockLevel]:
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return {}
        response = (
            self.client.table(self.TABLE)
            .select(self.COLUMNS)
            .in_("id", ids)
            .execute()
        )
        return {str(row["id"]): self._to_level(row) for row in response.data or []}


def build_stock_lookup(settings: Settings) -> StockLookup:
    """
    Pick the stock lookup backend from STOCK_LOOKUP_BACKEND.
    """
    if settings.STOCK_LOOKUP_BACKEND == "supabase":
        from storefront.core.supabase_client import supabase_public

        logger.info("Using Supabase stock lookup")
        return SupabaseStockLookup(supabase_public())
    logger.info("Using mock stock lookup")
    return MockStockLookup()
