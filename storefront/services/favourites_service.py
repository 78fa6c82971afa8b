# storefront/services/favourites_service.py
import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from typing import Callable, Iterable

from storefront.core.config import Settings, get_settings
from storefront.schemas.favourite import (
    FavouriteItem,
    FavouritesSummary,
    Notice,
    StockLevel,
)
from storefront.schemas.product import ProductRef
from storefront.services.persistence import PersistenceQueue, PersistentStore
from storefront.services.stock_lookup import StockLookup, default_stock

logger = logging.getLogger(__name__)

FavouritesListener = Callable[["FavouritesService"], None]


def favourite_id(product_id: str) -> str:
    return f"fav_{product_id}_{int(time.time() * 1000)}"


class StockRefreshHandle:
    """
    Handle on a running periodic stock refresh.
    """

    def __init__(self, task: asyncio.Task):
        self._task = task
        self._cancel_requested = False

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested or self._task.done()

    def cancel(self) -> None:
        self._cancel_requested = True
        self._task.cancel()

    async def stop(self) -> None:
        """Cancel and wait for the refresh task to finish."""
        self.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class FavouritesService:
    """
    Deduplicated, stock-aware wish list for one browsing session.

    Items are keyed by product_id. After creation only the stock fields
    change, through update_stock_status().
    """

    def __init__(
        self,
        store: PersistentStore[FavouriteItem],
        stock_lookup: StockLookup,
        settings: Settings | None = None,
    ):
        self.store = store
        self.namespace = store.namespace
        self.stock_lookup = stock_lookup
        self.settings = settings or get_settings()
        self.persistence = PersistenceQueue(store)

        self._items: list[FavouriteItem] = []
        self._listeners: list[FavouritesListener] = []

    # ---- internal helpers ----

    def _find(self, product_id: str) -> FavouriteItem | None:
        return next((it for it in self._items if it.product_id == product_id), None)

    def _commit(self) -> None:
        try:
            self.persistence.submit(self._items)
        finally:
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Favourites listener failed for %s", self.namespace)

    async def _lookup_stock(self, product_id: str) -> tuple[StockLevel, datetime | None]:
        """
        Current stock for a product being added.

        A miss defaults to out of stock. A failing lookup also defaults,
        but leaves the item's stock status unknown.
        """
        try:
            level = await asyncio.to_thread(self.stock_lookup.get_stock, product_id)
        except Exception:
            logger.exception("Stock lookup failed for product %s", product_id)
            return default_stock(), None

        if level is None:
            logger.debug("No stock entry for product %s, assuming out of stock", product_id)
            level = default_stock()
        return level, datetime.now(timezone.utc)

    # ---- state ----

    @property
    def items(self) -> list[FavouriteItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def load(self) -> None:
        self._items = self.store.load()
        logger.debug("Loaded %d favourites for %s", len(self._items), self.namespace)
        self._notify()

    def subscribe(self, listener: FavouritesListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def flush(self) -> None:
        await self.persistence.flush()

    def summary(self) -> FavouritesSummary:
        return FavouritesSummary(
            namespace=self.namespace,
            items=self.items,
            count=len(self._items),
        )

    # ---- public operations ----

    def is_favourite(self, product_id: str) -> bool:
        return self._find(product_id) is not None

    def get(self, product_id: str) -> FavouriteItem | None:
        return self._find(product_id)

    async def add_to_favourites(self, product: ProductRef) -> Notice:
        """
        Save a product snapshot merged with its current stock.

        Adding a product that is already saved changes nothing and
        returns an informational notice.
        """
        if self.is_favourite(product.id):
            return Notice(level="info", message="Product is already in your favourites")

        stock, checked_at = await self._lookup_stock(product.id)

        # another add for the same product may have finished while we waited
        if self.is_favourite(product.id):
            return Notice(level="info", message="Product is already in your favourites")

        item = FavouriteItem(
            id=favourite_id(product.id),
            product_id=product.id,
            name=product.name,
            price=product.price,
            original_price=product.original_price,
            image_url=product.image_url,
            sku=product.sku,
            category=product.category or "Unknown",
            brand=product.brand,
            description=product.description,
            rating=product.rating,
            reviews_count=product.reviews_count,
            promotion_badge=product.promotion_badge,
            promotion_discount=product.promotion_discount,
            stock_count=stock.stock_count,
            in_stock=stock.in_stock,
            stock_checked_at=checked_at,
        )
        self._items.append(item)
        self._commit()
        return Notice(level="success", message=f"{product.name} added to favourites!")

    def remove_from_favourites(self, product_id: str) -> Notice:
        """Remove a saved product; no-op if it is not saved."""
        item = self._find(product_id)
        if item is None:
            return Notice(level="info", message="Product is not in your favourites")
        self._items.remove(item)
        self._commit()
        return Notice(level="success", message=f"{item.name} removed from favourites")

    def clear_favourites(self) -> Notice:
        self._items = []
        self._commit()
        return Notice(level="success", message="All favourites cleared")

    def merge_items(self, items: Iterable[FavouriteItem]) -> int:
        """
        Add items for products not already saved. Returns how many were added.
        """
        added = 0
        for item in items:
            if not self.is_favourite(item.product_id):
                self._items.append(item.model_copy())
                added += 1
        if added:
            self._commit()
        return added

    def update_stock_status(self, product_id: str, stock: StockLevel) -> bool:
        """
        Overwrite the stock fields of one saved product.

        Returns True if anything changed. A never-checked item counts as
        changed so it leaves the 'unknown' state.
        """
        item = self._find(product_id)
        if item is None:
            return False

        unchanged = (
            item.stock_checked_at is not None
            and item.stock_count == stock.stock_count
            and item.in_stock == stock.in_stock
        )
        if unchanged:
            return False

        item.stock_count = stock.stock_count
        item.in_stock = stock.in_stock
        item.stock_checked_at = datetime.now(timezone.utc)
        self._commit()
        return True

    # ---- periodic refresh ----

    async def refresh_stock(self) -> int:
        """
        Re-query stock for every saved product and apply changes.

        Products the lookup no longer knows are marked out of stock;
        nothing is ever removed. Returns the number of items changed.
        A failing lookup is logged and changes nothing.
        """
        if not self._items:
            return 0

        product_ids = [it.product_id for it in self._items]
        try:
            levels = await asyncio.to_thread(self.stock_lookup.get_many, product_ids)
        except Exception:
            logger.exception("Stock lookup failed for %s", self.namespace)
            return 0

        changed = 0
        for product_id in product_ids:
            level = levels.get(product_id) or default_stock()
            if self.update_stock_status(product_id, level):
                changed += 1

        if changed:
            logger.info("Stock changed for %d favourites in %s", changed, self.namespace)
        return changed

    async def _run_stock_refresh(self, interval: float, jitter: float) -> None:
        while True:
            try:
                await self.refresh_stock()
            except Exception:
                logger.exception("Stock refresh failed for %s", self.namespace)
            delay = interval + (random.uniform(0, jitter) if jitter > 0 else 0.0)
            await asyncio.sleep(delay)

    def start_stock_refresh(
        self,
        interval: float | None = None,
        jitter: float | None = None,
    ) -> StockRefreshHandle:
        """
        Refresh stock now and then every `interval` seconds (plus up to
        `jitter` seconds) until the returned handle is cancelled.

        Must be called from a running event loop.
        """
        if interval is None:
            interval = self.settings.STOCK_REFRESH_INTERVAL_SECONDS
        if jitter is None:
            jitter = self.settings.STOCK_REFRESH_JITTER_SECONDS
        if interval <= 0:
            raise ValueError("interval must be positive")

        task = asyncio.get_running_loop().create_task(
            self._run_stock_refresh(interval, max(jitter, 0.0))
        )
        return StockRefreshHandle(task)
