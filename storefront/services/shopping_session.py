# storefront/services/shopping_session.py
import asyncio
import logging

from sqlalchemy.engine import Engine

from storefront.core.config import Settings, get_settings
from storefront.repositories.storage_repo import KeyValueStore
from storefront.schemas.cart import CartLine
from storefront.schemas.favourite import FavouriteItem
from storefront.services.cart_service import CartService
from storefront.services.favourites_service import (
    FavouritesService,
    StockRefreshHandle,
)
from storefront.services.persistence import PersistentStore
from storefront.services.stock_lookup import StockLookup

logger = logging.getLogger(__name__)


def namespace_for(identity_id: str | None, settings: Settings) -> str:
    """
    Storage namespace of an identity; guests share the guest constant.
    """
    return identity_id if identity_id else settings.GUEST_NAMESPACE


class ShoppingSession:
    """
    Cart + favourites owned by one client device.

    Both aggregates are bound to the namespace of the current identity.
    Signing in or out swaps them for aggregates bound to the new
    namespace; guest and user data are never mixed unless
    MERGE_GUEST_ON_SIGN_IN is enabled.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        stock_lookup: StockLookup,
        identity_id: str | None = None,
        settings: Settings | None = None,
    ):
        self.kv = kv
        self.device_id = kv.device_id
        self.stock_lookup = stock_lookup
        self.settings = settings or get_settings()
        self.identity_id = identity_id

        self.cart, self.favourites = self._build(identity_id)
        self._refresh: StockRefreshHandle | None = None

    def _build(self, identity_id: str | None) -> tuple[CartService, FavouritesService]:
        ns = namespace_for(identity_id, self.settings)
        cart = CartService(
            PersistentStore(self.kv, self.settings.CART_COLLECTION, ns, CartLine),
            self.settings,
        )
        favourites = FavouritesService(
            PersistentStore(
                self.kv, self.settings.FAVOURITES_COLLECTION, ns, FavouriteItem
            ),
            self.stock_lookup,
            self.settings,
        )
        return cart, favourites

    @property
    def namespace(self) -> str:
        return self.cart.namespace

    @property
    def refresh_running(self) -> bool:
        return self._refresh is not None and not self._refresh.cancelled

    def load(self) -> None:
        self.cart.load()
        self.favourites.load()

    def start(self) -> None:
        """
        Start the periodic stock refresh. Needs a running event loop.
        """
        if self.refresh_running:
            return
        self._refresh = self.favourites.start_stock_refresh()

    async def flush(self) -> None:
        await asyncio.gather(self.cart.flush(), self.favourites.flush())

    async def close(self) -> None:
        """
        Stop the stock refresh and wait for pending writes.
        """
        if self._refresh is not None:
            await self._refresh.stop()
            self._refresh = None
        await self.flush()

    async def switch_identity(self, identity_id: str | None) -> None:
        if identity_id == self.identity_id:
            return

        was_running = self.refresh_running
        await self.close()

        previous_cart, previous_favourites = self.cart, self.favourites
        signing_in = self.identity_id is None and identity_id is not None

        logger.info(
            "Device %s switching namespace %s -> %s",
            self.device_id,
            self.namespace,
            namespace_for(identity_id, self.settings),
        )
        self.identity_id = identity_id
        self.cart, self.favourites = self._build(identity_id)
        await asyncio.to_thread(self.load)

        if signing_in:
            await self._handle_guest_data(previous_cart, previous_favourites)

        if was_running:
            self.start()

    async def _handle_guest_data(
        self,
        guest_cart: CartService,
        guest_favourites: FavouritesService,
    ) -> None:
        if not len(guest_cart) and not len(guest_favourites):
            return

        if not self.settings.MERGE_GUEST_ON_SIGN_IN:
            logger.warning(
                "Guest cart (%d lines) and favourites (%d items) on device %s "
                "were not merged into %s",
                len(guest_cart),
                len(guest_favourites),
                self.device_id,
                self.namespace,
            )
            return

        self.cart.merge_lines(guest_cart.lines)
        self.favourites.merge_items(guest_favourites.items)
        guest_cart.clear_cart()
        guest_favourites.clear_favourites()
        await asyncio.gather(guest_cart.flush(), guest_favourites.flush())
        logger.info("Merged guest cart and favourites into %s", self.namespace)


class SessionRegistry:
    """
    Device id -> ShoppingSession, for the lifetime of the process.
    """

    def __init__(
        self,
        engine: Engine,
        stock_lookup: StockLookup,
        settings: Settings | None = None,
        start_refresh: bool = True,
    ):
        self.engine = engine
        self.stock_lookup = stock_lookup
        self.settings = settings or get_settings()
        self.start_refresh = start_refresh
        self._sessions: dict[str, ShoppingSession] = {}
        self._device_locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, device_id: str) -> ShoppingSession | None:
        return self._sessions.get(device_id)

    async def acquire(self, device_id: str, identity_id: str | None) -> ShoppingSession:
        """
        Return the device's session, creating and loading it on first use
        and switching namespace when the identity changed.

        Requests for one device are serialized, so a switch finishes
        before the next request sees the session.
        """
        lock = self._device_locks.setdefault(device_id, asyncio.Lock())
        async with lock:
            session = self._sessions.get(device_id)
            if session is None:
                kv = KeyValueStore(
                    self.engine, device_id, self.settings.STORAGE_QUOTA_BYTES
                )
                session = ShoppingSession(
                    kv, self.stock_lookup, identity_id, self.settings
                )
                await asyncio.to_thread(session.load)
                if self.start_refresh:
                    session.start()
                self._sessions[device_id] = session
                return session

            await session.switch_identity(identity_id)
            return session

    async def close(self, device_id: str) -> None:
        session = self._sessions.pop(device_id, None)
        if session is not None:
            await session.close()

    async def close_all(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        await asyncio.gather(*(s.close() for s in sessions))
        logger.info("Closed %d shopping sessions", len(sessions))
