# storefront/services/persistence.py
import asyncio
import logging
from typing import Generic, Iterable, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError
from sqlalchemy.exc import SQLAlchemyError

from storefront.core.errors import (
    PersistenceSerializationError,
    StorageQuotaExceededError,
)
from storefront.repositories.storage_repo import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def slot_key(collection: str, namespace: str) -> str:
    """
    Storage slot name: "<collection>_<identityId-or-guest>".
    """
    return f"{collection}_{namespace}"


class PersistentStore(Generic[T]):
    """
    Reads/writes one collection as a JSON array in a key-value slot.

    Failure policy:
      - serialization errors raise PersistenceSerializationError
      - storage errors (quota, database) are logged and the write dropped
      - load() never raises; anything unreadable loads as []
    """

    def __init__(
        self,
        kv: KeyValueStore,
        collection: str,
        namespace: str,
        item_type: type[T],
    ):
        self.kv = kv
        self.collection = collection
        self.namespace = namespace
        self.key = slot_key(collection, namespace)
        self._adapter = TypeAdapter(list[item_type])

    def serialize(self, items: Iterable[T]) -> str:
        try:
            return self._adapter.dump_json(list(items)).decode("utf-8")
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise PersistenceSerializationError(
                f"Could not serialize '{self.key}': {e}"
            ) from e

    def write_raw(self, payload: str) -> bool:
        """
        Write an already-serialized payload. Returns False if the write
        was dropped.
        """
        try:
            self.kv.set(self.key, payload)
        except StorageQuotaExceededError as e:
            logger.warning("Dropping write to %s: %s", self.key, e)
            return False
        except SQLAlchemyError:
            logger.exception("Failed to write storage slot %s", self.key)
            return False
        return True

    def save(self, items: Iterable[T]) -> bool:
        return self.write_raw(self.serialize(items))

    def load(self) -> list[T]:
        try:
            raw = self.kv.get(self.key)
        except SQLAlchemyError:
            logger.exception("Failed to read storage slot %s", self.key)
            return []

        if raw is None:
            return []

        try:
            return self._adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "Malformed data in %s, starting empty (%d errors)",
                self.key,
                e.error_count(),
            )
            return []

    def clear(self) -> None:
        try:
            self.kv.remove(self.key)
        except SQLAlchemyError:
            logger.exception("Failed to remove storage slot %s", self.key)


class PersistenceQueue(Generic[T]):
    """
    Optimistic, ordered background writes for one PersistentStore.

    submit() serializes immediately (so serialization errors reach the
    caller) and schedules the write. Writes run one at a time in
    submission order, so the latest snapshot is the one that lands.
    Outside a running event loop the write happens inline.
    """

    def __init__(self, store: PersistentStore[T]):
        self.store = store
        self._lock: asyncio.Lock | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, items: Iterable[T]) -> None:
        payload = self.store.serialize(items)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.store.write_raw(payload)
            return

        if self._lock is None:
            self._lock = asyncio.Lock()

        task = loop.create_task(self._write(payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _write(self, payload: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self.store.write_raw, payload)

    async def flush(self) -> None:
        """
        Wait until every submitted write has been applied (or dropped).
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
