# storefront/repositories/storage_repo.py
from datetime import datetime, timezone

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from storefront.core.errors import StorageQuotaExceededError
from storefront.models.storage import StorageSlot


def _slot_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class SlotRepository:
    """
    Data access layer for storage_slots.

    - Pure DB operations, no JSON handling.
    """

    def get(self, session: Session, device_id: str, key: str) -> StorageSlot | None:
        return session.get(StorageSlot, (device_id, key))

    def list_for_device(self, session: Session, device_id: str) -> list[StorageSlot]:
        stmt = select(StorageSlot).where(StorageSlot.device_id == device_id)
        return session.exec(stmt).all()

    def used_bytes(self, session: Session, device_id: str, exclude_key: str | None = None) -> int:
        return sum(
            _slot_size(slot.key, slot.value)
            for slot in self.list_for_device(session, device_id)
            if slot.key != exclude_key
        )

    def upsert(self, session: Session, device_id: str, key: str, value: str) -> StorageSlot:
        slot = self.get(session, device_id, key)
        if slot is None:
            slot = StorageSlot(device_id=device_id, key=key, value=value)
        else:
            slot.value = value
            slot.updated_at = datetime.now(timezone.utc)
        session.add(slot)
        session.commit()
        session.refresh(slot)
        return slot

    def delete(self, session: Session, device_id: str, key: str) -> None:
        slot = self.get(session, device_id, key)
        if slot is not None:
            session.delete(slot)
            session.commit()


class KeyValueStore:
    """
    Durable string key-value storage for one client device.

    Behaves like browser local storage: a flat namespace of string
    slots with a byte quota shared by all slots of the device.
    Each call opens its own session so it is safe to use from worker
    threads.
    """

    def __init__(
        self,
        engine: Engine,
        device_id: str,
        quota_bytes: int,
        repo: SlotRepository | None = None,
    ):
        self.engine = engine
        self.device_id = device_id
        self.quota_bytes = quota_bytes
        self.repo = repo or SlotRepository()

    def get(self, key: str) -> str | None:
        with Session(self.engine) as session:
            slot = self.repo.get(session, self.device_id, key)
            return slot.value if slot else None

    def set(self, key: str, value: str) -> None:
        """
        Raises:
            StorageQuotaExceededError: if the write would exceed the quota.
        """
        with Session(self.engine) as session:
            required = self.repo.used_bytes(
                session, self.device_id, exclude_key=key
            ) + _slot_size(key, value)
            if required > self.quota_bytes:
                raise StorageQuotaExceededError(key, required, self.quota_bytes)
            self.repo.upsert(session, self.device_id, key, value)

    def remove(self, key: str) -> None:
        with Session(self.engine) as session:
            self.repo.delete(session, self.device_id, key)
