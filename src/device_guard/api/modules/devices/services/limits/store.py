import asyncio
from collections.abc import AsyncIterator, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from device_guard.api.modules.devices.models import Device
from device_guard.database.uow import UnitOfWork


@dataclass(frozen=True, slots=True)
class DeviceRecord:
    fingerprint_hash: str
    account_emails: tuple[str, ...]
    first_seen_at: datetime
    last_seen_at: datetime

    @property
    def account_count(self) -> int:
        return len(self.account_emails)

    def has_account(self, email: str) -> bool:
        return email in self.account_emails


@dataclass(frozen=True, slots=True)
class DeviceRecordSummary:
    total_devices: int
    total_registrations: int
    unique_accounts: int
    violations: list[DeviceRecord]


class DeviceRecordTransaction(Protocol):
    async def get(self) -> DeviceRecord | None: ...

    async def append(self, email: str, seen_at: datetime) -> DeviceRecord: ...


class DeviceRecordStore(Protocol):
    """Persistence for hash -> account e-mails.

    ``exclusive`` holds a lock on one hash for the lifetime of the returned
    transaction, so a read followed by an append cannot interleave with
    another attempt on the same hash.
    """

    def exclusive(
        self, fingerprint_hash: str
    ) -> AbstractAsyncContextManager[DeviceRecordTransaction]: ...

    async def get(self, fingerprint_hash: str) -> DeviceRecord | None: ...

    async def page(
        self, limit: int, offset: int, min_accounts: int | None = None
    ) -> tuple[list[DeviceRecord], int]: ...

    async def summary(self, threshold: int, limit: int) -> DeviceRecordSummary: ...


@dataclass(slots=True)
class _KeyedLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class KeyedLocks:
    """One asyncio.Lock per key, dropped once nobody holds or awaits it."""

    def __init__(self):
        self._locks: dict[str, _KeyedLock] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _KeyedLock()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                self._locks.pop(key, None)


@dataclass(slots=True)
class _MemoryEntry:
    emails: list[str]
    first_seen_at: datetime
    last_seen_at: datetime

    def snapshot(self, fingerprint_hash: str) -> DeviceRecord:
        return DeviceRecord(
            fingerprint_hash=fingerprint_hash,
            account_emails=tuple(self.emails),
            first_seen_at=self.first_seen_at,
            last_seen_at=self.last_seen_at,
        )


class _MemoryTransaction:
    def __init__(self, store: "InMemoryDeviceRecordStore", fingerprint_hash: str):
        self._store = store
        self._hash = fingerprint_hash

    async def get(self) -> DeviceRecord | None:
        return await self._store.get(self._hash)

    async def append(self, email: str, seen_at: datetime) -> DeviceRecord:
        return self._store._append(self._hash, email, seen_at)


class InMemoryDeviceRecordStore:
    """Per-process store. For multi-replica deployments use the SQL store."""

    def __init__(self):
        self._items: dict[str, _MemoryEntry] = {}
        self._locks = KeyedLocks()

    @asynccontextmanager
    async def exclusive(
        self, fingerprint_hash: str
    ) -> AsyncIterator[DeviceRecordTransaction]:
        async with self._locks.hold(fingerprint_hash):
            yield _MemoryTransaction(self, fingerprint_hash)

    async def get(self, fingerprint_hash: str) -> DeviceRecord | None:
        entry = self._items.get(fingerprint_hash)
        if entry is None:
            return None
        return entry.snapshot(fingerprint_hash)

    async def page(
        self, limit: int, offset: int, min_accounts: int | None = None
    ) -> tuple[list[DeviceRecord], int]:
        records = [entry.snapshot(h) for h, entry in self._items.items()]
        if min_accounts is not None:
            records = [r for r in records if r.account_count >= min_accounts]
        records.sort(key=lambda r: r.fingerprint_hash)
        records.sort(key=lambda r: r.last_seen_at, reverse=True)
        return records[offset : offset + limit], len(records)

    async def summary(self, threshold: int, limit: int) -> DeviceRecordSummary:
        records = [entry.snapshot(h) for h, entry in self._items.items()]
        emails = [email for r in records for email in r.account_emails]
        violations = sorted(
            (r for r in records if r.account_count >= threshold),
            key=lambda r: (r.account_count, r.last_seen_at),
            reverse=True,
        )
        return DeviceRecordSummary(
            total_devices=len(records),
            total_registrations=len(emails),
            unique_accounts=len(set(emails)),
            violations=violations[:limit],
        )

    def _append(self, fingerprint_hash: str, email: str, seen_at: datetime) -> DeviceRecord:
        entry = self._items.get(fingerprint_hash)
        if entry is None:
            entry = self._items[fingerprint_hash] = _MemoryEntry(
                emails=[], first_seen_at=seen_at, last_seen_at=seen_at
            )
        if email not in entry.emails:
            entry.emails.append(email)
        entry.last_seen_at = seen_at
        return entry.snapshot(fingerprint_hash)


def _to_record(device: Device, emails: Sequence[str]) -> DeviceRecord:
    return DeviceRecord(
        fingerprint_hash=device.fingerprint_hash,
        account_emails=tuple(emails),
        first_seen_at=device.first_seen_at,
        last_seen_at=device.last_seen_at,
    )


async def _load_record(uow: UnitOfWork, fingerprint_hash: str) -> DeviceRecord | None:
    device = await uow.devices.get_device(fingerprint_hash)
    if device is None:
        return None
    return _to_record(device, await uow.devices.get_emails(fingerprint_hash))


class _SqlTransaction:
    def __init__(self, uow: UnitOfWork, fingerprint_hash: str):
        self._uow = uow
        self._hash = fingerprint_hash

    async def get(self) -> DeviceRecord | None:
        return await _load_record(self._uow, self._hash)

    async def append(self, email: str, seen_at: datetime) -> DeviceRecord:
        await self._uow.devices.add_account(self._hash, email, seen_at)
        record = await _load_record(self._uow, self._hash)
        if record is None:
            raise RuntimeError("Device record vanished after append")
        return record


class SqlDeviceRecordStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._locks = KeyedLocks()

    @asynccontextmanager
    async def exclusive(
        self, fingerprint_hash: str
    ) -> AsyncIterator[DeviceRecordTransaction]:
        async with self._locks.hold(fingerprint_hash):
            async with self._session_factory() as session:
                uow = UnitOfWork(session)
                try:
                    await uow.devices.acquire_lock(fingerprint_hash)
                    yield _SqlTransaction(uow, fingerprint_hash)
                    await uow.commit()
                except Exception:
                    await uow.rollback()
                    raise

    async def get(self, fingerprint_hash: str) -> DeviceRecord | None:
        async with self._session_factory() as session:
            return await _load_record(UnitOfWork(session), fingerprint_hash)

    async def page(
        self, limit: int, offset: int, min_accounts: int | None = None
    ) -> tuple[list[DeviceRecord], int]:
        async with self._session_factory() as session:
            gateway = UnitOfWork(session).devices
            filters = []
            if min_accounts is not None:
                filters.append(gateway.min_accounts_filter(min_accounts))
            devices = await gateway.get_all(limit=limit, offset=offset, filters=filters)
            total = await gateway.get_total_count(filters)
            emails = await gateway.get_emails_for([d.fingerprint_hash for d in devices])
            return [
                _to_record(device, emails[device.fingerprint_hash]) for device in devices
            ], total

    async def summary(self, threshold: int, limit: int) -> DeviceRecordSummary:
        async with self._session_factory() as session:
            gateway = UnitOfWork(session).devices
            total_devices = await gateway.get_total_count([])
            registrations, unique_accounts = await gateway.get_registration_totals()
            rows = await gateway.get_violations(threshold=threshold, limit=limit)
            emails = await gateway.get_emails_for([d.fingerprint_hash for d, _ in rows])
            violations = [
                _to_record(device, emails[device.fingerprint_hash]) for device, _ in rows
            ]
            return DeviceRecordSummary(
                total_devices=total_devices,
                total_registrations=registrations,
                unique_accounts=unique_accounts,
                violations=violations,
            )


__all__ = (
    "DeviceRecord",
    "DeviceRecordStore",
    "DeviceRecordSummary",
    "DeviceRecordTransaction",
    "InMemoryDeviceRecordStore",
    "KeyedLocks",
    "SqlDeviceRecordStore",
)
