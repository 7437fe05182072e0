import datetime
from collections.abc import Sequence

from sqlalchemy import ColumnElement, Subquery, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from device_guard.api.modules.devices.models import Device, DeviceAccount


def _account_counts() -> Subquery:
    return (
        select(
            DeviceAccount.fingerprint_hash,
            func.count().label("account_count"),
        )
        .group_by(DeviceAccount.fingerprint_hash)
        .subquery()
    )


class DeviceRecordGateway:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def acquire_lock(self, fingerprint_hash: str) -> None:
        """Hold a transaction-scoped lock on the hash across replicas.

        Only PostgreSQL has advisory locks; elsewhere the caller's in-process
        lock is the only serialization.
        """
        if self.session.bind is None or self.session.bind.dialect.name != "postgresql":
            return
        await self.session.execute(
            select(func.pg_advisory_xact_lock(func.hashtext(fingerprint_hash)))
        )

    async def get_device(self, fingerprint_hash: str) -> Device | None:
        stmt = select(Device).where(Device.fingerprint_hash == fingerprint_hash)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_emails(self, fingerprint_hash: str) -> list[str]:
        stmt = (
            select(DeviceAccount.email)
            .where(DeviceAccount.fingerprint_hash == fingerprint_hash)
            .order_by(DeviceAccount.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_emails_for(
        self, fingerprint_hashes: Sequence[str]
    ) -> dict[str, list[str]]:
        emails: dict[str, list[str]] = {h: [] for h in fingerprint_hashes}
        if not fingerprint_hashes:
            return emails
        stmt = (
            select(DeviceAccount.fingerprint_hash, DeviceAccount.email)
            .where(DeviceAccount.fingerprint_hash.in_(fingerprint_hashes))
            .order_by(DeviceAccount.id)
        )
        result = await self.session.execute(stmt)
        for fingerprint_hash, email in result.all():
            emails[fingerprint_hash].append(email)
        return emails

    async def add_account(
        self,
        fingerprint_hash: str,
        email: str,
        seen_at: datetime.datetime,
    ) -> None:
        device = await self.get_device(fingerprint_hash)
        if device is None:
            device = Device(
                fingerprint_hash=fingerprint_hash,
                first_seen_at=seen_at,
                last_seen_at=seen_at,
            )
            self.session.add(device)
        else:
            device.last_seen_at = seen_at
        self.session.add(
            DeviceAccount(
                fingerprint_hash=fingerprint_hash,
                email=email,
                registered_at=seen_at,
            )
        )
        await self.session.flush()

    def min_accounts_filter(self, min_accounts: int) -> ColumnElement[bool]:
        counts = _account_counts()
        return Device.fingerprint_hash.in_(
            select(counts.c.fingerprint_hash).where(
                counts.c.account_count >= min_accounts
            )
        )

    async def get_total_count(self, filters: list[ColumnElement[bool]]) -> int:
        stmt = select(func.count()).select_from(Device).where(*filters)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_all(
        self,
        limit: int,
        offset: int,
        filters: list[ColumnElement[bool]],
    ) -> Sequence[Device]:
        stmt = (
            select(Device)
            .where(*filters)
            .order_by(Device.last_seen_at.desc(), Device.fingerprint_hash)
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_registration_totals(self) -> tuple[int, int]:
        """Return (registrations, distinct e-mails) across all devices."""
        stmt = select(func.count(), func.count(distinct(DeviceAccount.email)))
        result = await self.session.execute(stmt.select_from(DeviceAccount))
        registrations, unique_emails = result.one()
        return registrations or 0, unique_emails or 0

    async def get_violations(
        self, threshold: int, limit: int
    ) -> list[tuple[Device, int]]:
        counts = _account_counts()
        stmt = (
            select(Device, counts.c.account_count)
            .join(counts, counts.c.fingerprint_hash == Device.fingerprint_hash)
            .where(counts.c.account_count >= threshold)
            .order_by(counts.c.account_count.desc(), Device.last_seen_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [(device, count) for device, count in result.all()]
