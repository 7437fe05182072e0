import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from device_guard.database.base import Base, DateTimeMixin, SeenAtMixin


class Device(Base, SeenAtMixin):
    __tablename__ = "devices"

    fingerprint_hash: Mapped[str] = mapped_column(String(128), primary_key=True)


class DeviceAccount(Base, DateTimeMixin):
    __tablename__ = "device_accounts"
    __table_args__ = (UniqueConstraint("fingerprint_hash", "email"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fingerprint_hash: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("devices.fingerprint_hash", ondelete="CASCADE"),
        index=True,
    )
    email: Mapped[str] = mapped_column(String(320), index=True)
    registered_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True))
