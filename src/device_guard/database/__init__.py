from device_guard.database.base import Base, DateTimeMixin, SeenAtMixin
from device_guard.database.engine import build_engine, build_session_factory

__all__ = [
    "Base",
    "DateTimeMixin",
    "SeenAtMixin",
    "build_engine",
    "build_session_factory",
]
