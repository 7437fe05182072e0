import hashlib
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from device_guard.api.modules.devices.schema import DeviceFingerprint, RawSignalSet
from device_guard.api.modules.devices.services.core.utils import serialize_signal_value

logger = logging.getLogger(__name__)

SIGNAL_DELIMITER = "\x1f"


class HashStrategy(Protocol):
    name: str

    def digest(self, data: str) -> str: ...


class Sha256Strategy:
    name = "sha256"

    def digest(self, data: str) -> str:
        return hashlib.sha256(data.encode("utf-8")).hexdigest()


class RollingHashStrategy:
    """32-bit multiplicative rolling hash; weak, but always available."""

    name = "rolling32"

    def digest(self, data: str) -> str:
        h = 0
        for char in data:
            h = (h * 31 + ord(char)) & 0xFFFFFFFF
        return f"{h:08x}"


def select_hash_strategy() -> HashStrategy:
    try:
        hashlib.new("sha256", b"probe")
    except (ValueError, TypeError):
        logger.warning("SHA-256 is unavailable, falling back to the rolling hash")
        return RollingHashStrategy()
    return Sha256Strategy()


@dataclass(frozen=True, slots=True)
class CompositionResult:
    composite_hash: str | None = None
    algorithm: str | None = None
    error: str | None = None


def serialize_signals(signals: RawSignalSet) -> str:
    return SIGNAL_DELIMITER.join(
        serialize_signal_value(value) for value in signals.ordered_values()
    )


class FingerprintComposer:
    """Maps a RawSignalSet to one deterministic identifier."""

    def __init__(
        self,
        strategy: HashStrategy | None = None,
        fallback: HashStrategy | None = None,
    ):
        self._strategy = strategy or select_hash_strategy()
        self._fallback = fallback or RollingHashStrategy()

    @property
    def algorithm(self) -> str:
        return self._strategy.name

    def compose(self, signals: RawSignalSet) -> CompositionResult:
        try:
            data = serialize_signals(signals)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to serialize device signals")
            logger.debug("Signal serialization error: %s", exc)
            return CompositionResult(error=str(exc) or type(exc).__name__)

        try:
            return CompositionResult(
                composite_hash=self._strategy.digest(data),
                algorithm=self._strategy.name,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "%s digest failed, using %s",
                self._strategy.name,
                self._fallback.name,
            )
            logger.debug("Digest error: %s", exc)

        try:
            return CompositionResult(
                composite_hash=self._fallback.digest(data),
                algorithm=self._fallback.name,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Fallback digest failed")
            return CompositionResult(error=str(exc) or type(exc).__name__)

    def fingerprint(
        self,
        signals: RawSignalSet,
        collected_at: datetime | None = None,
    ) -> DeviceFingerprint:
        result = self.compose(signals)
        return DeviceFingerprint(
            composite_hash=result.composite_hash,
            signals=signals,
            collected_at=collected_at or datetime.now(UTC),
            error=result.error,
        )


__all__ = (
    "CompositionResult",
    "FingerprintComposer",
    "HashStrategy",
    "RollingHashStrategy",
    "SIGNAL_DELIMITER",
    "Sha256Strategy",
    "select_hash_strategy",
    "serialize_signals",
)
