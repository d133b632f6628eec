"""
Error taxonomy for the Prayer Location integration.

Every failure the coordinator can observe is one of three families, each
tagged with a kind so callers can branch on it without string matching:

- GeocodeError:      reverse-geocoding failed
- CalculationError:  prayer times could not be produced
- SensorError:       no usable device position
"""
from __future__ import annotations

from enum import Enum


class GeocodeErrorKind(str, Enum):
    NETWORK = "network"
    RATE_LIMITED = "rate_limited"
    NO_RESULT = "no_result"
    MALFORMED = "malformed"


class CalculationErrorKind(str, Enum):
    UNSUPPORTED_LOCATION = "unsupported_location"
    UNAVAILABLE = "unavailable"


class SensorErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"


class PrayerLocationError(Exception):
    """Base class for all errors raised by this integration."""

    kind: Enum

    def __init__(self, kind: Enum, message: str | None = None) -> None:
        self.kind = kind
        super().__init__(message or kind.value)

    @property
    def retryable(self) -> bool:
        return False


class GeocodeError(PrayerLocationError):
    """Reverse-geocoding failure."""

    kind: GeocodeErrorKind

    @property
    def retryable(self) -> bool:
        return self.kind in (GeocodeErrorKind.NETWORK, GeocodeErrorKind.RATE_LIMITED)


class CalculationError(PrayerLocationError):
    """Prayer-time provider failure."""

    kind: CalculationErrorKind


class SensorError(PrayerLocationError):
    """Device position is not available."""

    kind: SensorErrorKind

    @property
    def blocks_automatic_refresh(self) -> bool:
        return self.kind is SensorErrorKind.PERMISSION_DENIED
