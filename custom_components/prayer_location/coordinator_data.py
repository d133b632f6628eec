"""
LocationSnapshot: immutable snapshot of the resolved location state shared with entities.

This is a pure data module with no HA or network dependencies.
"""
from __future__ import annotations

import dataclasses
from datetime import datetime
from enum import Enum

from .errors import CalculationError, GeocodeError, PrayerLocationError, SensorError
from .models import Address, Coordinate, DailyPrayerTimes, NextPrayer


class RefreshState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    READY = "ready"
    FAILED = "failed"


class RefreshTrigger(str, Enum):
    MANUAL = "manual"
    FOREGROUND = "foreground"
    PERIODIC = "periodic"
    LOCATION = "location"


@dataclasses.dataclass(frozen=True)
class LocationSnapshot:
    """
    Typed, copy-on-write snapshot of the location / prayer-time state.

    Always replace via dataclasses.replace(); never mutate in place.
    Address readiness and prayer-time readiness are tracked independently:
    `state` and `address_error` describe the address facet, `prayer_error`
    the prayer-time facet.
    """

    # Last coordinate accepted by the coordinator (None until the first fix)
    coordinate: Coordinate | None = None

    # None until resolved, or after a terminal geocode failure
    address: Address | None = None

    # Today's events at `coordinate`
    prayer_times: DailyPrayerTimes | None = None

    # Tomorrow's events, fetched only once today's have all passed
    following_prayer_times: DailyPrayerTimes | None = None

    # Selection made at the time of the last transition. `remaining` is frozen
    # at that moment; live readers use PrayerLocationCoordinator.get_next_prayer()
    next_prayer: NextPrayer | None = None

    state: RefreshState = RefreshState.IDLE
    address_error: GeocodeError | None = None
    prayer_error: CalculationError | None = None
    sensor_error: SensorError | None = None

    # Coordinate generation the address / prayer times belong to
    generation: int = 0

    # Wall-clock time of the last successful address resolution
    updated_at: datetime | None = None

    @property
    def loading(self) -> bool:
        return self.state is RefreshState.RESOLVING

    @property
    def error(self) -> PrayerLocationError | None:
        return self.sensor_error or self.address_error or self.prayer_error
