"""
Domain models for the Prayer Location integration.

This module contains pure data classes: coordinates, addresses and prayer
events. These classes have no dependencies on HTTP, API logic, or Home
Assistant internals.
"""
from __future__ import annotations

import dataclasses
import math
from datetime import date, datetime, timedelta
from enum import Enum

from .const import EARTH_RADIUS_KM


class PrayerName(str, Enum):
    """Canonical prayer names, declared in daily order."""

    FAJR = "Fajr"
    SUNRISE = "Sunrise"
    DHUHR = "Dhuhr"
    ASR = "Asr"
    MAGHRIB = "Maghrib"
    ISHA = "Isha"


@dataclasses.dataclass(frozen=True)
class Coordinate:
    """A device position in decimal degrees."""

    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        return (
            not math.isnan(self.latitude)
            and not math.isnan(self.longitude)
            and -90.0 <= self.latitude <= 90.0
            and -180.0 <= self.longitude <= 180.0
        )

    def distance_km(self, other: Coordinate) -> float:
        """Great-circle distance to other using the haversine formula."""
        lat1, lat2 = math.radians(self.latitude), math.radians(other.latitude)
        d_lat = lat2 - lat1
        d_lng = math.radians(other.longitude - self.longitude)
        a = (
            math.sin(d_lat / 2) ** 2
            + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
        )
        return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


@dataclasses.dataclass(frozen=True)
class Address:
    """Civil address derived from a coordinate. Missing parts are empty strings."""

    street: str = ""
    city: str = ""
    district: str = ""
    province: str = ""
    country: str = ""
    full_address: str = ""

    @property
    def short_name(self) -> str:
        """Most specific non-empty place name, for display."""
        return self.district or self.city or self.province or self.country


@dataclasses.dataclass(frozen=True)
class PrayerEvent:
    """One named prayer at an aware point in time."""

    name: PrayerName
    time: datetime

    def shifted(self, days: int) -> PrayerEvent:
        return PrayerEvent(self.name, self.time + timedelta(days=days))


@dataclasses.dataclass(frozen=True)
class DailyPrayerTimes:
    """
    The ordered prayer events for one calendar date at one location.

    Times must be strictly increasing and each name may appear once.
    """

    day: date
    timezone: str
    events: tuple[PrayerEvent, ...]

    def __post_init__(self) -> None:
        seen: set[PrayerName] = set()
        previous: PrayerEvent | None = None
        for event in self.events:
            if event.name in seen:
                raise ValueError(f"Duplicate prayer {event.name.value} on {self.day}")
            if previous is not None and event.time <= previous.time:
                raise ValueError(
                    f"{event.name.value} ({event.time}) is not after "
                    f"{previous.name.value} ({previous.time})"
                )
            seen.add(event.name)
            previous = event

    def get(self, name: PrayerName) -> PrayerEvent | None:
        for event in self.events:
            if event.name is name:
                return event
        return None

    def all_passed(self, now: datetime) -> bool:
        return bool(self.events) and self.events[-1].time <= now


@dataclasses.dataclass(frozen=True)
class NextPrayer:
    """The upcoming prayer and how long until it starts."""

    event: PrayerEvent
    remaining: timedelta
