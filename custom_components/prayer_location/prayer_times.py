"""
Prayer-time providers.

PrayerTimeProvider is the contract the coordinator depends on; the
calculation itself is delegated to an external service. The default
implementation queries the AlAdhan timings API.
"""
from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from datetime import date, datetime, time, tzinfo

import aiohttp

from homeassistant.util import dt as dt_util

from .const import DEFAULT_CALCULATION_METHOD, PRAYER_TIMES_API_URL, PRAYER_TIMES_TIMEOUT
from .errors import CalculationError, CalculationErrorKind
from .models import Coordinate, DailyPrayerTimes, PrayerEvent, PrayerName
from .requests import ApiResponseError, make_request

_LOGGER = logging.getLogger(__name__)

# "04:35", "04:35 (WIB)", "4:35"
_TIME_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})")


class PrayerTimeProvider(ABC):
    """Computes the ordered prayer events for a location and a date."""

    @abstractmethod
    async def get_events(self, coordinate: Coordinate, day: date) -> DailyPrayerTimes:
        """Return the day's events, or raise CalculationError."""

    def today(self, coordinate: Coordinate) -> date:
        """Calendar date to request for `coordinate` right now."""
        return dt_util.now().date()


def parse_timing(value: str, day: date, zone: tzinfo) -> datetime:
    """Turn an "HH:MM" timing on `day` into an aware datetime in `zone`."""
    match = _TIME_PATTERN.match(value or "")
    if match is None:
        raise ValueError(f"Unparseable timing: {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    return datetime.combine(day, time(hours, minutes), tzinfo=zone)


class AladhanPrayerTimeProvider(PrayerTimeProvider):
    """PrayerTimeProvider backed by https://aladhan.com/prayer-times-api."""

    def __init__(
        self,
        method: int = DEFAULT_CALCULATION_METHOD,
        timeout: float = PRAYER_TIMES_TIMEOUT,
        url: str = PRAYER_TIMES_API_URL,
    ) -> None:
        self.method = method
        self.timeout = timeout
        self.url = url
        # Zone reported by the API for the last location
        self._last_zone: str | None = None

    def today(self, coordinate: Coordinate) -> date:
        zone = dt_util.get_time_zone(self._last_zone) if self._last_zone else None
        return dt_util.now(zone).date()

    async def get_events(self, coordinate: Coordinate, day: date) -> DailyPrayerTimes:
        """
        Fetch the timings for `day` at `coordinate`.

        Example request:
        https://api.aladhan.com/v1/timings/17-10-2026?latitude=-6.2&longitude=106.8&method=20
        """
        if not coordinate.is_valid():
            raise CalculationError(
                CalculationErrorKind.UNSUPPORTED_LOCATION,
                f"Coordinate out of range: ({coordinate.latitude}, {coordinate.longitude})",
            )

        url = f"{self.url}/{day.strftime('%d-%m-%Y')}"
        params = {
            "latitude": coordinate.latitude,
            "longitude": coordinate.longitude,
            "method": self.method,
        }
        headers = {"accept": "application/json"}

        try:
            raw = await make_request(url, headers=headers, params=params, timeout=self.timeout)
        except (asyncio.TimeoutError, TimeoutError) as exc:
            _LOGGER.warning("Timeout fetching prayer times for %s", day)
            raise CalculationError(CalculationErrorKind.UNAVAILABLE, "Prayer times request timed out") from exc
        except aiohttp.ClientError as exc:
            _LOGGER.warning("Connection error fetching prayer times for %s: %s", day, exc)
            raise CalculationError(CalculationErrorKind.UNAVAILABLE, str(exc)) from exc
        except ApiResponseError as exc:
            if 400 <= exc.status < 500 and exc.status != 429:
                raise CalculationError(CalculationErrorKind.UNSUPPORTED_LOCATION, str(exc)) from exc
            raise CalculationError(CalculationErrorKind.UNAVAILABLE, str(exc)) from exc
        except ValueError as exc:
            raise CalculationError(CalculationErrorKind.UNAVAILABLE, str(exc)) from exc

        return self._parse(coordinate, day, raw)

    def _parse(self, coordinate: Coordinate, day: date, raw) -> DailyPrayerTimes:
        data = raw.get("data") if isinstance(raw, dict) else None
        if not isinstance(data, dict) or raw.get("code") != 200:
            _LOGGER.error("Unexpected prayer times response for %s: %s", day, raw)
            raise CalculationError(CalculationErrorKind.UNSUPPORTED_LOCATION, f"Unexpected response: {raw!r}")

        timings = data.get("timings")
        meta = data.get("meta")
        if not isinstance(timings, dict):
            _LOGGER.error("Prayer times response for %s has no timings: %s", day, raw)
            raise CalculationError(CalculationErrorKind.UNSUPPORTED_LOCATION, f"Unexpected timings: {timings!r}")
        if not isinstance(meta, dict):
            meta = {}
        zone_name = meta.get("timezone") or ""
        if not isinstance(zone_name, str):
            zone_name = ""
        zone = dt_util.get_time_zone(zone_name) if zone_name else None
        if zone is None:
            zone = dt_util.DEFAULT_TIME_ZONE
            zone_name = str(zone)
        else:
            self._last_zone = zone_name

        try:
            events = tuple(
                PrayerEvent(name, parse_timing(timings[name.value], day, zone))
                for name in PrayerName
                if name.value in timings
            )
            result = DailyPrayerTimes(day=day, timezone=zone_name, events=events)
        except (ValueError, TypeError, AttributeError) as exc:
            raise CalculationError(CalculationErrorKind.UNSUPPORTED_LOCATION, str(exc)) from exc

        if not result.events:
            raise CalculationError(CalculationErrorKind.UNSUPPORTED_LOCATION, "No timings in response")
        return result
