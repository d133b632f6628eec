"""
DataUpdateCoordinator for the Prayer Location integration.

Responsibilities:
- Own the single LocationSnapshot for the lifetime of a config entry.
- Turn refresh triggers (manual, foreground, periodic tick, location update)
  into at most one in-flight resolution per coordinate generation.
- Resolve coordinate → address (one retry on transient failures) and
  coordinate + date → prayer times, tracking the two facets independently.
- Discard results that belong to a superseded coordinate generation.
- Push upcoming prayer alerts to the NotificationScheduler.
- Push LocationSnapshot replacements to entities at every state transition.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from datetime import date, datetime, timedelta

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.device_registry import DeviceEntryType
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator
from homeassistant.util import dt as dt_util

from .const import (
    CALL_TIMEOUT,
    CONF_CALCULATION_METHOD,
    CONF_ENTRY_NAME,
    CONF_LANGUAGE,
    CONF_NOTIFICATION_LEAD,
    DEFAULT_CALCULATION_METHOD,
    DEFAULT_ENTRY_NAME,
    DEFAULT_LANGUAGE,
    DEFAULT_NOTIFICATION_LEAD,
    DOMAIN,
    MIN_REFRESH_DISTANCE_KM,
    RETRY_BACKOFF,
    RETRY_INTERVAL,
    STALE_AFTER,
    UPDATE_INTERVAL,
    VERSION,
)
from .coordinator_data import LocationSnapshot, RefreshState, RefreshTrigger
from .errors import CalculationError, CalculationErrorKind, GeocodeError, GeocodeErrorKind, SensorError
from .geocoder import AddressResolver
from .models import Address, Coordinate, DailyPrayerTimes, NextPrayer
from .next_prayer import select_next
from .notifications import NotificationScheduler, build_alerts
from .prayer_times import AladhanPrayerTimeProvider, PrayerTimeProvider

__all__ = ["LocationSnapshot", "PrayerLocationCoordinator", "RefreshState", "RefreshTrigger"]

_LOGGER = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# PrayerLocationCoordinator
# ---------------------------------------------------------------------------

class PrayerLocationCoordinator(DataUpdateCoordinator[LocationSnapshot]):
    """
    Coordinator for the Prayer Location integration.

    All snapshot mutation goes through this class. Entities and other
    consumers read `data` / get_snapshot() and subscribe with
    async_add_listener().
    """

    def __init__(
        self,
        hass: HomeAssistant,
        entry_data: dict,
        config_entry: ConfigEntry | None = None,
        resolver: AddressResolver | None = None,
        provider: PrayerTimeProvider | None = None,
        scheduler: NotificationScheduler | None = None,
    ) -> None:
        """Initialize the coordinator from config-entry data."""
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            update_interval=timedelta(seconds=UPDATE_INTERVAL),
            config_entry=config_entry,
        )

        self._entry_data = entry_data
        self.resolver = resolver or AddressResolver(
            language=entry_data.get(CONF_LANGUAGE, DEFAULT_LANGUAGE),
        )
        self.provider = provider or AladhanPrayerTimeProvider(
            method=entry_data.get(CONF_CALCULATION_METHOD, DEFAULT_CALCULATION_METHOD),
        )
        self.scheduler = scheduler
        self.notification_lead = timedelta(
            minutes=entry_data.get(CONF_NOTIFICATION_LEAD, DEFAULT_NOTIFICATION_LEAD)
        )
        self.retry_backoff: float = RETRY_BACKOFF
        self.call_timeout: float = CALL_TIMEOUT

        # Monotonic coordinate generation; results are written only if it still matches
        self._generation: int = 0
        self._inflight: asyncio.Task | None = None
        self._inflight_coordinate: Coordinate | None = None
        # False while the in-flight cycle only re-fetches prayer times
        self._inflight_full: bool = False

        # Set by SensorError(PERMISSION_DENIED), cleared by the next coordinate
        self._auto_refresh_blocked: bool = False

        # Monotonic timestamps of the last successful address resolution and
        # of the last committed cycle of any outcome
        self._last_success: float = 0.0
        self._last_attempt: float = 0.0

        # Snapshot starts empty; entities must handle None gracefully until first fix
        self.data = LocationSnapshot()

    # ------------------------------------------------------------------
    # HA entry point
    # ------------------------------------------------------------------

    async def _async_update_data(self) -> LocationSnapshot:
        """Called by HA on every update_interval tick."""
        await self.async_refresh_location(RefreshTrigger.PERIODIC)
        return self.data

    # ------------------------------------------------------------------
    # Consumer read interface
    # ------------------------------------------------------------------

    def get_snapshot(self) -> LocationSnapshot:
        return self.data

    def get_next_prayer(self, now: datetime | None = None) -> NextPrayer | None:
        """Select the next prayer against the current clock (never cached)."""
        snapshot = self.data
        if snapshot.prayer_times is None:
            return None
        following = snapshot.following_prayer_times
        return select_next(
            snapshot.prayer_times.events,
            now or dt_util.now(),
            following.events if following is not None else None,
        )

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def async_refresh_location(
        self, trigger: RefreshTrigger, coordinate: Coordinate | None = None
    ) -> None:
        """
        Bring the snapshot up to date for `coordinate` (or the last known one).

        A request for (roughly) the coordinate already being resolved joins
        that resolution; a materially different coordinate supersedes it.
        Automatic triggers re-resolve only the facets that are due: a fresh
        address is not geocoded again, and a failed facet waits
        RETRY_INTERVAL before the next automatic attempt. When nothing is due
        the next prayer is only re-selected. MANUAL always runs a full cycle.
        """
        if trigger is not RefreshTrigger.MANUAL and self._auto_refresh_blocked:
            _LOGGER.debug("Skipping %s refresh: location permission denied", trigger.value)
            return

        inflight = self._inflight if self._inflight is not None and not self._inflight.done() else None
        target = coordinate or (self._inflight_coordinate if inflight else None) or self.data.coordinate
        if target is None:
            _LOGGER.debug("No location fix yet, %s refresh skipped", trigger.value)
            return

        if inflight is not None:
            if not self._moved(self._inflight_coordinate, target) and (
                self._inflight_full or trigger is not RefreshTrigger.MANUAL
            ):
                _LOGGER.debug("Joining in-flight resolution for %s refresh", trigger.value)
                await asyncio.shield(inflight)
                return
            _LOGGER.debug(
                "Superseding in-flight resolution for %s with %s",
                self._inflight_coordinate, target,
            )
        elif trigger is not RefreshTrigger.MANUAL:
            if self._address_due(target):
                await self._async_start_resolution(target)
            elif self._prayer_times_due(target):
                _LOGGER.debug("Address still fresh, %s refresh fetches prayer times only", trigger.value)
                await self._async_start_resolution(target, resolve_address=False)
            else:
                await self._async_revalidate()
            return

        await self._async_start_resolution(target)

    async def async_update_coordinate(self, coordinate: Coordinate) -> None:
        """Entry point for the location source: a new (already de-noised) fix."""
        if self.data.sensor_error is not None or self._auto_refresh_blocked:
            self._auto_refresh_blocked = False
            self.async_set_updated_data(dataclasses.replace(self.data, sensor_error=None))
        await self.async_refresh_location(RefreshTrigger.LOCATION, coordinate)

    @callback
    def async_set_sensor_error(self, error: SensorError) -> None:
        """Entry point for the location source: the position cannot be read."""
        self._auto_refresh_blocked = error.blocks_automatic_refresh
        if error.blocks_automatic_refresh:
            _LOGGER.warning("Location permission denied; automatic refresh paused")
        else:
            _LOGGER.debug("Location unavailable: %s", error)
        self.async_set_updated_data(dataclasses.replace(self.data, sensor_error=error))

    async def async_reset(self) -> None:
        """Return to the initial snapshot and drop any in-flight work and alerts."""
        self._generation += 1
        self._inflight = None
        self._inflight_coordinate = None
        self._auto_refresh_blocked = False
        self._last_success = 0.0
        self._last_attempt = 0.0
        if self.scheduler is not None:
            try:
                await self.scheduler.async_cancel_all()
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Failed to cancel prayer alerts: %s", exc)
        self.async_set_updated_data(LocationSnapshot(generation=self._generation))

    # ------------------------------------------------------------------
    # Resolution cycle
    # ------------------------------------------------------------------

    async def _async_start_resolution(self, coordinate: Coordinate, resolve_address: bool = True) -> None:
        self._generation += 1
        generation = self._generation
        self._inflight_coordinate = coordinate
        self._inflight_full = resolve_address
        self.async_set_updated_data(
            dataclasses.replace(self.data, state=RefreshState.RESOLVING)
        )
        task = self.hass.async_create_task(self._async_resolve(generation, coordinate, resolve_address))
        self._inflight = task
        await asyncio.shield(task)

    async def _async_resolve(self, generation: int, coordinate: Coordinate, resolve_address: bool = True) -> None:
        """Run one resolution cycle and commit it unless it has been superseded."""
        previous = self.data
        address: Address | None = previous.address
        address_error: GeocodeError | None = previous.address_error
        if resolve_address:
            address = None
            address_error = None
            try:
                address = await self._async_resolve_address(generation, coordinate)
            except GeocodeError as exc:
                address_error = exc

            if not self._is_current(generation):
                _LOGGER.debug("Discarding stale address result for %s", coordinate)
                return

        prayer_times, following, prayer_error = await self._async_fetch_prayer_times(coordinate)

        if not self._is_current(generation):
            _LOGGER.debug("Discarding stale prayer times for %s", coordinate)
            return

        previous = self.data
        updated_at = previous.updated_at
        if address_error is None:
            state = RefreshState.READY
            if resolve_address:
                self._last_success = time.monotonic()
                updated_at = dt_util.utcnow()
        else:
            state = RefreshState.FAILED
            if resolve_address and address_error.retryable:
                # Keep the last good address; the next tick will try again
                address = previous.address
                _LOGGER.warning("Reverse geocoding failed after retry: %s", address_error)
            elif resolve_address:
                _LOGGER.warning("Address unavailable for %s: %s", coordinate, address_error)
        self._last_attempt = time.monotonic()

        now = dt_util.now()
        snapshot = dataclasses.replace(
            previous,
            coordinate=coordinate,
            address=address,
            prayer_times=prayer_times,
            following_prayer_times=following,
            next_prayer=self._select(prayer_times, following, now),
            state=state,
            address_error=address_error,
            prayer_error=prayer_error,
            generation=generation,
            updated_at=updated_at,
        )
        self.async_set_updated_data(snapshot)

        if prayer_error is None and prayer_times is not None:
            await self._async_schedule_alerts(prayer_times, following, now)

    async def _async_resolve_address(self, generation: int, coordinate: Coordinate) -> Address | None:
        """Resolve the address, retrying once after a transient failure."""
        try:
            return await self._async_geocode(coordinate)
        except GeocodeError as exc:
            if not exc.retryable:
                raise
            _LOGGER.debug(
                "Reverse geocoding failed (%s), retrying in %ss", exc.kind.value, self.retry_backoff
            )

        await asyncio.sleep(self.retry_backoff)
        if not self._is_current(generation):
            return None
        return await self._async_geocode(coordinate)

    async def _async_geocode(self, coordinate: Coordinate) -> Address:
        """One bounded resolver call; anything but a GeocodeError is mapped to one."""
        try:
            return await asyncio.wait_for(self.resolver.resolve(coordinate), self.call_timeout)
        except GeocodeError:
            raise
        except asyncio.TimeoutError as exc:
            _LOGGER.warning("Reverse geocoding for %s timed out after %ss", coordinate, self.call_timeout)
            raise GeocodeError(GeocodeErrorKind.NETWORK, "Reverse geocoding timed out") from exc
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Unexpected error resolving address for %s: %r", coordinate, exc)
            raise GeocodeError(GeocodeErrorKind.MALFORMED, f"Unexpected error: {exc!r}") from exc

    async def _async_get_events(self, coordinate: Coordinate, day: date) -> DailyPrayerTimes:
        """One bounded provider call; anything but a CalculationError is mapped to one."""
        try:
            return await asyncio.wait_for(self.provider.get_events(coordinate, day), self.call_timeout)
        except CalculationError:
            raise
        except asyncio.TimeoutError as exc:
            raise CalculationError(CalculationErrorKind.UNAVAILABLE, "Prayer times request timed out") from exc
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Unexpected error fetching prayer times for %s: %r", day, exc)
            raise CalculationError(CalculationErrorKind.UNAVAILABLE, f"Unexpected error: {exc!r}") from exc

    async def _async_fetch_prayer_times(
        self, coordinate: Coordinate
    ) -> tuple[DailyPrayerTimes | None, DailyPrayerTimes | None, CalculationError | None]:
        """
        Fetch today's events (and tomorrow's once today's are over).

        On failure the previously computed times are returned with the error
        so the snapshot stays usable.
        """
        previous = self.data
        day = self.provider.today(coordinate)
        try:
            today = await self._async_get_events(coordinate, day)
        except CalculationError as exc:
            _LOGGER.warning("Failed to fetch prayer times for %s: %s", day, exc)
            return previous.prayer_times, previous.following_prayer_times, exc

        following = None
        if today.all_passed(dt_util.now()):
            following = await self._async_fetch_following(coordinate, day)
        return today, following, None

    async def _async_fetch_following(self, coordinate: Coordinate, day: date) -> DailyPrayerTimes | None:
        try:
            return await self._async_get_events(coordinate, day + timedelta(days=1))
        except CalculationError as exc:
            _LOGGER.debug("Failed to fetch next day's prayer times: %s", exc)
            return None

    async def _async_revalidate(self) -> None:
        """Snapshot is fresh: fetch tomorrow's events if due, then re-select."""
        generation = self._generation
        snapshot = self.data
        now = dt_util.now()
        following = snapshot.following_prayer_times
        if (
            snapshot.prayer_times is not None
            and following is None
            and snapshot.prayer_times.all_passed(now)
        ):
            following = await self._async_fetch_following(snapshot.coordinate, snapshot.prayer_times.day)
            if not self._is_current(generation):
                return
            if following is not None:
                await self._async_schedule_alerts(snapshot.prayer_times, following, now)

        self.async_set_updated_data(
            dataclasses.replace(
                self.data,
                following_prayer_times=following,
                next_prayer=self._select(snapshot.prayer_times, following, now),
            )
        )

    async def _async_schedule_alerts(
        self,
        prayer_times: DailyPrayerTimes,
        following: DailyPrayerTimes | None,
        now: datetime,
    ) -> None:
        """Hand upcoming alerts to the scheduler; its failures never fail a refresh."""
        if self.scheduler is None:
            return
        events = list(prayer_times.events)
        if following is not None:
            events.extend(following.events)
        alerts = build_alerts(events, now, self.notification_lead)
        try:
            await self.scheduler.async_schedule_alerts(alerts)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Failed to schedule prayer alerts: %s", exc)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    @staticmethod
    def _moved(previous: Coordinate | None, current: Coordinate) -> bool:
        if previous is None:
            return True
        return previous.distance_km(current) > MIN_REFRESH_DISTANCE_KM

    def _retry_due(self) -> bool:
        return time.monotonic() - self._last_attempt >= RETRY_INTERVAL

    def _address_due(self, coordinate: Coordinate) -> bool:
        """True when an automatic trigger has to geocode `coordinate` again."""
        snapshot = self.data
        if snapshot.coordinate is None or self._moved(snapshot.coordinate, coordinate):
            return True
        if snapshot.address_error is not None:
            return self._retry_due()
        return snapshot.address is None or time.monotonic() - self._last_success >= STALE_AFTER

    def _prayer_times_due(self, coordinate: Coordinate) -> bool:
        """True when today's events are missing or failed (and the retry interval has passed)."""
        snapshot = self.data
        if snapshot.prayer_error is not None:
            return self._retry_due()
        return snapshot.prayer_times is None or snapshot.prayer_times.day != self.provider.today(coordinate)

    @staticmethod
    def _select(
        prayer_times: DailyPrayerTimes | None,
        following: DailyPrayerTimes | None,
        now: datetime,
    ) -> NextPrayer | None:
        if prayer_times is None:
            return None
        return select_next(
            prayer_times.events, now, following.events if following is not None else None
        )

    # ------------------------------------------------------------------
    # Entity helper: device info dict
    # ------------------------------------------------------------------

    def get_device_info(self) -> dict:
        """Return the HA DeviceInfo dict shared by all entities of this entry."""
        return {
            "identifiers": {(DOMAIN, self._entry_data["guid"])},
            "name": self._entry_data.get(CONF_ENTRY_NAME, DEFAULT_ENTRY_NAME),
            "manufacturer": "Prayer Location",
            "model": "AlAdhan / Nominatim",
            "sw_version": VERSION,
            "entry_type": DeviceEntryType.SERVICE,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def async_shutdown(self) -> None:
        """Clean up all resources owned by this coordinator."""
        self._generation += 1
        task, self._inflight = self._inflight, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if self.scheduler is not None:
            try:
                await self.scheduler.async_cancel_all()
            except Exception as exc:  # noqa: BLE001
                _LOGGER.debug("Failed to cancel prayer alerts on shutdown: %s", exc)
        await super().async_shutdown()

    @property
    def entry_data(self):
        return self._entry_data
