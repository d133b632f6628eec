"""
Location source: feeds coordinator refreshes from a Home Assistant entity.

Any entity that carries `latitude` / `longitude` attributes works
(device_tracker, person, zone). Fixes closer than MIN_REFRESH_DISTANCE_KM to
the last forwarded one are dropped so sensor noise cannot cause refresh storms.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from homeassistant.const import ATTR_LATITUDE, ATTR_LONGITUDE, STATE_UNAVAILABLE, STATE_UNKNOWN
from homeassistant.core import Event, HomeAssistant, State, callback
from homeassistant.helpers.event import async_track_state_change_event

from .const import MIN_REFRESH_DISTANCE_KM
from .errors import SensorError, SensorErrorKind
from .models import Coordinate

if TYPE_CHECKING:
    from .coordinator import PrayerLocationCoordinator

_LOGGER = logging.getLogger(__name__)


def coordinate_from_state(entity_id: str, state: State | None) -> Coordinate:
    """
    Read a Coordinate from an entity state.

    Raises SensorError(UNAVAILABLE) when the entity is missing or not
    reporting, and SensorError(PERMISSION_DENIED) when it reports but does
    not expose a position (e.g. a phone with location access revoked).
    """
    if state is None or state.state in (STATE_UNAVAILABLE, STATE_UNKNOWN):
        raise SensorError(SensorErrorKind.UNAVAILABLE, f"{entity_id} is not available")

    latitude = state.attributes.get(ATTR_LATITUDE)
    longitude = state.attributes.get(ATTR_LONGITUDE)
    if latitude is None or longitude is None:
        raise SensorError(SensorErrorKind.PERMISSION_DENIED, f"{entity_id} does not expose a position")

    try:
        coordinate = Coordinate(float(latitude), float(longitude))
    except (TypeError, ValueError) as exc:
        raise SensorError(SensorErrorKind.UNAVAILABLE, f"{entity_id} has an invalid position") from exc
    if not coordinate.is_valid():
        raise SensorError(SensorErrorKind.UNAVAILABLE, f"{entity_id} has an out-of-range position")
    return coordinate


class EntityLocationSource:
    """Subscribes to one entity and forwards significant moves to the coordinator."""

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: PrayerLocationCoordinator,
        entity_id: str,
        min_distance_km: float = MIN_REFRESH_DISTANCE_KM,
    ) -> None:
        self.hass = hass
        self.coordinator = coordinator
        self.entity_id = entity_id
        self.min_distance_km = min_distance_km
        self._last_forwarded: Coordinate | None = None
        self._error_reported: bool = False
        self._unsub = None

    @callback
    def async_start(self) -> None:
        """Start listening for state changes of the configured entity."""
        if self._unsub is None:
            self._unsub = async_track_state_change_event(
                self.hass, [self.entity_id], self._async_state_changed
            )

    @callback
    def async_stop(self) -> None:
        if self._unsub is not None:
            self._unsub()
            self._unsub = None

    def current_fix(self) -> Coordinate | None:
        """
        Read the entity right now and record it as forwarded.

        Used for the initial fix; reports a SensorError to the coordinator
        and returns None when the position cannot be read.
        """
        try:
            coordinate = coordinate_from_state(self.entity_id, self.hass.states.get(self.entity_id))
        except SensorError as err:
            self._report_error(err)
            return None
        self._last_forwarded = coordinate
        self._error_reported = False
        return coordinate

    @callback
    def _async_state_changed(self, event: Event) -> None:
        self.async_process_state(event.data.get("new_state"))

    @callback
    def async_process_state(self, state: State | None) -> None:
        """Forward the state's position if it is usable and far enough from the last one."""
        try:
            coordinate = coordinate_from_state(self.entity_id, state)
        except SensorError as err:
            self._report_error(err)
            return

        recovering = self._error_reported
        last = self._last_forwarded
        if not recovering and last is not None and last.distance_km(coordinate) <= self.min_distance_km:
            _LOGGER.debug(
                "Ignoring fix (%.5f, %.5f): within %.1f km of last one",
                coordinate.latitude, coordinate.longitude, self.min_distance_km,
            )
            return

        self._last_forwarded = coordinate
        self._error_reported = False
        self.hass.async_create_task(self.coordinator.async_update_coordinate(coordinate))

    def _report_error(self, err: SensorError) -> None:
        _LOGGER.debug("Location source %s: %s", self.entity_id, err)
        self._error_reported = True
        self.coordinator.async_set_sensor_error(err)
