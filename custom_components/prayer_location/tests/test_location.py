"""
Tests for location.py: reading coordinates from entity states and the
movement filter in EntityLocationSource.
"""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

from homeassistant.core import State

from custom_components.prayer_location.errors import SensorError, SensorErrorKind
from custom_components.prayer_location.location import EntityLocationSource, coordinate_from_state
from custom_components.prayer_location.models import Coordinate

from .test_common import BANDUNG, JAKARTA, JAKARTA_NEARBY

ENTITY_ID = "device_tracker.phone"


def _state(coordinate: Coordinate | None = None, state: str = "home", **attributes) -> State:
    if coordinate is not None:
        attributes.setdefault("latitude", coordinate.latitude)
        attributes.setdefault("longitude", coordinate.longitude)
    return State(ENTITY_ID, state, attributes)


def _make_source(initial: State | None = None) -> EntityLocationSource:
    hass = MagicMock()
    hass.states.get = MagicMock(return_value=initial)
    coordinator = MagicMock()
    # Plain MagicMock so the "coroutine" handed to async_create_task is just a sentinel
    coordinator.async_update_coordinate = MagicMock(return_value="update")
    return EntityLocationSource(hass, coordinator, ENTITY_ID)


class TestCoordinateFromState(unittest.TestCase):

    def test_reads_latitude_longitude(self):
        self.assertEqual(coordinate_from_state(ENTITY_ID, _state(JAKARTA)), JAKARTA)

    def test_missing_entity_is_unavailable(self):
        with self.assertRaises(SensorError) as ctx:
            coordinate_from_state(ENTITY_ID, None)
        self.assertEqual(ctx.exception.kind, SensorErrorKind.UNAVAILABLE)

    def test_unavailable_state_is_unavailable(self):
        with self.assertRaises(SensorError) as ctx:
            coordinate_from_state(ENTITY_ID, _state(JAKARTA, state="unavailable"))
        self.assertEqual(ctx.exception.kind, SensorErrorKind.UNAVAILABLE)

    def test_missing_position_is_permission_denied(self):
        with self.assertRaises(SensorError) as ctx:
            coordinate_from_state(ENTITY_ID, _state(state="not_home"))
        self.assertEqual(ctx.exception.kind, SensorErrorKind.PERMISSION_DENIED)

    def test_non_numeric_position_is_unavailable(self):
        with self.assertRaises(SensorError) as ctx:
            coordinate_from_state(ENTITY_ID, _state(latitude="north", longitude=106.8))
        self.assertEqual(ctx.exception.kind, SensorErrorKind.UNAVAILABLE)

    def test_out_of_range_position_is_unavailable(self):
        with self.assertRaises(SensorError) as ctx:
            coordinate_from_state(ENTITY_ID, _state(latitude=-6.2, longitude=200.0))
        self.assertEqual(ctx.exception.kind, SensorErrorKind.UNAVAILABLE)


class TestEntityLocationSource(unittest.TestCase):

    def test_current_fix_returns_coordinate(self):
        source = _make_source(_state(JAKARTA))
        self.assertEqual(source.current_fix(), JAKARTA)
        source.coordinator.async_set_sensor_error.assert_not_called()

    def test_current_fix_reports_error(self):
        source = _make_source(_state(state="not_home"))

        self.assertIsNone(source.current_fix())

        error = source.coordinator.async_set_sensor_error.call_args.args[0]
        self.assertEqual(error.kind, SensorErrorKind.PERMISSION_DENIED)

    def test_first_fix_is_forwarded(self):
        source = _make_source()
        source.async_process_state(_state(JAKARTA))

        source.coordinator.async_update_coordinate.assert_called_once_with(JAKARTA)
        source.hass.async_create_task.assert_called_once_with("update")

    def test_small_move_is_ignored(self):
        source = _make_source(_state(JAKARTA))
        source.current_fix()

        source.async_process_state(_state(JAKARTA_NEARBY))

        source.coordinator.async_update_coordinate.assert_not_called()

    def test_large_move_is_forwarded(self):
        source = _make_source(_state(JAKARTA))
        source.current_fix()

        source.async_process_state(_state(BANDUNG))

        source.coordinator.async_update_coordinate.assert_called_once_with(BANDUNG)

    def test_small_moves_do_not_accumulate_from_ignored_fixes(self):
        # Distance is measured from the last forwarded fix, not the last seen one
        source = _make_source(_state(JAKARTA))
        source.current_fix()
        step = Coordinate(-6.2063, 106.8)  # ~0.7 km
        further = Coordinate(-6.2126, 106.8)  # ~1.4 km from JAKARTA

        source.async_process_state(_state(step))
        source.coordinator.async_update_coordinate.assert_not_called()

        source.async_process_state(_state(further))
        source.coordinator.async_update_coordinate.assert_called_once_with(further)

    def test_error_is_reported_to_coordinator(self):
        source = _make_source()
        source.async_process_state(_state(JAKARTA, state="unavailable"))

        error = source.coordinator.async_set_sensor_error.call_args.args[0]
        self.assertEqual(error.kind, SensorErrorKind.UNAVAILABLE)
        source.coordinator.async_update_coordinate.assert_not_called()

    def test_recovery_forwards_even_a_nearby_fix(self):
        source = _make_source(_state(JAKARTA))
        source.current_fix()
        source.async_process_state(_state(state="not_home"))

        source.async_process_state(_state(JAKARTA_NEARBY))

        source.coordinator.async_update_coordinate.assert_called_once_with(JAKARTA_NEARBY)

    def test_start_and_stop_subscription(self):
        source = _make_source()
        unsub = MagicMock()
        with patch(
            "custom_components.prayer_location.location.async_track_state_change_event",
            return_value=unsub,
        ) as mock_track:
            source.async_start()
            source.async_start()

        mock_track.assert_called_once()
        self.assertEqual(mock_track.call_args.args[1], [ENTITY_ID])

        source.async_stop()
        unsub.assert_called_once()

    def test_state_change_event_is_processed(self):
        source = _make_source()
        event = MagicMock()
        event.data = {"new_state": _state(JAKARTA)}

        source._async_state_changed(event)

        source.coordinator.async_update_coordinate.assert_called_once_with(JAKARTA)
