"""
Unit tests for __init__.py: async_setup (services), async_setup_entry and async_unload_entry.

Coverage:
- setup returns True, stores the coordinator in entry.runtime_data, forwards platforms
- the entity's current position is resolved before platforms are set up
- no initial resolution when the entity has no usable position
- the location source is started and stopped with the entry
- a notify scheduler is built only when a notify service is configured
- refresh / reset services fan out to every loaded coordinator
"""

from __future__ import annotations

import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from custom_components.prayer_location.coordinator import PrayerLocationCoordinator
from custom_components.prayer_location.coordinator_data import RefreshTrigger

from .test_common import JAKARTA, make_entry_data


def _make_mock_entry(**data) -> MagicMock:
    """Return a minimal mock ConfigEntry."""
    entry = MagicMock()
    entry.entry_id = "entry-1"
    entry.data = make_entry_data(**data)
    entry.options = {}
    entry.async_on_unload = MagicMock()
    entry.add_update_listener = MagicMock(return_value=MagicMock())
    return entry


def _make_hass() -> MagicMock:
    hass = MagicMock()
    hass.config_entries.async_forward_entry_setups = AsyncMock()
    hass.config_entries.async_unload_platforms = AsyncMock(return_value=True)
    return hass


def _make_mock_coordinator() -> MagicMock:
    coordinator = MagicMock()
    coordinator.async_refresh_location = AsyncMock()
    return coordinator


def _make_mock_source(fix=JAKARTA) -> MagicMock:
    source = MagicMock()
    source.current_fix = MagicMock(return_value=fix)
    return source


class TestAsyncSetupEntry(unittest.IsolatedAsyncioTestCase):
    """Tests for async_setup_entry in __init__.py."""

    async def _setup(self, entry=None, source=None, coordinator=None):
        from custom_components.prayer_location import async_setup_entry

        hass = _make_hass()
        entry = entry or _make_mock_entry()
        source = source or _make_mock_source()
        coordinator = coordinator or _make_mock_coordinator()

        with patch(
            "custom_components.prayer_location.PrayerLocationCoordinator",
            return_value=coordinator,
        ) as mock_coord_cls, patch(
            "custom_components.prayer_location.EntityLocationSource",
            return_value=source,
        ) as mock_source_cls, patch(
            "custom_components.prayer_location.async_at_started",
            return_value=MagicMock(),
        ):
            result = await async_setup_entry(hass, entry)

        return result, hass, entry, mock_coord_cls, mock_source_cls

    async def test_setup_completes(self):
        result, hass, _entry, _, _ = await self._setup()

        self.assertTrue(result)
        hass.config_entries.async_forward_entry_setups.assert_awaited_once()

    async def test_sets_runtime_data(self):
        coordinator = _make_mock_coordinator()
        _, _, entry, _, _ = await self._setup(coordinator=coordinator)

        self.assertEqual(entry.runtime_data, coordinator)

    async def test_initial_fix_resolved_before_platforms(self):
        coordinator = _make_mock_coordinator()
        await self._setup(coordinator=coordinator)

        coordinator.async_refresh_location.assert_awaited_once_with(RefreshTrigger.LOCATION, JAKARTA)

    async def test_no_initial_resolution_without_fix(self):
        coordinator = _make_mock_coordinator()
        await self._setup(coordinator=coordinator, source=_make_mock_source(fix=None))

        coordinator.async_refresh_location.assert_not_awaited()

    async def test_source_started_and_stopped_with_entry(self):
        source = _make_mock_source()
        _, _, entry, _, mock_source_cls = await self._setup(source=source)

        source.async_start.assert_called_once()
        entry.async_on_unload.assert_any_call(source.async_stop)
        self.assertEqual(mock_source_cls.call_args.args[2], "device_tracker.phone")

    async def test_no_scheduler_without_notify_service(self):
        _, _, _, mock_coord_cls, _ = await self._setup()

        self.assertIsNone(mock_coord_cls.call_args.kwargs["scheduler"])

    async def test_scheduler_built_for_notify_service(self):
        entry = _make_mock_entry(notify_service="notify.mobile_app_phone")

        _, _, _, mock_coord_cls, _ = await self._setup(entry=entry)

        scheduler = mock_coord_cls.call_args.kwargs["scheduler"]
        self.assertEqual(scheduler.service, "mobile_app_phone")
        self.assertEqual(scheduler.lead_minutes, 5)

    async def test_options_override_data(self):
        entry = _make_mock_entry()
        entry.options = {"location_entity": "person.ahmad"}

        _, _, _, mock_coord_cls, mock_source_cls = await self._setup(entry=entry)

        self.assertEqual(mock_source_cls.call_args.args[2], "person.ahmad")
        self.assertEqual(mock_coord_cls.call_args.args[1]["location_entity"], "person.ahmad")


class TestAsyncUnloadEntry(unittest.IsolatedAsyncioTestCase):

    async def test_unload_unloads_platforms(self):
        from custom_components.prayer_location import async_unload_entry

        hass = _make_hass()
        entry = _make_mock_entry()

        result = await async_unload_entry(hass, entry)

        self.assertTrue(result)
        hass.config_entries.async_unload_platforms.assert_awaited_once()


class TestServices(unittest.IsolatedAsyncioTestCase):

    async def _registered_handlers(self, coordinators):
        from custom_components.prayer_location import async_setup

        hass = MagicMock()
        hass.data = {}
        entries = []
        for coordinator in coordinators:
            entry = MagicMock()
            entry.runtime_data = coordinator
            entries.append(entry)
        # An entry that failed to set up has no coordinator
        not_loaded = MagicMock()
        not_loaded.runtime_data = None
        entries.append(not_loaded)
        hass.config_entries.async_entries = MagicMock(return_value=entries)

        self.assertTrue(await async_setup(hass, {}))
        return {
            call.args[1]: call.args[2]
            for call in hass.services.async_register.call_args_list
        }

    async def test_services_registered(self):
        handlers = await self._registered_handlers([])
        self.assertEqual(set(handlers), {"refresh", "reset"})

    async def test_refresh_service_triggers_manual_refresh(self):
        coordinators = [MagicMock(spec=PrayerLocationCoordinator) for _ in range(2)]
        handlers = await self._registered_handlers(coordinators)

        await handlers["refresh"](MagicMock())

        for coordinator in coordinators:
            coordinator.async_refresh_location.assert_awaited_once_with(RefreshTrigger.MANUAL)

    async def test_reset_service_resets_every_coordinator(self):
        coordinators = [MagicMock(spec=PrayerLocationCoordinator) for _ in range(2)]
        handlers = await self._registered_handlers(coordinators)

        await handlers["reset"](MagicMock())

        for coordinator in coordinators:
            coordinator.async_reset.assert_awaited_once()
