import logging

import voluptuous as vol

from homeassistant import config_entries, core
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.helpers.start import async_at_started

from .const import (
    CONF_LOCATION_ENTITY,
    CONF_NOTIFICATION_LEAD,
    CONF_NOTIFY_SERVICE,
    DEFAULT_LOCATION_ENTITY,
    DEFAULT_NOTIFICATION_LEAD,
    DOMAIN,
    SERVICE_REFRESH,
    SERVICE_RESET,
)
from .coordinator import PrayerLocationCoordinator, RefreshTrigger
from .location import EntityLocationSource
from .notifications import NotifyServiceScheduler

PLATFORMS: list[Platform] = [Platform.SENSOR]
_LOGGER = logging.getLogger(__name__)

SERVICE_SCHEMA = vol.Schema({})


async def async_setup(hass: core.HomeAssistant, config: dict) -> bool:
    """Set up the integration and its services."""
    hass.data.setdefault(DOMAIN, {})

    async def _async_handle_refresh(call: ServiceCall) -> None:
        for coordinator in _loaded_coordinators(hass):
            await coordinator.async_refresh_location(RefreshTrigger.MANUAL)

    async def _async_handle_reset(call: ServiceCall) -> None:
        for coordinator in _loaded_coordinators(hass):
            await coordinator.async_reset()

    hass.services.async_register(DOMAIN, SERVICE_REFRESH, _async_handle_refresh, schema=SERVICE_SCHEMA)
    hass.services.async_register(DOMAIN, SERVICE_RESET, _async_handle_reset, schema=SERVICE_SCHEMA)
    return True


def _loaded_coordinators(hass: HomeAssistant) -> list[PrayerLocationCoordinator]:
    return [
        entry.runtime_data
        for entry in hass.config_entries.async_entries(DOMAIN)
        if isinstance(getattr(entry, "runtime_data", None), PrayerLocationCoordinator)
    ]


async def async_setup_entry(
    hass: core.HomeAssistant, entry: config_entries.ConfigEntry
) -> bool:
    """Set up platform from a ConfigEntry."""
    entry_data = {**entry.data, **entry.options}

    scheduler = None
    notify_service = entry_data.get(CONF_NOTIFY_SERVICE)
    if notify_service:
        scheduler = NotifyServiceScheduler(
            hass,
            notify_service,
            entry_data.get(CONF_NOTIFICATION_LEAD, DEFAULT_NOTIFICATION_LEAD),
        )

    coordinator = PrayerLocationCoordinator(hass, entry_data, config_entry=entry, scheduler=scheduler)
    source = EntityLocationSource(
        hass, coordinator, entry_data.get(CONF_LOCATION_ENTITY, DEFAULT_LOCATION_ENTITY)
    )

    # First fix: resolve before entities are added so they start populated
    fix = source.current_fix()
    if fix is not None:
        await coordinator.async_refresh_location(RefreshTrigger.LOCATION, fix)

    source.async_start()
    entry.async_on_unload(source.async_stop)
    entry.runtime_data = coordinator

    async def _async_on_started(_hass: HomeAssistant) -> None:
        await coordinator.async_refresh_location(RefreshTrigger.FOREGROUND)

    entry.async_on_unload(async_at_started(hass, _async_on_started))
    entry.async_on_unload(
        entry.add_update_listener(_async_update_listener)
    )

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    return True


async def _async_update_listener(hass: HomeAssistant, config_entry):
    """Handle config options update."""
    # Reload the integration when the options change.
    await hass.config_entries.async_reload(config_entry.entry_id)


async def async_unload_entry(
    hass: core.HomeAssistant, entry: config_entries.ConfigEntry
) -> bool:
    """Unload a config entry."""
    # The coordinator registered its own shutdown with entry.async_on_unload
    return await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
