"""
Platform for prayer location sensors.
This module is responsible for setting up the next-prayer, address and
per-prayer time sensor entities and updating their state from the
coordinator snapshot.
"""
from __future__ import annotations

from datetime import datetime, timedelta
import logging

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity
from homeassistant.core import HomeAssistant, callback
from homeassistant import config_entries
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.event import async_track_time_interval
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import PRAYER_ICONS
from .coordinator import PrayerLocationCoordinator
from .models import PrayerName

_LOGGER = logging.getLogger(__name__)

# How often the next-prayer countdown is re-evaluated between coordinator pushes
COUNTDOWN_INTERVAL = timedelta(minutes=1)


class PrayerLocationEntity(CoordinatorEntity[PrayerLocationCoordinator], SensorEntity):
    """Base class: one device per config entry, state read from the coordinator snapshot."""

    _attr_has_entity_name = True

    def __init__(self, coordinator: PrayerLocationCoordinator, key: str) -> None:
        super().__init__(coordinator)
        self._attr_unique_id = f"prayer_location_{coordinator.entry_data['guid']}_{key}"

    @property
    def device_info(self) -> DeviceInfo | None:
        """Return the device info."""
        return self.coordinator.get_device_info()


class NextPrayerSensor(PrayerLocationEntity):
    """Name of the next prayer; the countdown is recomputed on every state write."""

    _attr_icon = "mdi:mosque"

    def __init__(self, coordinator: PrayerLocationCoordinator) -> None:
        super().__init__(coordinator, "next_prayer")
        self._attr_name = "Next Prayer"

    async def async_added_to_hass(self) -> None:
        await super().async_added_to_hass()
        self.async_on_remove(
            async_track_time_interval(self.hass, self._async_tick, COUNTDOWN_INTERVAL)
        )

    @callback
    def _async_tick(self, _now: datetime) -> None:
        self.async_write_ha_state()

    @property
    def native_value(self) -> str | None:
        next_prayer = self.coordinator.get_next_prayer()
        if next_prayer is None:
            return None
        return next_prayer.event.name.value

    @property
    def icon(self) -> str | None:
        next_prayer = self.coordinator.get_next_prayer()
        if next_prayer is None:
            return self._attr_icon
        return PRAYER_ICONS.get(next_prayer.event.name.value, self._attr_icon)

    @property
    def extra_state_attributes(self) -> dict:
        snapshot = self.coordinator.get_snapshot()
        next_prayer = self.coordinator.get_next_prayer()
        error = snapshot.error
        attributes = {
            "state": snapshot.state.value,
            "loading": snapshot.loading,
            "error": error.kind.value if error is not None else None,
        }
        if next_prayer is not None:
            attributes["time"] = next_prayer.event.time.isoformat()
            attributes["remaining_minutes"] = int(next_prayer.remaining.total_seconds() // 60)
        return attributes


class AddressSensor(PrayerLocationEntity):
    """Resolved civil address of the tracked location."""

    _attr_icon = "mdi:map-marker"

    def __init__(self, coordinator: PrayerLocationCoordinator) -> None:
        super().__init__(coordinator, "address")
        self._attr_name = "Address"

    @property
    def native_value(self) -> str | None:
        address = self.coordinator.get_snapshot().address
        if address is None:
            return None
        # State is capped at 255 characters by HA
        return (address.short_name or address.full_address)[:255] or None

    @property
    def extra_state_attributes(self) -> dict:
        snapshot = self.coordinator.get_snapshot()
        address = snapshot.address
        attributes = {
            "street": address.street if address else "",
            "city": address.city if address else "",
            "district": address.district if address else "",
            "province": address.province if address else "",
            "country": address.country if address else "",
            "full_address": address.full_address if address else "",
            "address_error": snapshot.address_error.kind.value if snapshot.address_error else None,
            "sensor_error": snapshot.sensor_error.kind.value if snapshot.sensor_error else None,
        }
        if snapshot.coordinate is not None:
            attributes["latitude"] = snapshot.coordinate.latitude
            attributes["longitude"] = snapshot.coordinate.longitude
        return attributes


class PrayerTimeSensor(PrayerLocationEntity):
    """Today's time of one prayer."""

    _attr_device_class = SensorDeviceClass.TIMESTAMP

    def __init__(self, coordinator: PrayerLocationCoordinator, prayer: PrayerName) -> None:
        super().__init__(coordinator, prayer.value.lower())
        self._prayer = prayer
        self._attr_name = prayer.value
        self._attr_icon = PRAYER_ICONS.get(prayer.value)

    @property
    def native_value(self) -> datetime | None:
        prayer_times = self.coordinator.get_snapshot().prayer_times
        if prayer_times is None:
            return None
        event = prayer_times.get(self._prayer)
        return event.time if event is not None else None


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add sensors for passed config_entry in HA."""
    _LOGGER.debug("Starting sensor setup for Prayer Location integration")
    coordinator: PrayerLocationCoordinator = config_entry.runtime_data

    entities: list[SensorEntity] = [
        NextPrayerSensor(coordinator),
        AddressSensor(coordinator),
    ]
    entities.extend(PrayerTimeSensor(coordinator, prayer) for prayer in PrayerName)
    async_add_entities(entities)
