"""
Local prayer alerts.

NotificationScheduler is the contract the coordinator feeds with upcoming
events. NotifyServiceScheduler arms one timer per alert and delivers it
through a Home Assistant notify service when the timer fires.
"""
from __future__ import annotations

import dataclasses
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

from homeassistant.core import HomeAssistant
from homeassistant.helpers.event import async_track_point_in_time

from .const import DEFAULT_NOTIFICATION_LEAD, NOTIFICATION_IDS
from .models import PrayerEvent, PrayerName

_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class PrayerAlert:
    event: PrayerEvent
    fire_at: datetime

    @property
    def notification_id(self) -> int:
        return NOTIFICATION_IDS[self.event.name.value]


def build_alerts(
    events: Sequence[PrayerEvent],
    now: datetime,
    lead: timedelta = timedelta(minutes=DEFAULT_NOTIFICATION_LEAD),
) -> list[PrayerAlert]:
    """Alerts `lead` before each prayer that has not fired yet. Sunrise is never alerted."""
    alerts = []
    for event in events:
        if event.name is PrayerName.SUNRISE:
            continue
        fire_at = event.time - lead
        if fire_at > now:
            alerts.append(PrayerAlert(event, fire_at))
    return alerts


class NotificationScheduler(ABC):
    """Device-level alert delivery."""

    @abstractmethod
    async def async_schedule_alerts(self, alerts: Sequence[PrayerAlert]) -> None:
        """Replace every previously scheduled alert with `alerts`."""

    @abstractmethod
    async def async_cancel_all(self) -> None:
        """Drop every pending alert."""


class NotifyServiceScheduler(NotificationScheduler):
    """Delivers alerts through notify.<service> at each alert's fire time."""

    def __init__(self, hass: HomeAssistant, service: str, lead_minutes: int = DEFAULT_NOTIFICATION_LEAD) -> None:
        self.hass = hass
        # Accept both "mobile_app_phone" and "notify.mobile_app_phone"
        self.service = service.removeprefix("notify.")
        self.lead_minutes = lead_minutes
        self._unsubs: dict[int, Callable[[], None]] = {}

    async def async_schedule_alerts(self, alerts: Sequence[PrayerAlert]) -> None:
        # Swap the whole set before arming anything so no stale timer survives
        previous, self._unsubs = self._unsubs, {}
        for unsub in previous.values():
            unsub()

        for alert in alerts:
            self._unsubs[alert.notification_id] = async_track_point_in_time(
                self.hass,
                self._make_action(alert),
                alert.fire_at,
            )
        _LOGGER.debug(
            "Scheduled %d prayer alert(s) via notify.%s", len(self._unsubs), self.service
        )

    async def async_cancel_all(self) -> None:
        await self.async_schedule_alerts([])

    def _make_action(self, alert: PrayerAlert):
        async def _fire(_now: datetime) -> None:
            self._unsubs.pop(alert.notification_id, None)
            await self._async_send(alert)

        return _fire

    async def _async_send(self, alert: PrayerAlert) -> None:
        name = alert.event.name.value
        at = alert.event.time.strftime("%H:%M")
        try:
            await self.hass.services.async_call(
                "notify",
                self.service,
                {
                    "title": f"{name} prayer time",
                    "message": f"{name} starts in {self.lead_minutes} minutes ({at}).",
                    "data": {"tag": f"prayer_{alert.notification_id}"},
                },
                blocking=False,
            )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Failed to send %s alert via notify.%s: %s", name, self.service, exc)
