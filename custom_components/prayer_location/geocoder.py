"""
Reverse geocoding: coordinate → civil Address, via the Nominatim API.

Responsibilities:
- Validate the coordinate before any network traffic.
- Issue exactly one bounded request per resolve() call (no retries here).
- Map transport / HTTP failures onto GeocodeError kinds.
- Extract address parts from the loosely structured provider record using
  ordered, per-attribute field preference tables.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging

import aiohttp

from .const import (
    CITY_FIELDS,
    COUNTRY_FIELDS,
    DEFAULT_LANGUAGE,
    DISTRICT_FIELDS,
    GEOCODE_API_URL,
    GEOCODE_TIMEOUT,
    GEOCODE_USER_AGENT,
    GEOCODE_ZOOM,
    PROVINCE_FIELDS,
    STREET_FIELDS,
)
from .errors import GeocodeError, GeocodeErrorKind
from .models import Address, Coordinate
from .requests import ApiResponseError, make_request

_LOGGER = logging.getLogger(__name__)

# HTTP statuses Nominatim uses to throttle clients
RATE_LIMIT_STATUSES = (403, 429)


@dataclasses.dataclass(frozen=True)
class FieldPreferences:
    """Provider keys to try, in order, for each logical address attribute."""

    street: tuple[str, ...] = STREET_FIELDS
    city: tuple[str, ...] = CITY_FIELDS
    district: tuple[str, ...] = DISTRICT_FIELDS
    province: tuple[str, ...] = PROVINCE_FIELDS
    country: tuple[str, ...] = COUNTRY_FIELDS


def _first_present(record: dict, keys: tuple[str, ...]) -> str:
    for key in keys:
        value = record.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def extract_address(
    record: dict | None,
    display_name: str | None,
    preferences: FieldPreferences = FieldPreferences(),
) -> Address:
    """
    Build an Address from a provider address record.

    Missing attributes become empty strings. Raises GeocodeError(NO_RESULT)
    only when the record yields nothing at all and there is no display string.
    """
    record = record or {}
    address = Address(
        street=_first_present(record, preferences.street),
        city=_first_present(record, preferences.city),
        district=_first_present(record, preferences.district),
        province=_first_present(record, preferences.province),
        country=_first_present(record, preferences.country),
        full_address=display_name.strip() if isinstance(display_name, str) else "",
    )
    if address == Address():
        raise GeocodeError(GeocodeErrorKind.NO_RESULT, "Provider returned an empty address")
    return address


class AddressResolver:
    """
    Stateless reverse-geocoding client.

    Safe to call concurrently for different coordinates; each call either
    returns an Address or raises GeocodeError once.
    """

    def __init__(
        self,
        language: str = DEFAULT_LANGUAGE,
        preferences: FieldPreferences | None = None,
        timeout: float = GEOCODE_TIMEOUT,
        url: str = GEOCODE_API_URL,
        user_agent: str = GEOCODE_USER_AGENT,
    ) -> None:
        self.language = language
        self.preferences = preferences or FieldPreferences()
        self.timeout = timeout
        self.url = url
        self.user_agent = user_agent

    async def resolve(self, coordinate: Coordinate) -> Address:
        """
        Convert coordinate to an Address.

        Example request:
        https://nominatim.openstreetmap.org/reverse?format=json&lat=-6.2&lon=106.8&zoom=18&addressdetails=1
        """
        if not coordinate.is_valid():
            raise GeocodeError(
                GeocodeErrorKind.MALFORMED,
                f"Coordinate out of range: ({coordinate.latitude}, {coordinate.longitude})",
            )

        params = {
            "format": "json",
            "lat": coordinate.latitude,
            "lon": coordinate.longitude,
            "zoom": GEOCODE_ZOOM,
            "addressdetails": 1,
        }
        headers = {
            "Accept": "application/json",
            "Accept-Language": self.language,
            "User-Agent": self.user_agent,
        }

        try:
            raw = await make_request(self.url, headers=headers, params=params, timeout=self.timeout)
        except (asyncio.TimeoutError, TimeoutError) as exc:
            _LOGGER.warning(
                "Timeout reverse geocoding (%.5f, %.5f)",
                coordinate.latitude, coordinate.longitude,
            )
            raise GeocodeError(GeocodeErrorKind.NETWORK, "Reverse geocoding timed out") from exc
        except aiohttp.ClientError as exc:
            _LOGGER.warning(
                "Connection error reverse geocoding (%.5f, %.5f): %s",
                coordinate.latitude, coordinate.longitude, exc,
            )
            raise GeocodeError(GeocodeErrorKind.NETWORK, str(exc)) from exc
        except ApiResponseError as exc:
            if exc.status in RATE_LIMIT_STATUSES:
                _LOGGER.warning("Reverse geocoding rate limited (HTTP %s)", exc.status)
                raise GeocodeError(GeocodeErrorKind.RATE_LIMITED, str(exc)) from exc
            if exc.status >= 500:
                raise GeocodeError(GeocodeErrorKind.NETWORK, str(exc)) from exc
            raise GeocodeError(GeocodeErrorKind.MALFORMED, str(exc)) from exc
        except ValueError as exc:
            raise GeocodeError(GeocodeErrorKind.MALFORMED, str(exc)) from exc

        if not isinstance(raw, dict):
            raise GeocodeError(GeocodeErrorKind.MALFORMED, f"Unexpected response: {raw!r}")

        if "error" in raw:
            _LOGGER.debug(
                "No address for (%.5f, %.5f): %s",
                coordinate.latitude, coordinate.longitude, raw["error"],
            )
            raise GeocodeError(GeocodeErrorKind.NO_RESULT, str(raw["error"]))

        record = raw.get("address")
        if record is not None and not isinstance(record, dict):
            raise GeocodeError(GeocodeErrorKind.MALFORMED, f"Unexpected address record: {record!r}")

        return extract_address(record, raw.get("display_name"), self.preferences)
