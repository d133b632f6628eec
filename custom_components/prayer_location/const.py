DOMAIN = "prayer_location"
VERSION = "0.1.0"

# Config entry keys
CONF_ENTRY_NAME = "entry_name"
CONF_LOCATION_ENTITY = "location_entity"
CONF_LANGUAGE = "language"
CONF_CALCULATION_METHOD = "calculation_method"
CONF_NOTIFY_SERVICE = "notify_service"
CONF_NOTIFICATION_LEAD = "notification_lead_minutes"

DEFAULT_ENTRY_NAME = "Prayer Times"
DEFAULT_LOCATION_ENTITY = "zone.home"
DEFAULT_LANGUAGE = "id"
DEFAULT_CALCULATION_METHOD = 20    # KEMENAG - Kementerian Agama Republik Indonesia
DEFAULT_NOTIFICATION_LEAD = 5      # minutes before each prayer

# AlAdhan calculation methods
CALC_METHODS: dict[int, str] = {
    0: "Shia Ithna-Ashari",
    1: "University of Islamic Sciences, Karachi",
    2: "Islamic Society of North America",
    3: "Muslim World League",
    4: "Umm Al-Qura University, Makkah",
    5: "Egyptian General Authority of Survey",
    7: "Institute of Geophysics, University of Tehran",
    8: "Gulf Region",
    9: "Kuwait",
    10: "Qatar",
    11: "Majlis Ugama Islam Singapura",
    12: "Union Organization Islamic de France",
    13: "Diyanet Isleri Baskanligi, Turkey",
    14: "Spiritual Administration of Muslims of Russia",
    15: "Moonsighting Committee Worldwide",
    20: "Kementerian Agama Republik Indonesia",
}

# Refresh cadence (seconds)
UPDATE_INTERVAL = 900        # periodic tick
STALE_AFTER = 3600           # a READY snapshot younger than this is not re-resolved
RETRY_BACKOFF = 5            # delay before the single geocode retry
RETRY_INTERVAL = 300         # automatic triggers wait this long after a failed attempt
CALL_TIMEOUT = 30            # upper bound on one resolver or provider call

# Request timeouts (seconds)
GEOCODE_TIMEOUT = 10
PRAYER_TIMES_TIMEOUT = 10

# Sensor noise guard
MIN_REFRESH_DISTANCE_KM = 1.0
EARTH_RADIUS_KM = 6371.0

# Reverse geocoding (Nominatim)
GEOCODE_API_URL = "https://nominatim.openstreetmap.org/reverse"
GEOCODE_USER_AGENT = f"HomeAssistant-PrayerLocation/{VERSION}"
GEOCODE_ZOOM = 18

# Logical address attribute → provider keys, in order of preference
STREET_FIELDS: tuple[str, ...] = ("road", "pedestrian", "footway")
CITY_FIELDS: tuple[str, ...] = ("city", "town", "village", "municipality")
DISTRICT_FIELDS: tuple[str, ...] = ("suburb", "city_district", "district")
PROVINCE_FIELDS: tuple[str, ...] = ("state", "province")
COUNTRY_FIELDS: tuple[str, ...] = ("country",)

# Prayer times (AlAdhan)
PRAYER_TIMES_API_URL = "https://api.aladhan.com/v1/timings"

# Fixed notification ids, one per alerted prayer
NOTIFICATION_IDS: dict[str, int] = {
    "Fajr": 1,
    "Dhuhr": 2,
    "Asr": 3,
    "Maghrib": 4,
    "Isha": 5,
}

PRAYER_ICONS: dict[str, str] = {
    "Fajr": "mdi:weather-sunset-up",
    "Sunrise": "mdi:weather-sunny",
    "Dhuhr": "mdi:mosque",
    "Asr": "mdi:weather-partly-cloudy",
    "Maghrib": "mdi:weather-sunset-down",
    "Isha": "mdi:weather-night",
}

SERVICE_REFRESH = "refresh"
SERVICE_RESET = "reset"
