"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

EARTH_RADIUS_METERS = 6_371_000
DEFAULT_RADIUS_METERS = 100
DEFAULT_SCAN_DEBOUNCE_SECONDS = 60
DEFAULT_SCAN_CLOCK_SKEW_SECONDS = 120
DEFAULT_WEEK_START_DAY = 1  # Monday, 0=Sunday
DEFAULT_HISTORY_LIMIT = 30
DEFAULT_PAGE_SIZE = 50
QR_URL_MARKER = "/qr/"
