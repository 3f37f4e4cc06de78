"""Settings shared by every environment; each env module overrides what differs."""

import os


def env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "clinic_attendance"),
}

# Prefix encoded into the QR image: <QR_BASE_URL>/qr/<secret>. Empty means the bare secret.
QR_BASE_URL = os.getenv("QR_BASE_URL", "")
QR_AUTO_ROTATE = env_bool("QR_AUTO_ROTATE", "1")
QR_DEFAULT_REFRESH_PERIOD = os.getenv("QR_DEFAULT_REFRESH_PERIOD", "daily")
QR_WEEK_START_DAY = int(os.getenv("QR_WEEK_START_DAY", "1"))  # 0=Sunday
QR_DEFAULT_RADIUS_METERS = float(os.getenv("QR_DEFAULT_RADIUS_METERS", "100"))

LOCATION_REQUIRED = env_bool("LOCATION_REQUIRED", "0")
SCAN_DEBOUNCE_SECONDS = int(os.getenv("SCAN_DEBOUNCE_SECONDS", "60"))
# Largest gap allowed between a device-reported scan time and server time.
SCAN_CLOCK_SKEW_SECONDS = int(os.getenv("SCAN_CLOCK_SKEW_SECONDS", "120"))
