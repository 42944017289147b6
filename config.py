import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_int(name, default):
    return int(os.getenv(name, str(default)))


class Config:
    # SQLite database file stored beside the code as studioslot.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "studioslot.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
    }

    # Logging
    DEBUG_MODE = os.getenv("DEBUG_MODE", "false").lower() == "true"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG_MODE else "INFO")

    # Identity headers set by the gateway in front of this service
    ACTOR_ID_HEADER = "X-Actor-Id"
    ACTOR_ELEVATED_HEADER = "X-Actor-Elevated"

    # Studio opening hours (availability slots)
    STUDIO_TIMEZONE = os.getenv("STUDIO_TIMEZONE", "UTC")
    BUSINESS_START_HOUR = _env_int("BUSINESS_START_HOUR", 9)
    BUSINESS_END_HOUR = _env_int("BUSINESS_END_HOUR", 22)
    SLOT_MINUTES = _env_int("SLOT_MINUTES", 60)
    BUSINESS_WEEKDAYS = (0, 1, 2, 3, 4)  # Monday..Friday

    # Temporary bookings whose deadline falls within this window count as "expiring"
    EXPIRING_WINDOW_HOURS = _env_int("EXPIRING_WINDOW_HOURS", 48)

    # Listing
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100

    # Write-path serialisation
    BOOKING_LOCK_KEY = "studio"
    BOOKING_LOCK_TIMEOUT_MS = _env_int("BOOKING_LOCK_TIMEOUT_MS", 5000)
    STORAGE_RETRY_ATTEMPTS = _env_int("STORAGE_RETRY_ATTEMPTS", 3)

    # Basic app settings
    DEBUG = False
    TESTING = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///" + os.path.join(BASE_DIR, "studioslot-test.db")
    SQLALCHEMY_ENGINE_OPTIONS = {
        # worker threads in the concurrency tests share the file
        "connect_args": {"timeout": 30, "check_same_thread": False},
    }
    STORAGE_RETRY_ATTEMPTS = 1
