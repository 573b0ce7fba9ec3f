import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_PATH = os.getenv("DATABASE_PATH", "data/cropwatch.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")]

# Device listing
DEFAULT_PAGE_LIMIT = 50
INITIAL_PAGE_LIMIT = 100
MAX_PAGE_LIMIT = 500

# Devices with no upload interval on the device or its type are judged against this
DEFAULT_UPLOAD_INTERVAL_MINUTES = 30

# History queries
HISTORY_DEFAULT_HOURS = 24
HISTORY_DEFAULT_LIMIT = 1000
HISTORY_MAX_LIMIT = 5000
METRIC_HISTORY_DEFAULT_DAYS = 7
DEFAULT_HISTORY_TABLE = "cw_air_data"

# Live merge reference caches (device types, locations)
REFERENCE_CACHE_SIZE = int(os.getenv("REFERENCE_CACHE_SIZE", "256"))
REFERENCE_CACHE_TTL_SECONDS = float(os.getenv("REFERENCE_CACHE_TTL_SECONDS", "300"))
