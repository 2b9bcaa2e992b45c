"""Configuration constants for carisekolah.

Paths and the sheet URL can be overridden through environment variables.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).parent.parent

# Dataset produced by the ingestion command and served by the API
DATA_DIR = BASE_DIR / "data"
DATA_PATH = Path(os.environ.get("CARISEKOLAH_DATA_PATH", DATA_DIR / "schools.json"))

# Must use /export?format=csv&gid=... (not /edit) to get CSV
SHEET_CSV_URL = os.environ.get(
    "SHEET_CSV_URL",
    "https://docs.google.com/spreadsheets/d/18Uh1UtPHDoo7WM38ax8A1BzH7fvQOnKKr4V0P9w1QfU/export?format=csv&gid=1678771376",
)
USER_AGENT = "KPM-School-Sync/1.0"
MAX_REDIRECTS = 5
FETCH_TIMEOUT_SECONDS = 60.0

# =============================================================================
# Statistics
# =============================================================================

# Pupil-teacher ratio at or above which a school counts as packed
PACKED_PTR_THRESHOLD = 20.0
# Class size used for the minimum classes / teachers estimate
IDEAL_CLASS_SIZE = 30
PACKED_LIST_SIZE = 30

EARTH_RADIUS_KM = 6371.0

# =============================================================================
# Search and API
# =============================================================================

SUGGEST_MIN_QUERY_LENGTH = 2
SUGGEST_DEFAULT_LIMIT = 12
SUGGEST_MAX_LIMIT = 20
SUGGEST_MAX_QUERY_LENGTH = 200

SEARCH_DEFAULT_PAGE_SIZE = 20
SEARCH_MAX_PAGE_SIZE = 100

NEAR_DEFAULT_RADIUS_KM = 5.0
NEAR_MAX_RADIUS_KM = 50.0

EXPORT_CACHE_MAX_AGE = 3600

# Fixed window per client identifier
RATE_LIMIT_WINDOW_SECONDS = 60
RATE_LIMIT_MAX_REQUESTS = 60
RATE_LIMIT_PRUNE_THRESHOLD = 10_000
