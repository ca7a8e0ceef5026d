"""
Central constants for the salon application.
"""
from __future__ import annotations

# Uploaded service photos
ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp", "image/heic"})
MAX_IMAGE_BYTES = 10 * 1024 * 1024

# Report windows, in days, counted back from (and including) today
REPORT_PERIODS = {
    "week": 7,
    "month": 30,
    "quarter": 90,
    "year": 365,
    "all": None,
}
DEFAULT_REPORT_PERIOD = "month"

# Label for services recorded without a catalog type
UNTYPED_SERVICE_LABEL = "Other"

# Largest value a 64-bit signed INTEGER primary key can hold
MAX_DB_ID = 2**63 - 1
