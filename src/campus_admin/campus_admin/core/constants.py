"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from decimal import Decimal

MIN_HOUR = 1
MAX_HOUR = 15
MAX_PRESENT_HOURS = 12

DEFAULT_GST_RATE = Decimal("0.09")
DEFAULT_GRACE_MONTHS = 5
DEFAULT_GRACE_FEE = Decimal("500")
LATE_FEE_REFERENCE = "LATE_FEE"

RECENT_UPDATE_SECONDS = 3.0
