"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE

DEFAULT_GRACE_MINUTES = 30
DEFAULT_TARGET_HOURS = 486
DEFAULT_TZ_OFFSET_HOURS = 8

# A synthesized time-out never lands before its time-in.
SYNTHETIC_OUT_FALLBACK_MINUTES = 1

# Times without a meridiem in afternoon fields ("1:00" .. "6:59") mean PM.
PM_CONTEXT_HOURS = range(1, 7)

# Dated supervisor overrides are stored as shift rows named OVERRIDE:::<date>:::<AM|PM>.
OVERRIDE_NAME_PREFIX = "OVERRIDE:::"

# Last successfully resolved schedules kept for fetch-failure fallback.
LAST_GOOD_CACHE_SIZE = 1024
