"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

OPKOMST_TITLE = "Stam opkomst"
UNKNOWN_USER_NAME = "Onbekende gebruiker"
TEMP_ID_PREFIX = "temp-"

RSVP_CONFLICT_ATTEMPTS = 3

DEFAULT_HTTP_TIMEOUT_SECONDS = 10.0
DEFAULT_READ_RETRIES = 2
DEFAULT_READ_BACKOFF_SECONDS = 0.5
