"""Application constants."""

USER_AGENT = "deprivare/0.2 (+deprivation-lookup; contact: configured-email)"
GEOGRAPHIC_KEY = "lsoa"
VALUE_TYPES = ("string", "integer", "float")
COMMANDS = (
    "list",
    "info",
    "install",
    "installed",
    "lookup",
    "serve",
)
EXIT_SUCCESS = 0
EXIT_USAGE = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "command",
    "dataset",
    "event",
    "status",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)
