"""Application constants."""

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/138.0.0.0 Safari/537.36"
)
COMMANDS = (
    "crawl",
    "convert",
    "grid",
)
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
DATA_SOURCE = "REVO GraphicAPI"
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "region",
    "event",
    "status",
    "cell_index",
    "cell_count",
    "lat",
    "lng",
    "points_in",
    "points_new",
    "total_points",
    "duration_ms",
    "error_code",
    "message",
)
