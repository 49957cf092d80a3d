"""Domain errors and failure typing."""


class CrawlerError(Exception):
    """Base class for crawler failures."""

    error_code = "CRAWLER_ERROR"


class ConfigError(CrawlerError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(CrawlerError):
    """Raised for stage failures that abort the run."""

    error_code = "STAGE_ERROR"


class CheckpointError(StageError):
    """Raised when the dataset cannot be written to disk."""

    error_code = "CHECKPOINT_ERROR"
