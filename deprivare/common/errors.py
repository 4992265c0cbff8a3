"""Domain errors and failure typing."""


class DeprivareError(Exception):
    """Base class for deprivare failures."""

    error_code = "DEPRIVARE_ERROR"


class ConfigError(DeprivareError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class UnknownDataset(DeprivareError):
    """Raised when a dataset identifier has no registry entry."""

    error_code = "UNKNOWN_DATASET"

    def __init__(self, dataset_id: str) -> None:
        super().__init__(f"Unknown dataset: {dataset_id}")
        self.dataset_id = dataset_id


class SchemaMismatch(DeprivareError):
    """Raised when a source or schema declaration disagrees with expectations."""

    error_code = "SCHEMA_MISMATCH"

    def __init__(self, message: str, *, expected=None, actual=None) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class MalformedValue(DeprivareError):
    """Raised when a value cannot be read or stored as its declared type."""

    error_code = "MALFORMED_VALUE"


class StoreNotFound(DeprivareError):
    error_code = "STORE_NOT_FOUND"


class StoreIOError(DeprivareError):
    error_code = "STORE_IO_ERROR"


class SourceError(DeprivareError):
    """Raised when a dataset source cannot be read."""

    error_code = "SOURCE_ERROR"
