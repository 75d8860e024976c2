"""relmatch - Appariement exact puis fuzzy de deux relations d'un store relationnel."""

from relmatch.config import (
    ConfigError,
    ConfigFileError,
    ConfigurationError,
    RelMatchError,
    StoreOperationError,
)
from relmatch.io_excel import TableFileError

__all__ = [
    "__version__",
    "RelMatchError",
    "ConfigError",
    "ConfigurationError",
    "ConfigFileError",
    "StoreOperationError",
    "TableFileError",
]

__version__ = "0.1.0"
