# ── src/tablelog/__init__.py ────────────────────────────────────────────────
"""
tablelog – ship stdlib `logging` records to Azure Table Storage.

One row per record, partitioned by node name, row key = epoch millis +
4-digit random suffix. Also exposes the generic table repository used for
reads / deletes on the log table.
"""
from .config import TableStorageLoggerOptions
from .entities import LogEntity, StorageEntity, map_record
from .errors import (
    ConcurrencyConflict,
    ConfigurationError,
    MappingFailure,
    NotFound,
    StorageFailure,
    TableLogError,
    best_effort,
)
from .handler import TableStorageHandler, add_table_storage_logger
from .log_repository import LogRepository
from .records import LogRecord
from .repository import TableRepository
from .row_keys import RowKeyGenerator
from .scopes import MappingScope, OpaqueScope, PairScope, begin_scope

__all__ = [
    "TableStorageLoggerOptions",
    "LogEntity",
    "StorageEntity",
    "map_record",
    "TableLogError",
    "MappingFailure",
    "ConfigurationError",
    "StorageFailure",
    "NotFound",
    "ConcurrencyConflict",
    "best_effort",
    "TableStorageHandler",
    "add_table_storage_logger",
    "LogRepository",
    "LogRecord",
    "TableRepository",
    "RowKeyGenerator",
    "MappingScope",
    "PairScope",
    "OpaqueScope",
    "begin_scope",
]
