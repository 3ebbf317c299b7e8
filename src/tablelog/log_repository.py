# ── src/tablelog/log_repository.py ──────────────────────────────────────────
"""
LogRepository – the TableRepository for LogEntity plus the ingestion call
used by the logging handler.
"""
from __future__ import annotations

import datetime as _dt
from typing import Callable, Iterable, Optional

from azure.data.tables import TableClient

from .config import TableStorageLoggerOptions
from .client import table_client
from .entities import LogEntity, map_record
from .errors import best_effort
from .records import LogRecord
from .repository import TableRepository

DEFAULT_PARTITION_KEY = "-1"


class LogRepository(TableRepository[LogEntity]):

    def __init__(
        self,
        table: TableClient,
        default_partition_key: str = DEFAULT_PARTITION_KEY,
        row_keys: Optional[Callable[[_dt.datetime], str]] = None,
    ):
        super().__init__(table, LogEntity, default_partition_key)
        self._row_keys = row_keys

    @classmethod
    def from_options(cls, options: TableStorageLoggerOptions, **kwargs) -> "LogRepository":
        return cls(table_client(options), **kwargs)

    @best_effort
    def add_messages(self, records: Iterable[LogRecord]) -> None:
        """
        Map every record and upsert them as one batch.

        Best effort: returns False (after writing a diagnostic) instead of
        raising when mapping or storage fails.
        """
        entities = [map_record(r, self._row_keys) for r in records]
        self.insert_or_replace_batch(entities)
