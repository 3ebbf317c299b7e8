# ── src/tablelog/handler.py ─────────────────────────────────────────────────
"""
Stdlib logging → Azure Table bridge.

    from tablelog import add_table_storage_logger, begin_scope

    add_table_storage_logger()                     # options from TABLE_LOGGER_* env
    log = logging.getLogger("orders")
    with begin_scope({"RequestId": rid}):
        log.info("order %(id)s placed", {"id": 42}, extra={"event_id": 1001})

Records are converted at emit time (so the active scopes are captured on the
emitting thread / task) and buffered; the buffer is shipped when it reaches
`capacity`, on flush() and on close() (logging.shutdown at exit).

The sink never logs into itself: records from the `azure` and `tablelog`
logger hierarchies are filtered out, and anything emitted while this handler
is already emitting or flushing on the same thread is dropped.
"""
from __future__ import annotations

import datetime as _dt
import logging
import logging.handlers
import threading
from collections.abc import Mapping
from typing import List, Optional

from .client import ensure_table
from .config import MAX_BATCH_SIZE, TableStorageLoggerOptions
from .entities import ORIGINAL_FORMAT_KEY
from .log_repository import LogRepository
from .records import LogRecord
from .scopes import MappingScope, as_scope, current_scopes

_IGNORED_LOGGERS = ("azure", "tablelog")


def _not_own_record(record: logging.LogRecord) -> bool:
    root = record.name.split(".", 1)[0]
    return root not in _IGNORED_LOGGERS


class TableStorageHandler(logging.handlers.BufferingHandler):

    def __init__(
        self,
        repository: LogRepository,
        node_name: str,
        capacity: int = MAX_BATCH_SIZE,
        level: int = logging.NOTSET,
    ):
        super().__init__(max(1, min(capacity, MAX_BATCH_SIZE)))
        self.setLevel(level)
        self.repository = repository
        self.node_name = node_name
        self.buffer: List[LogRecord] = []
        self._local = threading.local()
        self.addFilter(_not_own_record)

    # ── conversion ───────────────────────────────────────────────────
    def to_log_record(self, record: logging.LogRecord) -> LogRecord:
        scopes = list(current_scopes())

        # "%(name)s"-style args behave like a message-template state
        if isinstance(record.args, Mapping) and record.args:
            state = dict(record.args)
            state[ORIGINAL_FORMAT_KEY] = str(record.msg)
            scopes.append(MappingScope(state))

        extra_scope = getattr(record, "scope", None)
        if extra_scope is not None:
            scopes.append(as_scope(extra_scope))

        exc = record.exc_info[1] if record.exc_info else None
        return LogRecord(
            event_time=_dt.datetime.fromtimestamp(record.created, tz=_dt.timezone.utc),
            node_name=self.node_name,
            log_level=record.levelno,
            log_level_string=record.levelname,
            log_name=record.name,
            event_id=int(getattr(record, "event_id", 0) or 0),
            message=record.getMessage(),
            exception=exc,
            scopes=tuple(scopes),
        )

    # ── logging.Handler API ──────────────────────────────────────────
    def emit(self, record: logging.LogRecord) -> None:
        if getattr(self._local, "busy", False):
            return
        self._local.busy = True
        try:
            try:
                item = self.to_log_record(record)
            except Exception:  # noqa: BLE001
                self.handleError(record)
                return
            self.acquire()
            try:
                self.buffer.append(item)
                full = len(self.buffer) >= self.capacity
            finally:
                self.release()
            if full:
                self._ship()
        finally:
            self._local.busy = False

    def flush(self) -> None:
        if getattr(self._local, "busy", False):
            return
        self._local.busy = True
        try:
            self._ship()
        finally:
            self._local.busy = False

    def _ship(self) -> None:
        self.acquire()
        try:
            pending, self.buffer = self.buffer, []
        finally:
            self.release()
        # one transaction per chunk; add_messages never raises
        for start in range(0, len(pending), MAX_BATCH_SIZE):
            self.repository.add_messages(pending[start:start + MAX_BATCH_SIZE])


# ── bootstrap ────────────────────────────────────────────────────────
def add_table_storage_logger(
    logger: Optional[logging.Logger] = None,
    options: Optional[TableStorageLoggerOptions] = None,
    repository: Optional[LogRepository] = None,
    provision: bool = True,
) -> TableStorageHandler:
    """
    Attach a TableStorageHandler to *logger* (root by default).

    Options default to the TABLE_LOGGER_* environment; the table is created
    if missing unless `provision=False`.
    """
    options = options or TableStorageLoggerOptions.from_env()
    if provision:
        ensure_table(options)
    repository = repository or LogRepository.from_options(options)

    handler = TableStorageHandler(
        repository,
        node_name=options.node_name,
        capacity=options.batch_size,
        level=options.levelno,
    )
    (logger or logging.getLogger()).addHandler(handler)
    return handler
