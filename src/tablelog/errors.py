# ── src/tablelog/errors.py ──────────────────────────────────────────────────
"""
Error taxonomy + the two places where errors change shape.

- TableLogError        : root of everything raised by this package
- MappingFailure       : a scope value could not be turned into a string
- StorageFailure       : the table store rejected / could not serve a call
    - NotFound             : entity (or table) does not exist
    - ConcurrencyConflict  : ETag no longer matches the stored version
- ConfigurationError   : options are incomplete or invalid

storage_errors()  translates azure-core exceptions into the above, logging once.
best_effort()     turns a call into fire-and-forget: failures are logged, never raised.
"""
from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from azure.core.exceptions import (
    AzureError,
    HttpResponseError,
    ResourceModifiedError,
    ResourceNotFoundError,
)

_logger = logging.getLogger(__name__)


class TableLogError(Exception):
    """Base class for errors raised by tablelog."""


class MappingFailure(TableLogError):
    """A log record could not be converted into a storage entity."""


class ConfigurationError(TableLogError):
    pass


class StorageFailure(TableLogError):
    """The table store rejected the operation (validation, capacity, connectivity)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFound(StorageFailure):
    pass


class ConcurrencyConflict(StorageFailure):
    pass


# ── translation ──────────────────────────────────────────────────────
_NOT_FOUND_CODES = {"ResourceNotFound", "EntityNotFound", "TableNotFound"}
_CONFLICT_CODES  = {"UpdateConditionNotSatisfied", "ConditionNotMet"}


def _translate(exc: AzureError) -> StorageFailure:
    # transaction errors carry the failing sub-request's status / error code
    status = getattr(exc, "status_code", None)
    code = str(getattr(exc, "error_code", None) or "")
    message = getattr(exc, "message", None) or str(exc)

    if isinstance(exc, ResourceNotFoundError) or status == 404 or code in _NOT_FOUND_CODES:
        return NotFound(message, status_code=404)
    if isinstance(exc, ResourceModifiedError) or status == 412 or code in _CONFLICT_CODES:
        return ConcurrencyConflict(message, status_code=412)
    if isinstance(exc, HttpResponseError):
        return StorageFailure(message, status_code=status)
    # transport-level faults (DNS, connection reset, timeouts) have no status
    return StorageFailure(message)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """
    Log an Azure fault once and re-raise it as a StorageFailure subtype.
    The original exception stays reachable through __cause__.
    """
    try:
        yield
    except AzureError as exc:
        failure = _translate(exc)
        _logger.warning("%s failed (%s): %s", operation, type(failure).__name__, failure)
        raise failure from exc


# ── best-effort wrapper ──────────────────────────────────────────────
def best_effort(func: Callable[..., Any]) -> Callable[..., bool]:
    """
    Run *func* and report success as a bool.

    Any exception is written to the diagnostic logger and suppressed.
    Used on the ingestion path: a log sink must never take the host down
    because storage is unavailable.
    """
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> bool:
        try:
            func(*args, **kwargs)
        except Exception as exc:  # noqa: BLE001
            _logger.error("%s failed, entries dropped: %r", func.__qualname__, exc)
            return False
        return True

    wrapper.best_effort = True  # type: ignore[attr-defined]
    return wrapper


__all__ = [
    "TableLogError",
    "MappingFailure",
    "ConfigurationError",
    "StorageFailure",
    "NotFound",
    "ConcurrencyConflict",
    "storage_errors",
    "best_effort",
]
