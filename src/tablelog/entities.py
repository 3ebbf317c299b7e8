# ── src/tablelog/entities.py ────────────────────────────────────────────────
"""
Storage entities.

StorageEntity is the contract the generic repository relies on: the two
identity keys, an optional ETag, and a conversion to / from the dict shape
`azure.data.tables` sends over the wire.

LogEntity is the one concrete entity: one row per log record.

Table layout
------------
PartitionKey  : node name (all entries of one node share a partition)
RowKey        : <unix millis><4-digit random>   – see row_keys.py
EventTime     : record timestamp
LogLevel, LogLevelString, LogName, EventId, Message
Exception     : JSON (cycle-tolerant) or absent
Data          : JSON object of flattened scopes
RequestId, CorrelationId : copied out of the scopes for cheap filtering
"""
from __future__ import annotations

import datetime as _dt
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Tuple, Type, TypeVar

from .errors import MappingFailure
from .records import LogRecord
from .row_keys import default_generator
from .scopes import MappingScope, OpaqueScope, PairScope, Scope
from .serialization import dumps, dumps_optional

E = TypeVar("E", bound="StorageEntity")

ORIGINAL_FORMAT_KEY = "{OriginalFormat}"
REQUEST_ID_KEY      = "RequestId"
CORRELATION_ID_KEY  = "CorrelationId"


class StorageEntity(Protocol):
    partition_key: str
    row_key: str
    etag: Optional[str]

    def to_entity(self) -> Dict[str, Any]: ...

    @classmethod
    def from_entity(cls: Type[E], entity: Mapping[str, Any]) -> E: ...


def entity_etag(entity: Mapping[str, Any]) -> Optional[str]:
    """ETag from a TableEntity's metadata (plain dicts have none)."""
    metadata = getattr(entity, "metadata", None) or {}
    return metadata.get("etag")


# ── LogEntity ────────────────────────────────────────────────────────
@dataclass(frozen=True)
class LogEntity:
    partition_key:    str
    row_key:          str
    timestamp:        Optional[_dt.datetime] = None
    log_level:        int = 0
    log_name:         Optional[str] = None
    event_id:         int = 0
    message:          Optional[str] = None
    log_level_string: Optional[str] = None
    data:             Optional[str] = None
    exception:        Optional[str] = None
    request_id:       Optional[str] = None
    correlation_id:   Optional[str] = None
    etag:             Optional[str] = None

    @property
    def node_name(self) -> str:
        return self.partition_key

    def data_dict(self) -> Dict[str, str]:
        return json.loads(self.data) if self.data else {}

    # ── wire shape ───────────────────────────────────────────────────
    def to_entity(self) -> Dict[str, Any]:
        entity: Dict[str, Any] = {
            "PartitionKey":   self.partition_key,
            "RowKey":         self.row_key,
            "EventTime":      self.timestamp,
            "LogLevel":       self.log_level,
            "LogName":        self.log_name,
            "EventId":        self.event_id,
            "Message":        self.message,
            "LogLevelString": self.log_level_string,
            "Data":           self.data,
            "Exception":      self.exception,
            "RequestId":      self.request_id,
            "CorrelationId":  self.correlation_id,
        }
        # absent properties are simply not written
        return {k: v for k, v in entity.items() if v is not None}

    @classmethod
    def from_entity(cls, entity: Mapping[str, Any]) -> "LogEntity":
        # $select may leave properties out: they fall back to dataclass defaults
        ts = entity.get("EventTime")
        if ts is None:
            ts = (getattr(entity, "metadata", None) or {}).get("timestamp")
        return cls(
            partition_key=entity.get("PartitionKey", ""),
            row_key=entity.get("RowKey", ""),
            timestamp=ts,
            log_level=int(entity.get("LogLevel") or 0),
            log_name=entity.get("LogName"),
            event_id=int(entity.get("EventId") or 0),
            message=entity.get("Message"),
            log_level_string=entity.get("LogLevelString"),
            data=entity.get("Data"),
            exception=entity.get("Exception"),
            request_id=entity.get("RequestId"),
            correlation_id=entity.get("CorrelationId"),
            etag=entity_etag(entity),
        )

    @classmethod
    def from_record(
        cls,
        record: LogRecord,
        row_keys: Optional[Callable[[_dt.datetime], str]] = None,
    ) -> "LogEntity":
        return map_record(record, row_keys)


# ── mapper ───────────────────────────────────────────────────────────
def _text(value: Any) -> str:
    if value is None:
        return ""
    try:
        return str(value)
    except Exception as exc:
        raise MappingFailure(
            f"Scope value of type {type(value).__name__} is not convertible to str"
        ) from exc


def flatten_scopes(scopes: Tuple[Scope, ...]) -> Tuple[Dict[str, str], Optional[str], Optional[str]]:
    """
    Single pass over the scopes → (data, request_id, correlation_id).

    - MappingScope : every pair except {OriginalFormat}
    - PairScope    : the pair itself
    - OpaqueScope  : stored as "scope:<n>", n counting opaque scopes only
    Later keys overwrite earlier ones; RequestId / CorrelationId: last wins.
    """
    data: Dict[str, str] = {}
    ids: Dict[str, Optional[str]] = {REQUEST_ID_KEY: None, CORRELATION_ID_KEY: None}
    opaque = 0

    def put(key: str, value: Any) -> None:
        text = _text(value)
        data[key] = text
        if key in ids:
            ids[key] = text

    for scope in scopes:
        if isinstance(scope, MappingScope):
            for key, value in scope.values.items():
                if key != ORIGINAL_FORMAT_KEY:
                    put(key, value)
        elif isinstance(scope, PairScope):
            put(scope.key, scope.value)
        elif isinstance(scope, OpaqueScope):
            data[f"scope:{opaque}"] = _text(scope.value)
            opaque += 1
        else:
            raise MappingFailure(f"Unknown scope variant: {type(scope).__name__}")

    return data, ids[REQUEST_ID_KEY], ids[CORRELATION_ID_KEY]


def map_record(
    record: LogRecord,
    row_keys: Optional[Callable[[_dt.datetime], str]] = None,
) -> LogEntity:
    """Convert one LogRecord into its LogEntity."""
    row_keys = row_keys or default_generator
    data, request_id, correlation_id = flatten_scopes(record.scopes)

    return LogEntity(
        partition_key=record.node_name,
        row_key=row_keys(record.event_time),
        timestamp=record.event_time,
        log_level=record.log_level,
        log_name=record.log_name,
        event_id=record.event_id,
        message=record.message,
        log_level_string=record.log_level_string,
        data=dumps(data),
        exception=dumps_optional(record.exception),
        request_id=request_id,
        correlation_id=correlation_id,
    )
