# ── src/tablelog/records.py ─────────────────────────────────────────────────
"""
LogRecord – the framework-neutral input of the entity mapper.

Built by TableStorageHandler from a stdlib `logging.LogRecord`, but can be
constructed directly by any caller that has its own log pipeline.
"""
from __future__ import annotations

import datetime as _dt
import logging
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .scopes import Scope, as_scope


class LogRecord(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    event_time:       _dt.datetime        = Field(..., description="Event time (naive → UTC)")
    node_name:        str                 = Field(..., description="Logical source node")
    log_level:        int                 = Field(logging.INFO, description="Ordinal severity")
    log_level_string: str                 = Field("INFO", description="Human severity label")
    log_name:         str                 = Field("", description="Logger / category name")
    event_id:         int                 = Field(0, description="Integer event code")
    message:          str                 = Field("", description="Rendered message")
    exception:        Optional[Any]       = Field(None, description="Exception object, if any")
    scopes:           Tuple[Any, ...]     = Field((), description="Active scopes, outermost first")

    @field_validator("event_time")
    @classmethod
    def _utc(cls, v: _dt.datetime) -> _dt.datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=_dt.timezone.utc)
        return v

    @field_validator("scopes", mode="before")
    @classmethod
    def _wrap_scopes(cls, v: Any) -> Tuple[Scope, ...]:
        return tuple(as_scope(s) for s in (v or ()))
