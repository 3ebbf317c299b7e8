# ── src/tablelog/config.py ──────────────────────────────────────────────────
"""
Options for the table-storage logger.

Environment (from_env):
- TABLE_LOGGER_CONNECTION_STRING : storage connection string (key based)
- TABLE_LOGGER_ACCOUNT_URL       : https://<acct>.table.core.windows.net
                                   used with DefaultAzureCredential when no
                                   connection string is set
- TABLE_LOGGER_TABLE_NAME        : default "logs"
- TABLE_LOGGER_NODE_NAME         : partition for this process (default: host name)
- TABLE_LOGGER_BATCH_SIZE        : 1..100 (default 100, the store's batch limit)
- TABLE_LOGGER_LEVEL             : minimum level shipped (default INFO)

Configuration mapping (from_mapping) binds the "TableStorageLoggerOptions"
section with the same keys in PascalCase:
    {"TableStorageLoggerOptions": {"ConnectionString": "...", "TableName": "logs"}}
"""
from __future__ import annotations

import logging
import os
import socket
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError

OPTIONS_KEY = "TableStorageLoggerOptions"
MAX_BATCH_SIZE = 100  # Azure Table transaction limit

_ENV_PREFIX = "TABLE_LOGGER_"


class TableStorageLoggerOptions(BaseModel):
    connection_string: Optional[str] = Field(None, description="Storage connection string")
    account_url:       Optional[str] = Field(None, description="Table endpoint (MSI / DefaultAzureCredential)")
    table_name:        str           = Field("logs", min_length=3, max_length=63)
    node_name:         str           = Field(default_factory=socket.gethostname)
    batch_size:        int           = Field(MAX_BATCH_SIZE, ge=1, le=MAX_BATCH_SIZE)
    level:             str           = Field("INFO")

    @field_validator("table_name")
    @classmethod
    def _alnum_table(cls, v: str) -> str:
        if not v.isalnum() or not v[0].isalpha():
            raise ValueError("table_name must be alphanumeric and start with a letter")
        return v

    @field_validator("level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        v = v.strip().upper()
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError(f"unknown log level '{v}'")
        return v

    @model_validator(mode="after")
    def _has_endpoint(self) -> "TableStorageLoggerOptions":
        if not (self.connection_string or self.account_url):
            raise ValueError("either connection_string or account_url is required")
        return self

    @property
    def levelno(self) -> int:
        return logging.getLevelName(self.level)

    # ── sources ──────────────────────────────────────────────────────
    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TableStorageLoggerOptions":
        env = os.environ if environ is None else environ
        raw: dict[str, Any] = {}
        for field in cls.model_fields:
            value = (env.get(_ENV_PREFIX + field.upper()) or "").strip()
            if value:
                raw[field] = value
        return cls._build(raw, source="environment")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "TableStorageLoggerOptions":
        section = config.get(OPTIONS_KEY) or {}
        raw = {
            field: section[_pascal(field)]
            for field in cls.model_fields
            if section.get(_pascal(field)) not in (None, "")
        }
        return cls._build(raw, source=f"configuration section '{OPTIONS_KEY}'")

    @classmethod
    def _build(cls, raw: Mapping[str, Any], source: str) -> "TableStorageLoggerOptions":
        try:
            return cls(**raw)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid table logger options from {source}: {exc}") from exc


def _pascal(name: str) -> str:
    return "".join(part.capitalize() for part in name.split("_"))
