# ── src/tablelog/client.py ──────────────────────────────────────────────────
"""
Table client factory + startup provisioning.

Key-based access when a connection string is configured, otherwise
Managed Identity / Azure CLI via DefaultAzureCredential.
"""
from __future__ import annotations

import logging

from azure.data.tables import TableClient, TableServiceClient
from azure.identity import DefaultAzureCredential

from .config import TableStorageLoggerOptions
from .errors import storage_errors

_logger = logging.getLogger(__name__)


def service_client(options: TableStorageLoggerOptions) -> TableServiceClient:
    if options.connection_string:
        return TableServiceClient.from_connection_string(options.connection_string)
    return TableServiceClient(endpoint=options.account_url, credential=DefaultAzureCredential())


def table_client(options: TableStorageLoggerOptions) -> TableClient:
    return service_client(options).get_table_client(options.table_name)


def ensure_table(options: TableStorageLoggerOptions) -> None:
    """Create the log table if it does not exist yet (idempotent)."""
    with storage_errors(f"create table '{options.table_name}'"):
        service_client(options).create_table_if_not_exists(options.table_name)
    _logger.info("Log table '%s' ready", options.table_name)
