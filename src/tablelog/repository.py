# ── src/tablelog/repository.py ──────────────────────────────────────────────
"""
Generic repository over one Azure table.

    repo = TableRepository(table_client, LogEntity, default_partition_key="-1")
    repo.insert_or_replace_batch([...])      # one atomic transaction
    repo.get("node-1", "17513280001230042")  # → LogEntity | None
    repo.get_all("node-1", count=50)
    repo.get_with_filter("LogLevel ge 40", "node-1")

Notes
-----
- Listing calls page through the store with its continuation token and stop
  once `count` entities have been collected. Whole pages are kept, so the
  result can hold more than `count` entries (at most one page more).
  The page size asked for is `count`, capped at MAX_PAGE_SIZE.
- The caller's filter is AND-ed with the partition filter. The partition
  argument falls back to the repository's default partition when blank.
- Cancellation (`cancel`, a threading.Event) is only looked at between pages.
- Azure faults are logged once and re-raised as tablelog errors.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from azure.core import MatchConditions
from azure.core.exceptions import ResourceNotFoundError
from azure.data.tables import TableClient, UpdateMode

from .entities import StorageEntity
from .errors import storage_errors
from .filters import and_filters, partition_key_filter

E = TypeVar("E", bound=StorageEntity)

# Largest $top the table service accepts on one page
MAX_PAGE_SIZE = 1000

# Codes that mean the row is absent; anything else (TableNotFound, …) is a fault
_MISSING_ROW_CODES = {"ResourceNotFound", "EntityNotFound"}

_logger = logging.getLogger(__name__)


class TableRepository(Generic[E]):

    def __init__(self, table: TableClient, entity_type: Type[E], default_partition_key: str):
        self._table = table
        self._entity_type = entity_type
        self.default_partition_key = default_partition_key

    @property
    def table(self) -> TableClient:
        return self._table

    @property
    def table_name(self) -> str:
        return getattr(self._table, "table_name", "?")

    # ── writes ───────────────────────────────────────────────────────
    def insert_or_replace_batch(self, entities: Sequence[E]) -> None:
        """
        Upsert (replace mode) all entities in a single transaction.

        The store only accepts a transaction inside one partition and rejects
        a batch naming the same row twice; duplicates are collapsed here so
        the last entity in the list wins.
        """
        if not entities:
            return

        latest: Dict[Tuple[str, str], E] = {}
        for entity in entities:
            key = (entity.partition_key, entity.row_key)
            latest.pop(key, None)
            latest[key] = entity

        operations = [
            ("upsert", entity.to_entity(), {"mode": UpdateMode.REPLACE})
            for entity in latest.values()
        ]
        with storage_errors(f"batch upsert of {len(operations)} entities into '{self.table_name}'"):
            self._table.submit_transaction(operations)

    def delete(self, entity: E) -> None:
        """
        Delete *entity*, guarded by its ETag when it carries one.

        Raises NotFound when the row is gone, ConcurrencyConflict when the
        ETag is stale. Sent as a one-operation transaction: a plain delete
        silently ignores missing rows.
        """
        if entity.etag:
            options: Dict[str, Any] = {"etag": entity.etag, "match_condition": MatchConditions.IfNotModified}
        else:
            options = {"match_condition": MatchConditions.Unconditionally}

        identity = {"PartitionKey": entity.partition_key, "RowKey": entity.row_key}
        with storage_errors(f"delete {entity.partition_key}/{entity.row_key} from '{self.table_name}'"):
            self._table.submit_transaction([("delete", identity, options)])

    # ── reads ────────────────────────────────────────────────────────
    def get(self, partition_key: str, row_key: str) -> Optional[E]:
        with storage_errors(f"get {partition_key}/{row_key} from '{self.table_name}'"):
            try:
                entity = self._table.get_entity(partition_key=partition_key, row_key=row_key)
            except ResourceNotFoundError as exc:
                code = getattr(exc, "error_code", None)
                if code and code not in _MISSING_ROW_CODES:
                    raise
                return None
        return self._entity_type.from_entity(entity)

    def get_all(
        self,
        partition: Optional[str] = None,
        count: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[E]:
        return self._execute_query(self._partition_filter(partition), count=count, cancel=cancel)

    def get_with_select(
        self,
        select: Sequence[str],
        partition: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[E]:
        return self._execute_query(self._partition_filter(partition), select=select, cancel=cancel)

    def get_with_filter(
        self,
        filter_: Optional[str],
        partition: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[E]:
        combined = and_filters(filter_, self._partition_filter(partition))
        return self._execute_query(combined, cancel=cancel)

    def get_with_select_filter(
        self,
        select: Sequence[str],
        filter_: Optional[str],
        partition: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[E]:
        combined = and_filters(filter_, self._partition_filter(partition))
        return self._execute_query(combined, select=select, cancel=cancel)

    # ── internals ────────────────────────────────────────────────────
    def _partition_filter(self, partition: Optional[str]) -> str:
        if partition is None or not partition.strip():
            partition = self.default_partition_key
        return partition_key_filter(partition)

    def _pages(self, query_filter: str, select, count, token):
        kwargs: Dict[str, Any] = {}
        if select:
            kwargs["select"] = list(select)
        if count:
            kwargs["results_per_page"] = min(count, MAX_PAGE_SIZE)
        paged = self._table.query_entities(query_filter, **kwargs)
        return paged.by_page(continuation_token=token)

    def _execute_query(
        self,
        query_filter: str,
        select: Optional[Sequence[str]] = None,
        count: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> List[E]:
        results: List[E] = []
        token = None

        with storage_errors(f"query '{self.table_name}' [{query_filter}]"):
            while True:
                pager = self._pages(query_filter, select, count, token)
                page = next(pager, None)
                if page is None:
                    break
                results.extend(self._entity_type.from_entity(e) for e in page)
                token = pager.continuation_token

                if token is None:
                    break
                if count is not None and len(results) >= count:
                    break
                if cancel is not None and cancel.is_set():
                    _logger.info("Query on '%s' cancelled after %d entities", self.table_name, len(results))
                    break

        return results
