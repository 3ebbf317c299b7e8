import datetime as dt
import itertools
import re

import pytest
from azure.core import MatchConditions
from azure.core.exceptions import ResourceModifiedError, ResourceNotFoundError

from tablelog import client
from tablelog.log_repository import LogRepository
from tablelog.records import LogRecord
from tablelog.row_keys import unix_millis

_PARTITION_EQ = re.compile(r"PartitionKey eq '((?:[^']|'')*)'")


class FakeEntity(dict):
    """dict + metadata, like azure.data.tables.TableEntity."""

    def __init__(self, *args, metadata=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.metadata = metadata or {}


class FakePager:
    def __init__(self, rows, page_size, token, owner):
        self._rows = rows
        self._size = page_size
        self._start = token or 0
        self._owner = owner
        self._served = False
        self.continuation_token = None

    def __iter__(self):
        return self

    def __next__(self):
        if self._served:
            raise StopIteration
        self._served = True
        self._owner.page_requests += 1
        chunk = self._rows[self._start:self._start + self._size]
        end = self._start + len(chunk)
        self.continuation_token = end if end < len(self._rows) else None
        return iter(chunk)


class FakePaged:
    def __init__(self, rows, page_size, owner):
        self._rows = rows
        self._size = page_size
        self._owner = owner

    def by_page(self, continuation_token=None):
        return FakePager(self._rows, self._size, continuation_token, self._owner)


class FakeTableClient:
    """
    In-memory stand-in for azure.data.tables.TableClient.

    Only partition equality is evaluated from filter strings; every filter
    received is kept in `queries` so tests can assert on it.
    """

    table_name = "logs"

    def __init__(self, page_size=4):
        self.rows = {}
        self.page_size = page_size
        self.transactions = []
        self.queries = []
        self.page_requests = 0
        self.page_sizes = []
        self.fail_with = None
        self._etags = itertools.count(1)

    # ── helpers ──────────────────────────────────────────────────────
    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def _store(self, entity):
        key = (entity["PartitionKey"], entity["RowKey"])
        self.rows[key] = FakeEntity(
            entity,
            metadata={"etag": f'W/"{next(self._etags)}"',
                      "timestamp": dt.datetime(2025, 1, 1, tzinfo=dt.timezone.utc)},
        )

    def _view(self, entity, select):
        if not select:
            return FakeEntity(entity, metadata=dict(entity.metadata))
        return FakeEntity({k: v for k, v in entity.items() if k in select},
                          metadata=dict(entity.metadata))

    def seed(self, partition, count, start=0):
        for i in range(start, start + count):
            self._store({"PartitionKey": partition, "RowKey": f"{i:08d}",
                         "Message": f"m{i}", "LogLevel": 20})

    # ── TableClient API ──────────────────────────────────────────────
    def submit_transaction(self, operations):
        self._maybe_fail()
        operations = list(operations)
        self.transactions.append(operations)
        for op, entity, options in operations:
            key = (entity["PartitionKey"], entity["RowKey"])
            if op == "upsert":
                self._store(entity)
            elif op == "delete":
                if key not in self.rows:
                    raise ResourceNotFoundError("The specified resource does not exist.")
                if (options.get("match_condition") == MatchConditions.IfNotModified
                        and options.get("etag") != self.rows[key].metadata["etag"]):
                    raise ResourceModifiedError("The update condition specified in the request was not satisfied.")
                del self.rows[key]
            else:
                raise AssertionError(f"unexpected operation {op}")
        return []

    def get_entity(self, partition_key, row_key, **kwargs):
        self._maybe_fail()
        try:
            return self._view(self.rows[(partition_key, row_key)], None)
        except KeyError:
            exc = ResourceNotFoundError("The specified resource does not exist.")
            exc.error_code = "ResourceNotFound"
            raise exc

    def _paged(self, rows, select, results_per_page):
        rows = [self._view(r, select) for _, r in sorted(rows)]
        return FakePaged(rows, results_per_page or self.page_size, self)

    def query_entities(self, query_filter, select=None, results_per_page=None, **kwargs):
        self._maybe_fail()
        self.queries.append(query_filter)
        self.page_sizes.append(results_per_page)
        match = _PARTITION_EQ.search(query_filter)
        rows = self.rows.items()
        if match:
            partition = match.group(1).replace("''", "'")
            rows = [(k, v) for k, v in rows if k[0] == partition]
        return self._paged(list(rows), select, results_per_page)


class FakeServiceClient:
    """Stand-in for azure.data.tables.TableServiceClient; hands out `table`."""

    def __init__(self, table):
        self.table = table
        self.endpoint = None
        self.credential = None
        self.connection_string = None
        self.created = []
        self.fail_with = None

    def create_table_if_not_exists(self, table_name, **kwargs):
        if self.fail_with is not None:
            raise self.fail_with
        self.created.append(table_name)
        return self.table

    def get_table_client(self, table_name, **kwargs):
        self.table.table_name = table_name
        return self.table


class FakeServiceFactory:
    """Replaces the TableServiceClient class: both constructors return one service."""

    def __init__(self, service):
        self.service = service

    def __call__(self, endpoint, credential=None, **kwargs):
        self.service.endpoint = endpoint
        self.service.credential = credential
        return self.service

    def from_connection_string(self, conn_str, **kwargs):
        self.service.connection_string = conn_str
        return self.service


class SequentialKeys:
    """Deterministic row keys: millis + running suffix."""

    def __init__(self):
        self._n = itertools.count()

    def __call__(self, event_time):
        millis = unix_millis(event_time)
        return f"{millis}{next(self._n) % 1000:04d}"


@pytest.fixture
def table():
    return FakeTableClient()


@pytest.fixture
def repo(table):
    return LogRepository(table, row_keys=SequentialKeys())


@pytest.fixture
def event_time():
    return dt.datetime(2025, 7, 1, 8, 30, 0, 123000, tzinfo=dt.timezone.utc)


@pytest.fixture
def make_record(event_time):
    def _make(**overrides):
        fields = {
            "event_time": event_time,
            "node_name": "node-1",
            "log_level": 20,
            "log_level_string": "INFO",
            "log_name": "orders",
            "event_id": 7,
            "message": "order placed",
        }
        fields.update(overrides)
        return LogRecord(**fields)
    return _make


@pytest.fixture
def service(monkeypatch, table):
    fake = FakeServiceClient(table)
    monkeypatch.setattr(client, "TableServiceClient", FakeServiceFactory(fake))
    monkeypatch.setattr(client, "DefaultAzureCredential", lambda: "default-credential")
    return fake
