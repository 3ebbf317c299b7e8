import logging

import pytest
from azure.core.exceptions import HttpResponseError
from fastapi.testclient import TestClient

from tablelog.errors import StorageFailure
from tablelog.handler import TableStorageHandler
from tablelog.log_repository import LogRepository
from tablelog.main import app
from tablelog.routers.logs.endpoints import get_repository


@pytest.fixture
def client(table):
    app.dependency_overrides[get_repository] = lambda: LogRepository(table)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "healthy"}


def test_list_partition_with_count(client, table):
    table.seed("node-1", 12)
    resp = client.get("/api/logs", params={"partition": "node-1", "count": 5})

    assert resp.status_code == 200
    body = resp.json()
    assert len(body) >= 5
    assert body[0]["row_key"] == "00000000"
    assert body[0]["message"] == "m0"


def test_list_defaults_to_default_partition(client, table):
    table.seed("-1", 2)
    table.seed("node-1", 3)
    assert len(client.get("/api/logs").json()) == 2


def test_query_with_filter_and_select(client, table):
    table.seed("node-1", 2)
    resp = client.get("/api/logs/query",
                      params={"partition": "node-1", "filter": "LogLevel ge 20", "select": "RowKey, Message"})

    assert resp.status_code == 200
    assert table.queries[-1] == "(LogLevel ge 20) and (PartitionKey eq 'node-1')"
    assert [e["message"] for e in resp.json()] == ["m0", "m1"]


def test_point_read(client, table):
    table.seed("node-1", 1)
    resp = client.get("/api/logs/node-1/00000000")
    assert resp.status_code == 200
    assert resp.json()["etag"] == table.rows[("node-1", "00000000")].metadata["etag"]


def test_point_read_missing(client):
    assert client.get("/api/logs/node-1/missing").status_code == 404


def test_delete(client, table):
    table.seed("node-1", 1)
    etag = table.rows[("node-1", "00000000")].metadata["etag"]

    resp = client.delete("/api/logs/node-1/00000000", headers={"If-Match": etag})
    assert resp.status_code == 204
    assert table.rows == {}


def test_delete_missing(client):
    assert client.delete("/api/logs/node-1/missing").status_code == 404


def test_delete_stale_etag(client, table):
    table.seed("node-1", 1)
    resp = client.delete("/api/logs/node-1/00000000", headers={"If-Match": 'W/"stale"'})
    assert resp.status_code == 409
    assert ("node-1", "00000000") in table.rows


def test_storage_failure_is_bad_gateway(client, table):
    table.fail_with = HttpResponseError(message="server busy")
    assert client.get("/api/logs", params={"partition": "node-1"}).status_code == 502


# ── lifespan ─────────────────────────────────────────────────────────
def _admin_env(monkeypatch, **extra):
    for name in ("ACCOUNT_URL", "BATCH_SIZE", "LEVEL", "ATTACH"):
        monkeypatch.delenv(f"TABLE_LOGGER_{name}", raising=False)
    monkeypatch.setenv("TABLE_LOGGER_CONNECTION_STRING", "UseDevelopmentStorage=true")
    monkeypatch.setenv("TABLE_LOGGER_TABLE_NAME", "AdminLogs")
    monkeypatch.setenv("TABLE_LOGGER_NODE_NAME", "admin-1")
    for name, value in extra.items():
        monkeypatch.setenv(name, value)


class _RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.closed = False

    def emit(self, record):
        pass

    def close(self):
        self.closed = True
        super().close()


def test_startup_provisions_table(service, monkeypatch):
    _admin_env(monkeypatch)
    root = logging.getLogger()
    before = list(root.handlers)

    with TestClient(app) as client:
        assert service.created == ["AdminLogs"]
        assert client.get("/healthz").status_code == 200
        assert root.handlers == before


def test_startup_fails_when_table_cannot_be_created(service, monkeypatch):
    _admin_env(monkeypatch)
    service.fail_with = HttpResponseError(message="forbidden")

    with pytest.raises(StorageFailure):
        with TestClient(app):
            pass


def test_attached_handler_is_flushed_and_detached_on_shutdown(service, table, monkeypatch):
    _admin_env(monkeypatch, TABLE_LOGGER_ATTACH="1")
    root = logging.getLogger()
    other = _RecordingHandler()
    root.addHandler(other)
    try:
        with TestClient(app):
            attached = [h for h in root.handlers if isinstance(h, TableStorageHandler)]
            assert len(attached) == 1
            assert attached[0].node_name == "admin-1"
            logging.getLogger("app.admin").warning("disk almost full")

        assert attached[0] not in root.handlers
        assert other in root.handlers
        assert not other.closed
        assert [row["Message"] for row in table.rows.values()] == ["disk almost full"]
        assert {pk for pk, _ in table.rows} == {"admin-1"}
    finally:
        root.removeHandler(other)
