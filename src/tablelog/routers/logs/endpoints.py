# ── src/tablelog/routers/logs/endpoints.py ──────────────────────────────────
import datetime as _dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response
from pydantic import BaseModel, ConfigDict, Field

from ...config import TableStorageLoggerOptions
from ...entities import LogEntity
from ...errors import ConcurrencyConflict, NotFound, StorageFailure
from ...log_repository import LogRepository

# ── Pydantic response model --------------------------------------------
class LogEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    partition_key:    str                     = Field(..., description="Node name")
    row_key:          str                     = Field(..., description="Epoch millis + random suffix")
    timestamp:        Optional[_dt.datetime]  = None
    log_level:        int                     = 0
    log_level_string: Optional[str]           = None
    log_name:         Optional[str]           = None
    event_id:         int                     = 0
    message:          Optional[str]           = None
    data:             Optional[str]           = None
    exception:        Optional[str]           = None
    request_id:       Optional[str]           = None
    correlation_id:   Optional[str]           = None
    etag:             Optional[str]           = None

# ── Router -------------------------------------------------------------
router = APIRouter(prefix="/api/logs", tags=["logs"])

# ── Repository (lazy singleton, same TABLE_LOGGER_* env as the handler) -
_repository: Optional[LogRepository] = None

def get_repository() -> LogRepository:
    global _repository
    if _repository is None:
        _repository = LogRepository.from_options(TableStorageLoggerOptions.from_env())
    return _repository

def _select(select: Optional[str]) -> List[str]:
    return [s.strip() for s in (select or "").split(",") if s.strip()]

def _bad_gateway(exc: StorageFailure) -> HTTPException:
    return HTTPException(status_code=502, detail={"error": "storage failure", "status": exc.status_code})

# ── Endpoints ----------------------------------------------------------
@router.get("", response_model=List[LogEntryOut], summary="List log entries of a partition")
def list_logs(
    partition: Optional[str] = Query(None, description="Node name (repository default if omitted)"),
    count:     Optional[int] = Query(None, ge=1, description="Stop paging once this many entries are read"),
    repo:      LogRepository = Depends(get_repository),
):
    try:
        return repo.get_all(partition, count=count)
    except StorageFailure as exc:
        raise _bad_gateway(exc)

@router.get("/query", response_model=List[LogEntryOut], summary="Filtered / projected query")
def query_logs(
    filter:    Optional[str] = Query(None, description="OData filter, AND-ed with the partition"),
    select:    Optional[str] = Query(None, description="Comma-separated property names"),
    partition: Optional[str] = Query(None),
    repo:      LogRepository = Depends(get_repository),
):
    fields = _select(select)
    try:
        if fields:
            return repo.get_with_select_filter(fields, filter, partition)
        return repo.get_with_filter(filter, partition)
    except StorageFailure as exc:
        raise _bad_gateway(exc)

@router.get("/{partition_key}/{row_key}", response_model=LogEntryOut, summary="Point read")
def get_log(partition_key: str, row_key: str, repo: LogRepository = Depends(get_repository)):
    try:
        entity = repo.get(partition_key, row_key)
    except StorageFailure as exc:
        raise _bad_gateway(exc)
    if entity is None:
        raise HTTPException(status_code=404, detail="Log entry not found")
    return entity

@router.delete("/{partition_key}/{row_key}", status_code=204, summary="Delete one entry")
def delete_log(
    partition_key: str,
    row_key:       str,
    if_match:      Optional[str] = Header(None, description="ETag; unconditional delete when absent"),
    repo:          LogRepository = Depends(get_repository),
):
    try:
        repo.delete(LogEntity(partition_key=partition_key, row_key=row_key, etag=if_match))
    except NotFound:
        raise HTTPException(status_code=404, detail="Log entry not found")
    except ConcurrencyConflict:
        raise HTTPException(status_code=409, detail="ETag mismatch – entry was modified")
    except StorageFailure as exc:
        raise _bad_gateway(exc)
    return Response(status_code=204)
