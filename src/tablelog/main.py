# ── src/tablelog/main.py ────────────────────────────────────────────────────
"""
Admin app for the log table.

    uvicorn tablelog.main:app

On startup the log table is provisioned (create-if-absent) and, when
TABLE_LOGGER_ATTACH=1, this process's own root logger is shipped to it too.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .client import ensure_table
from .config import TableStorageLoggerOptions
from .handler import add_table_storage_logger
from .routers.logs import router as logs_router

_logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    options = TableStorageLoggerOptions.from_env()
    ensure_table(options)
    handler = None
    if os.getenv("TABLE_LOGGER_ATTACH", "0").strip() == "1":
        handler = add_table_storage_logger(options=options, provision=False)
        _logger.info("Root logger shipped to table '%s' as node '%s'",
                     options.table_name, options.node_name)
    yield
    if handler is not None:
        # only our handler; uvicorn's stay open
        handler.flush()
        logging.getLogger().removeHandler(handler)
        handler.close()


app = FastAPI(title="tablelog admin", lifespan=_lifespan)

# ── CORS
# Comma/space-separated ADMIN_ORIGIN list; none → no cross-origin access.
def _parse_origins(env_value: str) -> list[str]:
    raw = [p.strip().rstrip("/") for chunk in env_value.split(",") for p in chunk.split()]
    origins: list[str] = []
    for o in raw:
        if o and o not in origins:
            origins.append(o)
    return origins

_admin_origins = _parse_origins(os.getenv("ADMIN_ORIGIN", ""))

if _admin_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_admin_origins,
        allow_credentials=True,
        allow_methods=["GET", "DELETE"],
        allow_headers=["*"],
    )

# ── routes -------------------------------------------------------------------
app.include_router(logs_router)


@app.get("/healthz", include_in_schema=False)
def health_check():
    return JSONResponse({"status": "healthy"})


@app.get("/", include_in_schema=False)
def root():
    return {
        "status": "ok",
        "info": "/healthz, /api/logs, /api/logs/query, /api/logs/{partition}/{row}",
    }
