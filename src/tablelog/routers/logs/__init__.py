# ── src/tablelog/routers/logs/__init__.py ───────────────────────────────────
"""
Log administration sub-router.

Read / delete access to the log table for operators:
    GET    /api/logs?partition=&count=
    GET    /api/logs/query?filter=&select=&partition=
    GET    /api/logs/{partition_key}/{row_key}
    DELETE /api/logs/{partition_key}/{row_key}     (If-Match: <etag>)
"""
from .endpoints import router  # re-export for `include_router`
