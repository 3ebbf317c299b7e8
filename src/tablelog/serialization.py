# ── src/tablelog/serialization.py ───────────────────────────────────────────
"""
JSON serialization that tolerates reference cycles.

Exceptions are the main customer: `__cause__` / `__context__` chains and
attributes pointing back at the exception (or at a frame holding it) make
plain `json.dumps` blow up. The walker below keeps the set of objects on the
current path and drops any edge that leads back into it – the cycle is
elided, the rest of the graph is kept.
"""
from __future__ import annotations

import datetime as _dt
import json
import math
import traceback
from typing import Any, Dict, List, Optional, Set

_MAX_DEPTH = 32
_SCALARS = (str, int, float, bool, type(None))
_OMIT = object()


def _exception_fields(exc: BaseException) -> Dict[str, Any]:
    fields: Dict[str, Any] = {
        "ClassName": f"{type(exc).__module__}.{type(exc).__qualname__}",
        "Message":   str(exc),
        "Args":      list(exc.args),
    }
    if exc.__traceback__ is not None:
        fields["StackTrace"] = "".join(traceback.format_tb(exc.__traceback__))
    inner = exc.__cause__ or exc.__context__
    if inner is not None:
        fields["InnerException"] = inner
    for k, v in vars(exc).items():
        if not k.startswith("_"):
            fields[k] = v
    return fields


def _walk(obj: Any, path: Set[int], depth: int) -> Any:
    if isinstance(obj, float) and not math.isfinite(obj):
        return str(obj)                  # "nan", "inf", "-inf": JSON has no literal
    if isinstance(obj, _SCALARS):
        return obj
    if isinstance(obj, (_dt.datetime, _dt.date)):
        return obj.isoformat()
    if id(obj) in path:
        return _OMIT                     # back-edge
    if depth >= _MAX_DEPTH:
        return repr(obj)

    path.add(id(obj))
    try:
        if isinstance(obj, BaseException):
            return _walk_mapping(_exception_fields(obj), path, depth)
        if isinstance(obj, dict):
            return _walk_mapping(obj, path, depth)
        if isinstance(obj, (list, tuple, set, frozenset)):
            out: List[Any] = []
            for item in obj:
                v = _walk(item, path, depth + 1)
                if v is not _OMIT:
                    out.append(v)
            return out
        if hasattr(obj, "__dict__"):
            public = {k: v for k, v in vars(obj).items() if not k.startswith("_")}
            return _walk_mapping(public, path, depth)
        return str(obj)
    finally:
        path.discard(id(obj))


def _walk_mapping(mapping: Dict[Any, Any], path: Set[int], depth: int) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in mapping.items():
        value = _walk(v, path, depth + 1)
        if value is not _OMIT:
            out[str(k)] = value
    return out


def to_jsonable(obj: Any) -> Any:
    """Plain JSON-compatible copy of *obj* with cyclic back-edges removed."""
    value = _walk(obj, set(), 0)
    return None if value is _OMIT else value


def dumps(obj: Any, **kwargs: Any) -> str:
    return json.dumps(to_jsonable(obj), ensure_ascii=False, allow_nan=False, default=str, **kwargs)


def dumps_optional(obj: Optional[Any]) -> Optional[str]:
    return None if obj is None else dumps(obj)
