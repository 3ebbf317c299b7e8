# ── src/tablelog/scopes.py ──────────────────────────────────────────────────
"""
Logging scopes: ambient key/value context attached to every record emitted
while the scope is active.

A scope is one of three variants:
    MappingScope({"RequestId": "abc", ...})
    PairScope("CorrelationId", "xyz")
    OpaqueScope(<anything without keys>)

Usage:
    with begin_scope({"RequestId": rid}):
        log.info("handled")          # record carries the RequestId scope
"""
from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Tuple, Union


@dataclass(frozen=True)
class MappingScope:
    values: Mapping[str, Any]


@dataclass(frozen=True)
class PairScope:
    key: str
    value: Any


@dataclass(frozen=True)
class OpaqueScope:
    value: Any


Scope = Union[MappingScope, PairScope, OpaqueScope]

_SCOPE_TYPES = (MappingScope, PairScope, OpaqueScope)


def as_scope(state: Any) -> Scope:
    """Wrap a raw scope state in the matching variant."""
    if isinstance(state, _SCOPE_TYPES):
        return state
    if isinstance(state, Mapping):
        return MappingScope(dict(state))
    if isinstance(state, tuple) and len(state) == 2 and isinstance(state[0], str):
        return PairScope(state[0], state[1])
    return OpaqueScope(state)


# ── active scope stack ───────────────────────────────────────────────
_active: contextvars.ContextVar[Tuple[Scope, ...]] = contextvars.ContextVar(
    "tablelog_scopes", default=()
)


def current_scopes() -> Tuple[Scope, ...]:
    return _active.get()


@contextmanager
def begin_scope(state: Any) -> Iterator[Scope]:
    scope = as_scope(state)
    token = _active.set(_active.get() + (scope,))
    try:
        yield scope
    finally:
        _active.reset(token)
