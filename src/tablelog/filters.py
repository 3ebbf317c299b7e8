# ── src/tablelog/filters.py ─────────────────────────────────────────────────
"""
OData filter-string helpers for Azure Table queries.

    generate_filter_condition("PartitionKey", QueryComparisons.EQUAL, "node-1")
        → "PartitionKey eq 'node-1'"
    combine_filters(a, TableOperators.AND, b)
        → "(a) and (b)"
"""
from __future__ import annotations

import base64
import datetime as _dt
import uuid
from typing import Any


class QueryComparisons:
    EQUAL                 = "eq"
    NOT_EQUAL             = "ne"
    GREATER_THAN          = "gt"
    GREATER_THAN_OR_EQUAL = "ge"
    LESS_THAN             = "lt"
    LESS_THAN_OR_EQUAL    = "le"


class TableOperators:
    AND = "and"
    OR  = "or"
    NOT = "not"


_INT32_MIN, _INT32_MAX = -(2 ** 31), 2 ** 31 - 1


def _literal(value: Any) -> str:
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        if _INT32_MIN <= value <= _INT32_MAX:
            return str(value)
        return f"{value}L"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, _dt.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=_dt.timezone.utc)
        iso = value.astimezone(_dt.timezone.utc).isoformat().replace("+00:00", "Z")
        return f"datetime'{iso}'"
    if isinstance(value, uuid.UUID):
        return f"guid'{value}'"
    if isinstance(value, (bytes, bytearray)):
        return f"X'{bytes(value).hex()}'"
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    raise TypeError(f"Unsupported filter value type: {type(value).__name__}")


def generate_filter_condition(prop: str, operation: str, value: Any) -> str:
    return f"{prop} {operation} {_literal(value)}"


def combine_filters(filter_a: str, operator: str, filter_b: str) -> str:
    return f"({filter_a}) {operator} ({filter_b})"


def negate(filter_: str) -> str:
    return f"{TableOperators.NOT} ({filter_})"


def partition_key_filter(partition_key: str) -> str:
    return generate_filter_condition("PartitionKey", QueryComparisons.EQUAL, partition_key)


def and_filters(filter_a: str | None, filter_b: str | None) -> str:
    """
    AND two filters, dropping blank sides.

    Two blank sides yield "" – an unfiltered query over every partition.
    Callers always pass a partition filter, so that case does not occur
    through the repository.
    """
    a_blank = not (filter_a or "").strip()
    b_blank = not (filter_b or "").strip()
    if a_blank and b_blank:
        return ""
    if a_blank:
        return filter_b or ""
    if b_blank:
        return filter_a or ""
    return combine_filters(filter_a, TableOperators.AND, filter_b)
