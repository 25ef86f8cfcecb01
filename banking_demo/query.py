"""
Document Query Module

A small conjunctive query model over stored JSON documents: typed
conditions, one sort key, skip/limit and a separate count. Storage backends
evaluate it against their raw documents.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional


class Operator(Enum):
    """Comparison operators supported by document conditions"""
    EQ = "eq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    CONTAINS = "contains"  # Case-insensitive substring
    EXISTS = "exists"      # Value is a bool: field present and not null


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp, treating naive values as UTC"""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


@dataclass
class Condition:
    field: str
    operator: Operator
    value: Any


@dataclass
class DocumentQuery:
    """
    Conjunction of conditions plus ordering and paging.

    ``field_types`` maps a field name to a converter applied to the stored
    value before comparing or sorting, so decimal strings compare
    numerically and ISO strings compare chronologically.
    """
    conditions: List[Condition] = field(default_factory=list)
    sort_by: Optional[str] = None
    descending: bool = False
    skip: int = 0
    limit: Optional[int] = None
    field_types: Dict[str, Callable[[Any], Any]] = field(default_factory=dict)

    def where(self, field_name: str, operator: Operator, value: Any) -> 'DocumentQuery':
        self.conditions.append(Condition(field_name, operator, value))
        return self

    def coerce(self, field_name: str, raw: Any) -> Any:
        if raw is None:
            return None
        converter = self.field_types.get(field_name)
        return converter(raw) if converter else raw


def _condition_matches(document: Dict[str, Any], condition: Condition, query: DocumentQuery) -> bool:
    raw = document.get(condition.field)

    if condition.operator == Operator.EXISTS:
        return (raw is not None) == bool(condition.value)

    if raw is None:
        return condition.operator == Operator.EQ and condition.value is None

    if condition.operator == Operator.CONTAINS:
        pattern = re.escape(str(condition.value))
        return re.search(pattern, str(raw), re.IGNORECASE) is not None

    actual = query.coerce(condition.field, raw)
    expected = condition.value

    if condition.operator == Operator.EQ:
        return actual == expected
    if condition.operator == Operator.GT:
        return actual > expected
    if condition.operator == Operator.GTE:
        return actual >= expected
    if condition.operator == Operator.LT:
        return actual < expected
    if condition.operator == Operator.LTE:
        return actual <= expected

    raise ValueError(f"Unsupported operator: {condition.operator}")


def matches(document: Dict[str, Any], query: DocumentQuery) -> bool:
    """Check whether a document satisfies every condition of the query"""
    return all(_condition_matches(document, c, query) for c in query.conditions)


def filter_documents(documents: Iterable[Dict[str, Any]], query: DocumentQuery) -> List[Dict[str, Any]]:
    return [doc for doc in documents if matches(doc, query)]


def sort_documents(documents: List[Dict[str, Any]], query: DocumentQuery) -> List[Dict[str, Any]]:
    """Sort by the query's sort field. Documents missing the field go last."""
    if not query.sort_by:
        return list(documents)

    present = [d for d in documents if d.get(query.sort_by) is not None]
    missing = [d for d in documents if d.get(query.sort_by) is None]
    present.sort(
        key=lambda d: query.coerce(query.sort_by, d[query.sort_by]),
        reverse=query.descending
    )
    return present + missing


def apply_query(documents: Iterable[Dict[str, Any]], query: DocumentQuery) -> List[Dict[str, Any]]:
    """Filter, sort, then page a document set"""
    selected = sort_documents(filter_documents(documents, query), query)
    start = max(query.skip, 0)
    if query.limit is None:
        return selected[start:]
    return selected[start:start + query.limit]


def count_matching(documents: Iterable[Dict[str, Any]], query: DocumentQuery) -> int:
    """Count matching documents, ignoring sort and paging"""
    return sum(1 for doc in documents if matches(doc, query))
