"""
FilterParser: ``filters[resource]=field op value`` -> FilterExpressions.

Grammar (case-insensitive operators)::

    <field>[ ]<operator>[ ][<value>]

    operator := = | != | > | >= | < | <= | like | not like | null | not null

The grammar is read by a small scanner instead of a regular expression:
field, optional space, operator token, optional space, rest-of-string as
value. Strings that do not fit are dropped without an error.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

from ..model import FilterExpression, FilterOperator

if TYPE_CHECKING:
    from ..model import RequestModel

logger = logging.getLogger("resource_query.parsing.filters")

# Longest first so ">=" wins over ">".
_SYMBOL_OPERATORS: tuple[tuple[str, FilterOperator], ...] = (
    (">=", FilterOperator.GE),
    ("<=", FilterOperator.LE),
    ("!=", FilterOperator.NE),
    ("=", FilterOperator.EQ),
    (">", FilterOperator.GT),
    ("<", FilterOperator.LT),
)

_WORD_OPERATORS: dict[str, FilterOperator] = {
    "like": FilterOperator.LIKE,
    "null": FilterOperator.IS_NULL,
}

_NEGATED_OPERATORS: dict[str, FilterOperator] = {
    "like": FilterOperator.NOT_LIKE,
    "null": FilterOperator.IS_NOT_NULL,
}


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _read_word(text: str, pos: int) -> tuple[str, int]:
    end = pos
    while end < len(text) and text[end].isalpha():
        end += 1
    return text[pos:end].lower(), end


def _read_operator(
    text: str, pos: int, *, spaced: bool
) -> tuple[FilterOperator | None, int]:
    for token, op in _SYMBOL_OPERATORS:
        if text.startswith(token, pos):
            return op, pos + len(token)

    # word operators must be separated from the field
    if not spaced:
        return None, pos
    word, end = _read_word(text, pos)
    op = _WORD_OPERATORS.get(word)
    if word == "not":
        gap = end
        while gap < len(text) and text[gap].isspace():
            gap += 1
        if gap == end:
            return None, pos
        word, end = _read_word(text, gap)
        op = _NEGATED_OPERATORS.get(word)
    if op is None or (end < len(text) and _is_word_char(text[end])):
        return None, pos
    return op, end


def parse_filter(raw: str) -> FilterExpression | None:
    """Parse one filter string; ``None`` when it does not fit the grammar."""
    text = unquote(raw).strip()

    pos = 0
    while pos < len(text) and _is_word_char(text[pos]):
        pos += 1
    if pos == 0:
        return None
    field = text[:pos]

    spaced = text.startswith(" ", pos)
    if spaced:
        pos += 1

    op, pos = _read_operator(text, pos, spaced=spaced)
    if op is None:
        return None

    if text.startswith(" ", pos):
        pos += 1
    value = text[pos:]

    if op.takes_value:
        return FilterExpression(field, op, value) if value else None
    return None if value.strip() else FilterExpression(field, op)


class FilterParser:
    """Parse per-resource filter strings into ordered FilterExpressions."""

    def parse(
        self, raw: Any, request: RequestModel
    ) -> dict[str, list[FilterExpression]]:
        """Populate ``request.filters`` and return it."""
        filters: dict[str, list[FilterExpression]] = {}
        if raw and isinstance(raw, Mapping):
            for key, value in raw.items():
                parsed = [
                    expr
                    for expr in (parse_filter(item) for item in self._items(value))
                    if expr is not None
                ]
                if parsed:
                    filters[str(key)] = parsed
        request.filters = filters
        logger.debug("Parsed filters: %s", filters)
        return filters

    @staticmethod
    def _items(value: Any) -> list[str]:
        if isinstance(value, str):
            return [value]
        if isinstance(value, list | tuple):
            return [item for item in value if isinstance(item, str)]
        return []


def inject_filter_fields(request: RequestModel) -> None:
    """Append every filtered field to its resource's field list.

    Only resources that already have a field list are touched: filtering on
    a related resource must not turn it into an eager-loaded one.
    """
    for resource, exprs in request.filters.items():
        fields = request.fields.get(resource)
        if fields is None:
            continue
        for expr in exprs:
            if fields.ensure(expr.field):
                logger.debug("Injected filter field %s.%s", resource, expr.field)
