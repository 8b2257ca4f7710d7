"""
Filter operators compiled to SQLAlchemy boolean clauses.

Every :class:`~resource_query.model.FilterOperator` of the filter grammar
maps to a function ``(column, value) -> ColumnElement[bool]``. An
:class:`OperatorTable` must cover the whole grammar, so a parsed filter can
always be compiled.

Usage::

    from resource_query.sqla.operators import DEFAULT_OPERATORS

    expr = DEFAULT_OPERATORS.apply(FilterOperator.GE, Post.price, 10)

    # case-insensitive matching
    operators = DEFAULT_OPERATORS.replace(
        {FilterOperator.LIKE: lambda column, value: column.ilike(value)}
    )
"""

from __future__ import annotations

import operator as op_module
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, cast

from ..model import FilterOperator

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement

ClauseBuilder = Callable[[Any, Any], Any]


def _is_null(column: Any, _value: Any) -> Any:
    return column.is_(None)


def _is_not_null(column: Any, _value: Any) -> Any:
    return column.is_not(None)


_BUILTIN: dict[FilterOperator, ClauseBuilder] = {
    FilterOperator.EQ: op_module.eq,
    FilterOperator.NE: op_module.ne,
    FilterOperator.GT: op_module.gt,
    FilterOperator.GE: op_module.ge,
    FilterOperator.LT: op_module.lt,
    FilterOperator.LE: op_module.le,
    FilterOperator.LIKE: lambda column, value: column.like(value),
    FilterOperator.NOT_LIKE: lambda column, value: column.not_like(value),
    FilterOperator.IS_NULL: _is_null,
    FilterOperator.IS_NOT_NULL: _is_not_null,
}


class OperatorTable:
    """Clause builders for every filter operator.

    Args:
        builders: One builder per :class:`FilterOperator`.

    Raises:
        ValueError: If an operator of the grammar has no builder.
    """

    __slots__ = ("_builders",)

    def __init__(self, builders: Mapping[FilterOperator, ClauseBuilder]) -> None:
        missing = [op.value for op in FilterOperator if op not in builders]
        if missing:
            raise ValueError(
                f"Operator table is missing builders for: {', '.join(missing)}"
            )
        self._builders = {op: builders[op] for op in FilterOperator}

    def replace(
        self, builders: Mapping[FilterOperator, ClauseBuilder]
    ) -> OperatorTable:
        """Return a copy with some builders swapped out."""
        return OperatorTable({**self._builders, **builders})

    def apply(
        self, operator: FilterOperator, column: Any, value: Any
    ) -> ColumnElement[bool]:
        """Build the clause for ``column <operator> value``.

        ``value`` is already coerced; it is ``None`` for the nullability
        operators.
        """
        return cast("ColumnElement[bool]", self._builders[operator](column, value))


DEFAULT_OPERATORS: OperatorTable = OperatorTable(_BUILTIN)
