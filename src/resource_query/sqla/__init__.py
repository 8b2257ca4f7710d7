"""SQLAlchemy backend: compiler, operator table, plan and async executor."""

from __future__ import annotations

from .compiler import QueryCompiler, coerce_value
from .executor import SQLAlchemyQueryExecutor
from .operators import DEFAULT_OPERATORS, ClauseBuilder, OperatorTable
from .plan import LINK_LABEL, EagerLoad, QueryPlan

__all__ = [
    "DEFAULT_OPERATORS",
    "LINK_LABEL",
    "ClauseBuilder",
    "EagerLoad",
    "OperatorTable",
    "QueryCompiler",
    "QueryPlan",
    "SQLAlchemyQueryExecutor",
    "coerce_value",
]
