"""
QueryCompiler: turn a validated :class:`RequestModel` into a :class:`QueryPlan`.

Field names are resolved to mapped columns through the SQLAlchemy mapper;
names with no column are skipped with a warning, so compilation always
produces a best-effort plan. Filters compile through the operator
table; filters on a relation become one existence predicate per
relation (``relationship.any()`` / ``.has()``).
"""

from __future__ import annotations

import datetime
import decimal
import logging
import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, asc, desc, false, or_, select
from sqlalchemy import inspect as sa_inspect

from ..exceptions import ResourceNotRegisteredError
from ..metadata import RelationKind
from ..model import FilterOperator, SortDirection
from .operators import DEFAULT_OPERATORS
from .plan import EagerLoad, QueryPlan

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import ColumnElement, Select
    from sqlalchemy.orm import Mapper, RelationshipProperty

    from ..metadata import ResourceMetadata
    from ..model import FilterExpression, RequestModel
    from .operators import OperatorTable

logger = logging.getLogger("resource_query.sqla.compiler")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def coerce_value(column: Any, value: str) -> Any:
    """Convert a request string to the Python type of *column*.

    Raises:
        ValueError: If the string does not represent a value of that type.
    """
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value

    if python_type is str:
        return value
    if python_type is bool:
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"Not a boolean: {value!r}")
    if python_type in (datetime.datetime, datetime.date, datetime.time):
        return python_type.fromisoformat(value)
    if python_type is uuid.UUID:
        return uuid.UUID(value)
    if python_type is decimal.Decimal:
        try:
            return decimal.Decimal(value)
        except decimal.InvalidOperation as exc:
            raise ValueError(f"Not a decimal: {value!r}") from exc
    try:
        return python_type(value)
    except TypeError as exc:
        raise ValueError(str(exc)) from exc


class QueryCompiler:
    """Compile request models against SQLAlchemy mapped classes.

    Args:
        operators: Operator table; defaults to the built-in operators.
    """

    def __init__(self, operators: OperatorTable | None = None) -> None:
        self._operators = operators or DEFAULT_OPERATORS

    def compile(
        self,
        main: ResourceMetadata,
        request: RequestModel,
        *,
        identifier: str | None = None,
    ) -> QueryPlan:
        """Build the plan.

        ``identifier`` switches to show mode: the statement matches the
        primary key (or the alternate identifier) and is limited to one
        row; sorting and filters are ignored.

        Raises:
            ResourceNotRegisteredError: If *main* has no mapped model.
        """
        if main.model is None:
            raise ResourceNotRegisteredError(
                main.type_name, reason="it has no mapped model to query"
            )
        mapper: Mapper[Any] = sa_inspect(main.model)

        columns, projected = self._projection(
            mapper, request.fields.get(main.name, ()), (main.name,)
        )
        hidden: list[str] = []
        eager_loads: list[EagerLoad] = []
        for name in request.related_resources():
            load = self._eager_load(
                mapper, main, name, request, projected, columns, hidden
            )
            if load is not None:
                eager_loads.append(load)
        if not columns:
            for pk in mapper.primary_key:
                _parent_key(str(pk.key), pk, projected, columns, hidden)

        stmt = select(*columns).select_from(mapper.local_table)
        single = identifier is not None
        if single:
            stmt = stmt.where(self._identity(mapper, main, str(identifier))).limit(1)
        else:
            stmt = self._apply_filters(stmt, mapper, main, request)
            stmt = self._apply_sort(stmt, mapper, request)

        logger.debug(
            "Compiled %s: %d columns, %d eager loads, hidden=%s",
            main.name,
            len(columns),
            len(eager_loads),
            hidden,
        )
        return QueryPlan(
            resource=main.name,
            statement=stmt,
            eager_loads=tuple(eager_loads),
            hidden=frozenset(hidden),
            single=single,
        )

    # -- projection ------------------------------------------------------------

    def _projection(
        self,
        mapper: Mapper[Any],
        fields: Iterable[str],
        prefixes: tuple[str, ...],
    ) -> tuple[list[ColumnElement[Any]], dict[str, str]]:
        """Labelled columns plus a ``column key -> label`` map."""
        columns: list[ColumnElement[Any]] = []
        projected: dict[str, str] = {}
        for field in fields:
            column = _column(mapper, field, prefixes)
            if column is None:
                logger.warning(
                    "Skipping '%s': not a mapped column of %s",
                    field,
                    mapper.class_.__name__,
                )
                continue
            if column.key in projected:
                continue
            label = field.rpartition(".")[2]
            columns.append(column.label(label))
            projected[column.key] = label
        return columns, projected

    def _eager_load(
        self,
        mapper: Mapper[Any],
        main: ResourceMetadata,
        name: str,
        request: RequestModel,
        projected: dict[str, str],
        columns: list[ColumnElement[Any]],
        hidden: list[str],
    ) -> EagerLoad | None:
        relation = main.relation(name)
        prop = mapper.relationships.get(name)
        if relation is None or prop is None:
            logger.warning(
                "Relation '%s' is not mapped on %s; not loading it",
                name,
                mapper.class_.__name__,
            )
            return None

        target: Mapper[Any] = prop.mapper
        related_columns, _ = self._projection(
            target, request.fields[name], (name, target.local_table.name)
        )
        order_by = tuple(target.primary_key)

        if relation.kind is RelationKind.MANY_TO_MANY:
            if prop.secondary is None or not prop.secondary_synchronize_pairs:
                logger.warning("Relation '%s' has no association table", name)
                return None
            parent_column, link = prop.synchronize_pairs[0]
            target_column, secondary_column = prop.secondary_synchronize_pairs[0]
            source = target.local_table.join(
                prop.secondary, target_column == secondary_column
            )
        else:
            parent_column, link = prop.local_remote_pairs[0]
            source = target.local_table

        return EagerLoad(
            relation=name,
            kind=relation.kind,
            columns=tuple(related_columns),
            source=source,
            link=link,
            parent_key=_parent_key(name, parent_column, projected, columns, hidden),
            order_by=order_by,
            limit=request.limits.get(name),
        )

    # -- predicates -------------------------------------------------------------

    def _identity(
        self, mapper: Mapper[Any], main: ResourceMetadata, identifier: str
    ) -> ColumnElement[bool]:
        branches: list[ColumnElement[bool]] = []
        for field in (main.primary_key, main.alternate_id):
            if field is None:
                continue
            column = mapper.columns.get(field)
            if column is None:
                logger.warning("Identifier column '%s' is not mapped", field)
                continue
            try:
                value = coerce_value(column, identifier)
            except ValueError:
                logger.debug("Identifier %r does not fit '%s'", identifier, field)
                continue
            branches.append(column == value)
        if not branches:
            return false()
        return or_(*branches)

    def _apply_filters(
        self,
        stmt: Select[Any],
        mapper: Mapper[Any],
        main: ResourceMetadata,
        request: RequestModel,
    ) -> Select[Any]:
        for name, expressions in request.filters.items():
            if not expressions:
                continue
            if name == main.name:
                predicates = self._predicates(mapper, expressions, (name,))
                if predicates:
                    stmt = stmt.where(*predicates)
                continue

            prop = mapper.relationships.get(name)
            if main.relation(name) is None or prop is None:
                logger.warning("Ignoring filters on unknown relation '%s'", name)
                continue
            predicates = self._predicates(
                prop.mapper, expressions, (name, prop.mapper.local_table.name)
            )
            if predicates:
                stmt = stmt.where(_exists(mapper, prop, and_(*predicates)))
        return stmt

    def _predicates(
        self,
        mapper: Mapper[Any],
        expressions: Iterable[FilterExpression],
        prefixes: tuple[str, ...],
    ) -> list[ColumnElement[bool]]:
        predicates: list[ColumnElement[bool]] = []
        for expr in expressions:
            column = _column(mapper, expr.field, prefixes)
            if column is None:
                logger.warning(
                    "Skipping filter on '%s': not a mapped column of %s",
                    expr.field,
                    mapper.class_.__name__,
                )
                continue
            value: Any = expr.value
            if value is not None and not expr.operator.is_pattern:
                try:
                    value = coerce_value(column, value)
                except ValueError:
                    logger.debug(
                        "Filter value %r does not fit column '%s'", value, expr.field
                    )
                    # No stored value can compare equal or ordered to it.
                    if expr.operator is FilterOperator.NE:
                        predicates.append(column.is_not(None))
                    else:
                        predicates.append(false())
                    continue
            predicates.append(self._operators.apply(expr.operator, column, value))
        return predicates

    def _apply_sort(
        self, stmt: Select[Any], mapper: Mapper[Any], request: RequestModel
    ) -> Select[Any]:
        for spec in request.sort:
            column = mapper.columns.get(spec.field)
            if column is None:
                logger.warning("Skipping sort on unmapped column '%s'", spec.field)
                continue
            direction = desc if spec.direction is SortDirection.DESC else asc
            stmt = stmt.order_by(direction(column))
        return stmt


def _column(
    mapper: Mapper[Any], field: str, prefixes: tuple[str, ...]
) -> ColumnElement[Any] | None:
    prefix, dot, name = field.rpartition(".")
    if dot and prefix not in prefixes:
        return None
    return mapper.columns.get(name)


def _parent_key(
    relation: str,
    column: ColumnElement[Any],
    projected: dict[str, str],
    columns: list[ColumnElement[Any]],
    hidden: list[str],
) -> str:
    """Label of the main-row column holding the join key, adding it if needed."""
    key = str(column.key)
    if key in projected:
        return projected[key]
    label = f"_key_{relation}"
    columns.append(column.label(label))
    projected[key] = label
    hidden.append(label)
    return label


def _exists(
    mapper: Mapper[Any],
    prop: RelationshipProperty[Any],
    criterion: ColumnElement[bool],
) -> ColumnElement[bool]:
    attr = getattr(mapper.class_, prop.key)
    if prop.uselist:
        return attr.any(criterion)
    return attr.has(criterion)
