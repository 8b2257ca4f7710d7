"""
Compiled query plan.

A :class:`QueryPlan` holds the main ``SELECT`` plus one :class:`EagerLoad`
per requested relation. Eager loads are executed select-in style: once the
main rows are known, :meth:`EagerLoad.statement` builds a query scoped to
their keys, optionally capped per parent row.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy import ColumnElement, FromClause, Select

    from ..metadata import RelationKind

#: Label of the column that ties a related row to its parent.
LINK_LABEL = "_link"
#: Label of the per-parent rank used for row caps.
RANK_LABEL = "_rank"


@dataclass(frozen=True)
class EagerLoad:
    """Scoped load of one relation.

    Attributes:
        relation: Relation name; also the key the rows are stitched under.
        kind: Relation cardinality. ``TO_ONE`` yields one dict or ``None``.
        columns: Labelled projection of the related resource.
        source: FROM clause (the target table, joined to the association
            table for many-to-many).
        link: Column matched against the parent keys.
        parent_key: Label of the parent-row column holding the key.
        order_by: Stable order inside one parent (target primary key).
        limit: Optional row cap per parent.
    """

    relation: str
    kind: RelationKind
    columns: tuple[ColumnElement[Any], ...]
    source: FromClause
    link: ColumnElement[Any]
    parent_key: str
    order_by: tuple[ColumnElement[Any], ...] = ()
    limit: int | None = None

    def statement(self, keys: Iterable[Any]) -> Select[Any]:
        """Build the relation query for the given parent keys."""
        stmt = (
            select(*self.columns, self.link.label(LINK_LABEL))
            .select_from(self.source)
            .where(self.link.in_(list(keys)))
        )
        if self.limit is None:
            return stmt.order_by(self.link, *self.order_by)

        rank = (
            func.row_number()
            .over(partition_by=self.link, order_by=list(self.order_by) or None)
            .label(RANK_LABEL)
        )
        ranked = stmt.add_columns(rank).subquery()
        visible = [col for col in ranked.c if col.key != RANK_LABEL]
        return (
            select(*visible)
            .where(ranked.c[RANK_LABEL] <= self.limit)
            .order_by(ranked.c[LINK_LABEL], ranked.c[RANK_LABEL])
        )


@dataclass(frozen=True)
class QueryPlan:
    """Everything needed to execute one converted request.

    Attributes:
        resource: Request-facing name of the main resource.
        statement: Main ``SELECT`` (projection, predicates, order, limit).
        eager_loads: One scoped load per requested relation.
        hidden: Labels of main-row columns added only to stitch relations;
            stripped from the results.
        single: ``True`` for show mode (at most one row).
    """

    resource: str
    statement: Select[Any]
    eager_loads: tuple[EagerLoad, ...] = ()
    hidden: frozenset[str] = frozenset()
    single: bool = False

    def eager_load(self, relation: str) -> EagerLoad | None:
        for load in self.eager_loads:
            if load.relation == relation:
                return load
        return None
