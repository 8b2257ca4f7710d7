"""
SQLAlchemyQueryExecutor: run a :class:`QueryPlan` on an ``AsyncSession``.

The main statement runs first; each eager load then runs once, select-in
style, for the keys found in the main rows, and its rows are stitched into
the parents under the relation name. Hidden stitching columns are removed
before the rows are returned.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from ..metadata import RelationKind
from .plan import LINK_LABEL

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

    from ..pagination import PageRequest
    from .plan import EagerLoad, QueryPlan

logger = logging.getLogger("resource_query.sqla.executor")

#: Maximum number of parent keys bound into one ``IN`` clause.
IN_CHUNK_SIZE = 500

Row = dict[str, Any]


class SQLAlchemyQueryExecutor:
    """Execute compiled plans and return plain row dictionaries."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def fetch_one(self, plan: QueryPlan) -> Row | None:
        stmt = plan.statement if plan.single else plan.statement.limit(1)
        rows = await self._fetch(plan, stmt)
        return rows[0] if rows else None

    async def fetch_all(self, plan: QueryPlan) -> list[Row]:
        return await self._fetch(plan, plan.statement)

    async def fetch_page(
        self, plan: QueryPlan, page: PageRequest
    ) -> tuple[list[Row], int]:
        """Return one window of rows and the unpaginated total."""
        total = await self.count(plan)
        if total == 0 or page.offset >= total:
            return [], total
        stmt = plan.statement.offset(page.offset).limit(page.per_page)
        return await self._fetch(plan, stmt), total

    async def count(self, plan: QueryPlan) -> int:
        subquery = plan.statement.order_by(None).subquery()
        result = await self._session.execute(select(func.count()).select_from(subquery))
        return int(result.scalar_one())

    # -- internals -------------------------------------------------------------

    async def _fetch(self, plan: QueryPlan, stmt: Select[Any]) -> list[Row]:
        result = await self._session.execute(stmt)
        rows = [dict(mapping) for mapping in result.mappings()]
        for load in plan.eager_loads:
            await self._stitch(load, rows)
        if plan.hidden:
            for row in rows:
                for label in plan.hidden:
                    row.pop(label, None)
        logger.debug(
            "Fetched %d %s rows (%d eager loads)",
            len(rows),
            plan.resource,
            len(plan.eager_loads),
        )
        return rows

    async def _stitch(self, load: EagerLoad, rows: list[Row]) -> None:
        keys = list(
            dict.fromkeys(
                row[load.parent_key]
                for row in rows
                if row.get(load.parent_key) is not None
            )
        )
        children: dict[Any, list[Row]] = defaultdict(list)
        for start in range(0, len(keys), IN_CHUNK_SIZE):
            chunk = keys[start : start + IN_CHUNK_SIZE]
            result = await self._session.execute(load.statement(chunk))
            for mapping in result.mappings():
                child = dict(mapping)
                children[child.pop(LINK_LABEL)].append(child)

        for row in rows:
            related = children.get(row.get(load.parent_key), [])
            if load.kind is RelationKind.TO_ONE:
                row[load.relation] = dict(related[0]) if related else None
            else:
                row[load.relation] = [dict(child) for child in related]
