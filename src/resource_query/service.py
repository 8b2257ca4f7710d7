"""
ResourceService: generic index/show endpoints over the conversion engine.

Transport-agnostic: the caller passes the raw query items (for example
Starlette's ``request.query_params``) and an ``AsyncSession``; the result
is a JSON-compatible dictionary that always carries the validated request,
errors included, next to the data.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any

from .config import DEFAULT_CONFIG
from .converter import ApiAction, RequestConverter
from .pagination import Page, PaginationParser
from .query_string import QueryStringBuilder, nest_query_params, raw_parameters
from .sqla.executor import SQLAlchemyQueryExecutor

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from .config import ConverterConfig
    from .metadata import IResourceMetadataProvider
    from .sqla.operators import OperatorTable

logger = logging.getLogger("resource_query.service")


class ResourceService:
    """List and fetch any registered resource.

    Usage::

        service = ResourceService(registry)

        @app.get("/posts")
        async def index(request: Request):
            async with session_factory() as session:
                return await service.index(
                    session, "app.Post", request.query_params
                )
    """

    def __init__(
        self,
        provider: IResourceMetadataProvider,
        *,
        config: ConverterConfig | None = None,
        operators: OperatorTable | None = None,
    ) -> None:
        self._config = config or DEFAULT_CONFIG
        self._converter = RequestConverter(
            provider, config=self._config, operators=operators
        )
        self._pagination = PaginationParser(self._config)
        self._links = QueryStringBuilder()

    @property
    def converter(self) -> RequestConverter:
        return self._converter

    async def index(
        self,
        session: AsyncSession,
        resource_type: str,
        query_params: Any = None,
    ) -> dict[str, Any]:
        """One page of *resource_type* plus the pagination envelope."""
        nested = nest_query_params(query_params)
        request, plan = self._converter.convert(
            resource_type, raw_parameters(nested, self._config), ApiAction.INDEX
        )
        page_request = self._pagination.parse(nested)
        rows, total = await SQLAlchemyQueryExecutor(session).fetch_page(
            plan, page_request
        )
        page = self._with_links(
            Page(
                items=rows,
                total=total,
                page=page_request.page,
                per_page=page_request.per_page,
            ),
            query_params,
        )
        logger.debug(
            "Index %s: page %d/%d, %d rows",
            plan.resource,
            page.page,
            page.last_page,
            len(rows),
        )
        return {
            "data": page.items,
            "total": page.total,
            "per_page": page.per_page,
            "current_page": page.page,
            "last_page": page.last_page,
            "next_page": page.next_query,
            "prev_page": page.prev_query,
            "request": request.to_dict(),
        }

    async def show(
        self,
        session: AsyncSession,
        resource_type: str,
        id: str | int,  # noqa: A002
        query_params: Any = None,
    ) -> dict[str, Any]:
        """A single entity by primary key (or alternate identifier)."""
        nested = nest_query_params(query_params)
        request, plan = self._converter.convert(
            resource_type, raw_parameters(nested, self._config), ApiAction.SHOW, id
        )
        row = await SQLAlchemyQueryExecutor(session).fetch_one(plan)
        return {"object": row, "request": request.to_dict()}

    def _with_links(self, page: Page, query_params: Any) -> Page:
        page_key = self._config.page_key
        return dataclasses.replace(
            page,
            next_query=(
                self._links.build(query_params, overrides={page_key: page.page + 1})
                if page.has_next
                else None
            ),
            prev_query=(
                self._links.build(query_params, overrides={page_key: page.page - 1})
                if page.has_prev
                else None
            ),
        )
