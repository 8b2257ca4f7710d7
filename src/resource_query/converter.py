"""
RequestConverter: the single entry point from raw parameters to a query plan.

Passes run in a fixed order::

    sorting (index only) -> field selection -> filters -> filter-derived
    fields -> relation resolution -> limits -> compilation

Validation problems never abort the pipeline: the offending item is left
out and a message is appended to ``RequestModel.errors``. Only caller
configuration errors raise (see :mod:`resource_query.exceptions`).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, NamedTuple

from .config import DEFAULT_CONFIG
from .exceptions import (
    MissingIdentifierError,
    ResourceNotRegisteredError,
    UnsupportedActionError,
)
from .model import RawRequestParameters, RequestModel
from .parsing import (
    FieldListParser,
    FilterParser,
    LimitParser,
    SortParser,
    inject_filter_fields,
)
from .query_string import raw_parameters
from .relations import RelationResolver
from .sqla.compiler import QueryCompiler

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .config import ConverterConfig
    from .metadata import IResourceMetadataProvider, ResourceMetadata
    from .sqla.plan import QueryPlan
    from .sqla.operators import OperatorTable

logger = logging.getLogger("resource_query.converter")


class ApiAction(str, Enum):
    INDEX = "index"
    SHOW = "show"


class Conversion(NamedTuple):
    """Result of :meth:`RequestConverter.convert`."""

    request: RequestModel
    plan: QueryPlan


class RequestConverter:
    """Convert raw request parameters into a validated model and a plan.

    Usage::

        converter = RequestConverter(registry)
        request, plan = converter.convert(
            "app.Post",
            {"fields": {"post": "title", "author": "name"}, "sorting": "-title"},
            ApiAction.INDEX,
        )

    Args:
        provider: Resolves resource type names to metadata.
        config: Parameter names and wildcard token.
        operators: Operator table handed to the compiler.
    """

    def __init__(
        self,
        provider: IResourceMetadataProvider,
        *,
        config: ConverterConfig | None = None,
        operators: OperatorTable | None = None,
    ) -> None:
        self._provider = provider
        self._config = config or DEFAULT_CONFIG
        self._fields = FieldListParser(provider, wildcard=self._config.wildcard)
        self._filters = FilterParser()
        self._sorting = SortParser()
        self._limits = LimitParser()
        self._relations = RelationResolver()
        self._compiler = QueryCompiler(operators)

    def convert(
        self,
        resource_type: str,
        raw: RawRequestParameters | Mapping[str, Any] | None,
        action: ApiAction | str = ApiAction.INDEX,
        id: str | int | None = None,  # noqa: A002
    ) -> Conversion:
        """Run every pass and compile the plan.

        Raises:
            UnsupportedActionError: *action* is neither index nor show.
            MissingIdentifierError: show without *id*.
            ResourceNotRegisteredError: *resource_type* is unknown.
        """
        api_action = self._action(action)
        if api_action is ApiAction.SHOW and (id is None or id == ""):
            raise MissingIdentifierError(resource_type)
        main = self._main(resource_type)
        params = self._params(raw)

        request = RequestModel(resource=main.name)
        if api_action is ApiAction.INDEX:
            self._sorting.parse(params.sorting, main, request)
        self._fields.parse(params.fields, main, request)
        self._filters.parse(params.filters, request)
        inject_filter_fields(request)
        self._relations.resolve(main, request)
        self._limits.parse(params.limit, request)

        plan = self._compiler.compile(
            main,
            request,
            identifier=str(id) if api_action is ApiAction.SHOW else None,
        )
        logger.info(
            "Converted %s %s request: %d relations, %d filters, %d errors",
            api_action.value,
            main.name,
            len(plan.eager_loads),
            sum(len(exprs) for exprs in request.filters.values()),
            len(request.errors),
        )
        if request.errors:
            logger.debug("Conversion errors for %s: %s", main.name, request.errors)
        return Conversion(request, plan)

    def _main(self, resource_type: str) -> ResourceMetadata:
        main = self._provider.get(resource_type)
        if main is None:
            known = getattr(self._provider, "type_names", None)
            raise ResourceNotRegisteredError(
                resource_type, known() if callable(known) else None
            )
        return main

    def _params(
        self, raw: RawRequestParameters | Mapping[str, Any] | None
    ) -> RawRequestParameters:
        if isinstance(raw, RawRequestParameters):
            return raw
        return raw_parameters(raw or {}, self._config)

    @staticmethod
    def _action(action: ApiAction | str) -> ApiAction:
        try:
            return ApiAction(action)
        except ValueError:
            raise UnsupportedActionError(action) from None
