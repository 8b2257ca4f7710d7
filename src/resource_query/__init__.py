"""
resource-query — turn API query parameters into validated SQLAlchemy queries.

Field selection, sorting, filters, eager-loaded relations with per-relation
row caps, and show/index compilation against per-resource allow-lists.
"""

from __future__ import annotations

from .config import DEFAULT_CONFIG, ConverterConfig
from .converter import ApiAction, Conversion, RequestConverter
from .exceptions import (
    MissingIdentifierError,
    ResourceNotRegisteredError,
    ResourceQueryError,
    UnsupportedActionError,
)
from .fieldset import FieldSet
from .metadata import (
    IResourceMetadataProvider,
    Relation,
    RelationKind,
    ResourceMetadata,
    ResourceRegistry,
)
from .model import (
    FilterExpression,
    FilterOperator,
    RawRequestParameters,
    RequestModel,
    SortDirection,
    SortSpec,
)
from .pagination import Page, PageRequest, PaginationParser
from .query_string import QueryStringBuilder, parse_query_params
from .service import ResourceService
from .sqla import QueryCompiler, QueryPlan, SQLAlchemyQueryExecutor

__all__ = [
    "DEFAULT_CONFIG",
    "ApiAction",
    "Conversion",
    "ConverterConfig",
    "FieldSet",
    "FilterExpression",
    "FilterOperator",
    "IResourceMetadataProvider",
    "MissingIdentifierError",
    "Page",
    "PageRequest",
    "PaginationParser",
    "QueryCompiler",
    "QueryPlan",
    "QueryStringBuilder",
    "RawRequestParameters",
    "Relation",
    "RelationKind",
    "RequestConverter",
    "RequestModel",
    "ResourceMetadata",
    "ResourceNotRegisteredError",
    "ResourceQueryError",
    "ResourceRegistry",
    "ResourceService",
    "SQLAlchemyQueryExecutor",
    "SortDirection",
    "SortSpec",
    "UnsupportedActionError",
    "parse_query_params",
]
