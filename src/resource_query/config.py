"""ConverterConfig: parameter names and limits shared by every layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ConverterConfig:
    """Configuration for request conversion and pagination.

    Attributes:
        fields_key: Query parameter holding per-resource field lists.
        sort_key: Query parameter holding the sort string.
        sort_aliases: Alternative names accepted for ``sort_key``.
        filters_key: Query parameter holding per-resource filters.
        limit_key: Query parameter holding per-relation row caps.
        page_key: Query parameter holding the 1-based page number.
        per_page_key: Query parameter holding the page size.
        wildcard: Field token selecting the whole allow-list.
        default_per_page: Page size when the client sends none.
        max_per_page: Upper bound for client-supplied page sizes.
    """

    fields_key: str = "fields"
    sort_key: str = "sorting"
    sort_aliases: tuple[str, ...] = ("sort",)
    filters_key: str = "filters"
    limit_key: str = "limit"
    page_key: str = "page"
    per_page_key: str = "per_page"
    wildcard: str = "*"
    default_per_page: int = 15
    max_per_page: int = 100


DEFAULT_CONFIG = ConverterConfig()
