"""PaginationParser: ``page``/``per_page`` from query params, plus the Page envelope."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, NamedTuple

from .config import DEFAULT_CONFIG

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .config import ConverterConfig


class PageRequest(NamedTuple):
    page: int
    per_page: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class PaginationParser:
    """Parse a 1-based page number and a clamped page size."""

    def __init__(self, config: ConverterConfig | None = None) -> None:
        self._config = config or DEFAULT_CONFIG

    def parse(self, query_params: Mapping[str, Any]) -> PageRequest:
        cfg = self._config
        page = _int_param(query_params.get(cfg.page_key))
        page = max(1, page) if page is not None else 1
        per_page = _int_param(query_params.get(cfg.per_page_key))
        if per_page is None:
            per_page = cfg.default_per_page
        per_page = min(cfg.max_per_page, max(1, per_page))
        return PageRequest(page=page, per_page=per_page)


@dataclass(frozen=True)
class Page:
    """One window of an index result."""

    items: list[dict[str, Any]]
    total: int
    page: int
    per_page: int
    next_query: str | None = field(default=None)
    prev_query: str | None = field(default=None)

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def has_next(self) -> bool:
        return self.page < self.last_page

    @property
    def has_prev(self) -> bool:
        return self.page > 1


def _int_param(value: Any) -> int | None:
    if isinstance(value, list | tuple):
        value = value[0] if value else None
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
