"""Request parameter parsers: fields, filters, sorting, limits."""

from __future__ import annotations

from .fields import FieldListParser
from .filters import FilterParser, inject_filter_fields, parse_filter
from .limits import LimitParser
from .sorting import SortParser

__all__ = [
    "FieldListParser",
    "FilterParser",
    "LimitParser",
    "SortParser",
    "inject_filter_fields",
    "parse_filter",
]
