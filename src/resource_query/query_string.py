"""
Query-string handling.

``parse_query_params`` folds flat ``(key, value)`` pairs using bracket
notation into the nested shape the parsers read::

    fields[post]=title,body       -> {"fields": {"post": "title,body"}}
    filters[post][]=price>=10     -> {"filters": {"post": ["price>=10"]}}

``QueryStringBuilder`` rebuilds a query string for pagination links,
keeping every incoming parameter and overriding the page ones.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from .config import DEFAULT_CONFIG
from .model import RawRequestParameters

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .config import ConverterConfig

_KEY_RE = re.compile(r"^(?P<name>[^\[\]]+)(?P<path>(?:\[[^\[\]]*\])*)$")
_SEGMENT_RE = re.compile(r"\[([^\[\]]*)\]")


def iter_query_items(items: Any) -> Iterator[tuple[str, Any]]:
    """Yield ``(key, value)`` pairs from a multi-dict, mapping or pair list.

    Mapping values that are lists yield one pair per element.
    """
    if items is None:
        return
    if hasattr(items, "multi_items"):
        yield from items.multi_items()
        return
    if isinstance(items, Mapping):
        for key, value in items.items():
            if isinstance(value, list | tuple):
                for item in value:
                    yield str(key), item
            else:
                yield str(key), value
        return
    for key, value in items:
        yield str(key), value


def nest_query_params(items: Any) -> dict[str, Any]:
    """Fold bracket keys into nested dicts; repeated keys become lists."""
    params: dict[str, Any] = {}
    for key, value in iter_query_items(items):
        match = _KEY_RE.match(key)
        if match is None:
            _store(params, key, value, as_list=False)
            continue
        path = [match["name"], *_SEGMENT_RE.findall(match["path"])]
        as_list = len(path) > 1 and path[-1] == ""
        if as_list:
            path.pop()

        target = params
        for segment in path[:-1]:
            nested = target.get(segment)
            if not isinstance(nested, dict):
                nested = {}
                target[segment] = nested
            target = nested
        _store(target, path[-1], value, as_list=as_list)
    return params


def parse_query_params(
    items: Any, config: ConverterConfig | None = None
) -> RawRequestParameters:
    """Build :class:`RawRequestParameters` from raw query items."""
    return raw_parameters(nest_query_params(items), config)


def raw_parameters(
    params: Mapping[str, Any], config: ConverterConfig | None = None
) -> RawRequestParameters:
    """Pick the conversion parameters out of an already nested mapping."""
    cfg = config or DEFAULT_CONFIG
    sorting = params.get(cfg.sort_key)
    for alias in cfg.sort_aliases:
        if sorting is not None:
            break
        sorting = params.get(alias)
    return RawRequestParameters(
        fields=params.get(cfg.fields_key),
        sorting=sorting,
        filters=params.get(cfg.filters_key),
        limit=params.get(cfg.limit_key),
    )


class QueryStringBuilder:
    """Rebuild a query string, replacing selected parameters."""

    def build(
        self,
        items: Any = None,
        *,
        overrides: Mapping[str, Any] | None = None,
    ) -> str:
        overrides = overrides or {}
        pairs: list[tuple[str, str]] = [
            (key, str(value))
            for key, value in iter_query_items(items)
            if key not in overrides
        ]
        pairs.extend(
            (key, str(value)) for key, value in overrides.items() if value is not None
        )
        return urlencode(pairs)


def _store(target: dict[str, Any], key: str, value: Any, *, as_list: bool) -> None:
    existing = target.get(key)
    if key not in target:
        target[key] = [value] if as_list else value
    elif isinstance(existing, list):
        existing.append(value)
    else:
        target[key] = [existing, value]
