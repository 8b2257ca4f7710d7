"""LimitParser: ``limit[relation]=N`` -> per-relation row caps."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..model import RequestModel

logger = logging.getLogger("resource_query.parsing.limits")


class LimitParser:
    """Parse row caps for eager-loaded relations.

    Runs after relation resolution: a limit is only kept when its key is a
    related resource still present in ``request.fields``.
    """

    def parse(self, raw: Any, request: RequestModel) -> dict[str, int]:
        """Populate ``request.limits`` and return it."""
        limits: dict[str, int] = {}
        if raw and isinstance(raw, Mapping):
            related = set(request.related_resources())
            for key, value in raw.items():
                name = str(key)
                if name not in related:
                    request.add_error(
                        f"Limit given for '{name}', which is not a selected "
                        "related resource."
                    )
                    continue
                limit = self._int_param(value)
                if limit is None:
                    request.add_error(
                        f"Limit for '{name}' must be a positive integer, "
                        f"got {value!r}."
                    )
                    continue
                limits[name] = limit
        request.limits = limits
        logger.debug("Relation limits: %s", limits)
        return limits

    @staticmethod
    def _int_param(value: Any) -> int | None:
        if isinstance(value, list | tuple) and len(value) == 1:
            value = value[0]
        if isinstance(value, bool):
            return None
        try:
            limit = int(value)
        except (TypeError, ValueError):
            return None
        return limit if limit > 0 else None
