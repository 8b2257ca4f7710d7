"""SortParser — ``sorting=+name,-created_at`` -> ordered SortSpecs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..exceptions import suggestion_hint
from ..model import SortDirection, SortSpec

if TYPE_CHECKING:
    from ..metadata import ResourceMetadata
    from ..model import RequestModel

logger = logging.getLogger("resource_query.parsing.sorting")


class SortParser:
    """Parse the sort parameter against the main resource's sortable list.

    Unlike filters, unknown sort fields are reported on the request model.
    """

    def parse(
        self,
        raw: Any,
        main: ResourceMetadata,
        request: RequestModel,
    ) -> list[SortSpec]:
        """Populate ``request.sort`` and return it."""
        specs: list[SortSpec] = []
        for token in self._tokens(raw):
            spec = self._parse_token(token)
            if spec is None:
                continue
            if not main.can_sort(spec.field):
                request.add_error(
                    f"Field '{spec.field}' is not sortable on '{main.name}'."
                    + suggestion_hint(spec.field, main.sortable)
                )
                continue
            specs.append(spec)
        request.sort = specs
        logger.debug("Sort for %s: %s", main.name, specs)
        return specs

    @staticmethod
    def _tokens(raw: Any) -> list[str]:
        if isinstance(raw, str):
            parts = raw.split(",")
        elif isinstance(raw, list | tuple):
            parts = [
                piece
                for item in raw
                if isinstance(item, str)
                for piece in item.split(",")
            ]
        else:
            return []
        return [part.strip() for part in parts if part.strip()]

    @staticmethod
    def _parse_token(token: str) -> SortSpec | None:
        if token.startswith("-"):
            field, direction = token[1:].strip(), SortDirection.DESC
        elif token.startswith("+"):
            field, direction = token[1:].strip(), SortDirection.ASC
        else:
            field, direction = token, SortDirection.ASC
        if not field:
            return None
        return SortSpec(field, direction)
