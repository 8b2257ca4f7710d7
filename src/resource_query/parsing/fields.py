"""FieldListParser — ``fields[resource]=a,b`` -> validated FieldSets."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ..exceptions import suggestion_hint
from ..fieldset import FieldSet
from ..naming import sibling_type_name

if TYPE_CHECKING:
    from ..metadata import IResourceMetadataProvider, ResourceMetadata
    from ..model import RequestModel

logger = logging.getLogger("resource_query.parsing.fields")


class FieldListParser:
    """Parse per-resource field selections against selectable allow-lists."""

    def __init__(
        self,
        provider: IResourceMetadataProvider,
        *,
        wildcard: str = "*",
    ) -> None:
        self._provider = provider
        self._wildcard = wildcard

    def parse(
        self,
        raw: Any,
        main: ResourceMetadata,
        request: RequestModel,
    ) -> dict[str, FieldSet]:
        """Populate ``request.fields`` and return it.

        The main resource's entry always exists afterwards.
        """
        selected: dict[str, FieldSet] = {}
        for key, value in self._split(raw).items():
            metadata = self._resolve(key, main)
            if metadata is None:
                request.add_error(f"Unknown resource '{key}' in field selection.")
                continue
            selected[key] = self._validate(key, value, metadata, request)

        if not selected.get(main.name):
            selected[main.name] = FieldSet(main.selectable_fields())

        # main resource first, the rest in request order
        request.fields = {
            main.name: selected.pop(main.name),
            **selected,
        }
        logger.debug(
            "Field selection for %s: %s",
            main.name,
            {k: v.to_list() for k, v in request.fields.items()},
        )
        return request.fields

    # -- helpers ------------------------------------------------------------

    def _split(self, raw: Any) -> dict[str, list[str]]:
        """Turn the raw mapping into ``{resource: [field, ...]}``."""
        if not raw or not isinstance(raw, Mapping):
            return {}
        out: dict[str, list[str]] = {}
        for key, value in raw.items():
            chunks = self._chunks(value)
            if not chunks:
                continue
            names = list(
                dict.fromkeys(
                    part.strip()
                    for chunk in chunks
                    for part in chunk.split(",")
                    if part.strip()
                )
            )
            if names:
                out[str(key)] = names
        return out

    @staticmethod
    def _chunks(value: Any) -> list[str]:
        if isinstance(value, str):
            return [value] if value else []
        if isinstance(value, list | tuple):
            return [item for item in value if isinstance(item, str) and item]
        return []

    def _resolve(self, key: str, main: ResourceMetadata) -> ResourceMetadata | None:
        if key == main.name:
            return main
        relation = main.relation(key)
        if relation is not None:
            metadata = self._provider.get(relation.target)
            if metadata is not None:
                return metadata
        return self._provider.get(sibling_type_name(main.type_name, key))

    def _validate(
        self,
        key: str,
        names: list[str],
        metadata: ResourceMetadata,
        request: RequestModel,
    ) -> FieldSet:
        allowed = metadata.selectable_fields()
        if self._wildcard in names:
            return FieldSet(allowed)

        fields = FieldSet()
        for name in names:
            if name in allowed:
                fields.ensure(name)
            else:
                request.add_error(
                    f"Field '{name}' is not selectable on '{key}'."
                    + suggestion_hint(name, allowed)
                )
        return fields
