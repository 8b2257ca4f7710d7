"""
RelationResolver — make every requested relation loadable.

For each related resource in the field selection, the join key is forced
into the right field list depending on the relation kind:

- to-one: ``<relation>_id`` on the main resource, ``id`` on the related one;
- to-many: ``<main>_id`` on the related resource;
- many-to-many: a bare ``id`` on the related resource becomes the qualified
  ``<relation>.id``, and ``id`` is forced onto the main resource.

Must run after field selection and filter-derived injection, and before
limit extraction (limits are validated against the surviving relations).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .metadata import RelationKind
from .naming import foreign_key_for, qualified

if TYPE_CHECKING:
    from .fieldset import FieldSet
    from .metadata import Relation, ResourceMetadata
    from .model import RequestModel

logger = logging.getLogger("resource_query.relations")

ID_FIELD = "id"


class RelationResolver:
    """Rewrite field lists so the main query and each eager load can join."""

    def resolve(self, main: ResourceMetadata, request: RequestModel) -> list[str]:
        """Apply the relation rules in place; return the resolved relation names."""
        main_fields = request.fields[main.name]
        resolved: list[str] = []

        for name in request.related_resources():
            relation = main.relation(name)
            if relation is None:
                del request.fields[name]
                request.add_error(
                    f"Relation '{name}' is not defined on '{main.name}'."
                )
                continue
            self._apply(name, relation, main, main_fields, request.fields[name])
            resolved.append(name)

        logger.debug("Resolved relations for %s: %s", main.name, resolved)
        return resolved

    @staticmethod
    def _apply(
        name: str,
        relation: Relation,
        main: ResourceMetadata,
        main_fields: FieldSet,
        related_fields: FieldSet,
    ) -> None:
        if relation.kind is RelationKind.TO_ONE:
            main_fields.ensure(relation.foreign_key or foreign_key_for(name))
            related_fields.ensure(ID_FIELD)
        elif relation.kind is RelationKind.TO_MANY:
            related_fields.ensure(relation.foreign_key or foreign_key_for(main.name))
        elif relation.kind is RelationKind.MANY_TO_MANY:
            if related_fields.discard(ID_FIELD):
                related_fields.ensure(qualified(name, ID_FIELD))
            main_fields.ensure(ID_FIELD)
