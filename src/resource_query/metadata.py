"""
Resource metadata: allow-lists and declared relations per resource type.

Metadata is read-only once registered. Relation kinds are stored as a
tagged value (:class:`RelationKind`) so the request pipeline never inspects
the ORM to discover them; :meth:`ResourceRegistry.register_model` derives
them from the SQLAlchemy mapper exactly once, at registration time.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import RelationshipDirection

from .exceptions import ResourceNotRegisteredError
from .naming import resource_name_for_table

logger = logging.getLogger("resource_query.metadata")


class RelationKind(str, Enum):
    """Cardinality of a relation seen from the owning resource."""

    TO_ONE = "to_one"
    TO_MANY = "to_many"
    MANY_TO_MANY = "many_to_many"


_DIRECTION_KINDS: dict[RelationshipDirection, RelationKind] = {
    RelationshipDirection.MANYTOONE: RelationKind.TO_ONE,
    RelationshipDirection.ONETOMANY: RelationKind.TO_MANY,
    RelationshipDirection.MANYTOMANY: RelationKind.MANY_TO_MANY,
}


class Relation(BaseModel):
    """A named relation declared on a resource.

    Attributes:
        kind: Relation cardinality.
        target: Type name of the related resource.
        foreign_key: Join column injected by relation resolution. ``None``
            uses the ``<name>_id`` convention.
    """

    model_config = ConfigDict(frozen=True)

    kind: RelationKind
    target: str
    foreign_key: str | None = None


class ResourceMetadata(BaseModel):
    """Read-only description of one resource type.

    ``selectable=None`` means "no allow-list": every mapped column of
    ``model`` may be selected (and the wildcard expands to all of them).
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    type_name: str
    name: str
    model: type[Any] | None = None
    selectable: tuple[str, ...] | None = None
    sortable: tuple[str, ...] = ()
    alternate_id: str | None = None
    primary_key: str = "id"
    relations: dict[str, Relation] = Field(default_factory=dict)

    def selectable_fields(self) -> tuple[str, ...]:
        """The effective selectable allow-list."""
        if self.selectable is not None:
            return self.selectable
        return self.column_keys()

    def column_keys(self) -> tuple[str, ...]:
        """Mapped column attribute names of ``model`` (empty without one)."""
        if self.model is None:
            return ()
        return tuple(sa_inspect(self.model).columns.keys())

    def can_select(self, field: str) -> bool:
        return field in self.selectable_fields()

    def can_sort(self, field: str) -> bool:
        return field in self.sortable

    def relation(self, name: str) -> Relation | None:
        return self.relations.get(name)


@runtime_checkable
class IResourceMetadataProvider(Protocol):
    """Resolve a resource type name to its metadata.

    Implementations must return ``None`` for unknown types rather than
    raising, so callers can treat "unknown" deterministically.
    """

    def get(self, type_name: str) -> ResourceMetadata | None:
        """Return metadata for *type_name*, or ``None``."""
        ...


class ResourceRegistry:
    """In-process :class:`IResourceMetadataProvider`.

    Usage::

        registry = ResourceRegistry()
        registry.register_model(
            Post,
            selectable=("id", "title", "body"),
            sortable=("title", "created_at"),
            alternate_id="slug",
        )
        registry.register_model(Author, selectable=("id", "name"))
    """

    def __init__(self) -> None:
        self._resources: dict[str, ResourceMetadata] = {}

    def register(self, metadata: ResourceMetadata) -> ResourceMetadata:
        self._resources[metadata.type_name] = metadata
        logger.debug(
            "Registered resource %s (%d relations)",
            metadata.type_name,
            len(metadata.relations),
        )
        return metadata

    def register_model(
        self,
        model: type[Any],
        *,
        type_name: str | None = None,
        name: str | None = None,
        selectable: tuple[str, ...] | list[str] | None = None,
        sortable: tuple[str, ...] | list[str] = (),
        alternate_id: str | None = None,
        relations: dict[str, Relation] | None = None,
    ) -> ResourceMetadata:
        """Register a SQLAlchemy mapped class.

        Relations are derived from the mapper unless given explicitly;
        targets are named after the related class, in the same dotted
        namespace as *type_name*.
        """
        mapper = sa_inspect(model)
        resolved_type = type_name or model.__name__
        namespace, _, _ = resolved_type.rpartition(".")
        primary_keys = [col.key for col in mapper.primary_key]
        metadata = ResourceMetadata(
            type_name=resolved_type,
            name=name or resource_name_for_table(mapper.local_table.name),
            model=model,
            selectable=tuple(selectable) if selectable is not None else None,
            sortable=tuple(sortable),
            alternate_id=alternate_id,
            primary_key=primary_keys[0] if primary_keys else "id",
            relations=(
                relations
                if relations is not None
                else _relations_from_mapper(mapper, namespace)
            ),
        )
        return self.register(metadata)

    def get(self, type_name: str) -> ResourceMetadata | None:
        return self._resources.get(type_name)

    def require(self, type_name: str) -> ResourceMetadata:
        """Return metadata for *type_name* or raise."""
        metadata = self.get(type_name)
        if metadata is None:
            raise ResourceNotRegisteredError(type_name, self.type_names())
        return metadata

    def type_names(self) -> list[str]:
        return list(self._resources)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._resources

    def __len__(self) -> int:
        return len(self._resources)


def _relations_from_mapper(mapper: Any, namespace: str) -> dict[str, Relation]:
    relations: dict[str, Relation] = {}
    for rel in mapper.relationships:
        kind = _DIRECTION_KINDS[rel.direction]
        target_name = rel.mapper.class_.__name__
        relations[rel.key] = Relation(
            kind=kind,
            target=f"{namespace}.{target_name}" if namespace else target_name,
            foreign_key=_foreign_key(rel, kind),
        )
    return relations


def _foreign_key(rel: Any, kind: RelationKind) -> str | None:
    if kind is RelationKind.MANY_TO_MANY or not rel.local_remote_pairs:
        return None
    local, remote = rel.local_remote_pairs[0]
    # to-one: the key lives on the owner; to-many: on the related table
    column = local if kind is RelationKind.TO_ONE else remote
    return column.key
