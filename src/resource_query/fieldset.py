"""FieldSet: ordered, duplicate-free list of field names."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class FieldSet:
    """
    Insertion-ordered set of field names.

    Every pass that rewrites a field list goes through ``ensure`` /
    ``discard`` so the list never holds duplicates, and user-given fields
    keep their order with injected ones appended after them.

    Usage::

        fields = FieldSet(["title", "body"])
        fields.ensure("author_id")   # appended
        fields.ensure("title")       # no-op
        list(fields)                 # ["title", "body", "author_id"]
    """

    __slots__ = ("_items",)

    def __init__(self, fields: Iterable[str] = ()) -> None:
        self._items: dict[str, None] = dict.fromkeys(fields)

    def ensure(self, field: str) -> bool:
        """Append *field* if absent. Return ``True`` when it was added."""
        if field in self._items:
            return False
        self._items[field] = None
        return True

    def discard(self, field: str) -> bool:
        """Remove *field* if present. Return ``True`` when it was removed."""
        if field not in self._items:
            return False
        del self._items[field]
        return True

    def copy(self) -> FieldSet:
        return FieldSet(self._items)

    def to_list(self) -> list[str]:
        return list(self._items)

    def __contains__(self, field: object) -> bool:
        return field in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FieldSet):
            return list(self._items) == list(other._items)
        if isinstance(other, list | tuple):
            return list(self._items) == list(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"FieldSet({list(self._items)!r})"
