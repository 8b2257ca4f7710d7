"""
Request model types.

``RawRequestParameters`` is the untyped snapshot of one incoming query;
``RequestModel`` is the validated form built pass by pass from it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, NamedTuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .fieldset import FieldSet


class FilterOperator(str, Enum):
    """Comparators accepted by the filter grammar."""

    EQ = "="
    NE = "!="
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="
    LIKE = "like"
    NOT_LIKE = "not like"
    IS_NULL = "null"
    IS_NOT_NULL = "not null"

    @property
    def takes_value(self) -> bool:
        return self not in (FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL)

    @property
    def is_pattern(self) -> bool:
        return self in (FilterOperator.LIKE, FilterOperator.NOT_LIKE)


class FilterExpression(NamedTuple):
    """One parsed filter: ``(field, operator, value)``."""

    field: str
    operator: FilterOperator
    value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"field": self.field, "op": self.operator.value}
        if self.value is not None:
            data["value"] = self.value
        return data


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SortSpec(NamedTuple):
    """One sort key. Position in the sort list is its precedence."""

    field: str
    direction: SortDirection = SortDirection.ASC


class RawRequestParameters(BaseModel):
    """Immutable snapshot of the query parameters the conversion reads.

    Values stay untyped on purpose: the parsers decide what to keep and
    record errors for what they drop, so pydantic never rejects a request.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    fields: Any = None
    sorting: Any = Field(
        default=None, validation_alias=AliasChoices("sorting", "sort")
    )
    filters: Any = None
    limit: Any = None


def _fields_factory() -> dict[str, FieldSet]:
    return {}


@dataclass
class RequestModel:
    """Validated, enriched form of one request.

    Built incrementally by the conversion passes; once an error is recorded
    processing continues with the offending item left out.

    Attributes:
        resource: Request-facing name of the main resource.
        fields: Selected fields per resource (main resource first).
        sort: Sort keys in precedence order.
        filters: Parsed filters per resource.
        limits: Row caps per related resource.
        errors: Human-readable validation messages.
    """

    resource: str
    fields: dict[str, FieldSet] = field(default_factory=_fields_factory)
    sort: list[SortSpec] = field(default_factory=list)
    filters: dict[str, list[FilterExpression]] = field(default_factory=dict)
    limits: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def related_resources(self) -> list[str]:
        """Field-selection keys other than the main resource."""
        return [name for name in self.fields if name != self.resource]

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible dictionary."""
        return {
            "resource": self.resource,
            "fields": {name: fs.to_list() for name, fs in self.fields.items()},
            "sort": [
                {"field": spec.field, "direction": spec.direction.value}
                for spec in self.sort
            ],
            "filters": {
                name: [expr.to_dict() for expr in exprs]
                for name, exprs in self.filters.items()
            },
            "limits": dict(self.limits),
            "errors": list(self.errors),
        }
