"""
neoclient Field Metadata

Declarations attached to entity fields with ``typing.Annotated`` and the
static descriptors derived from them. A descriptor tells the query builders
which fields are persisted, which are relationship fields and where the
related nodes live.
"""
from __future__ import annotations

import types
import typing
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic.fields import FieldInfo

from neoclient.orm.templates import ensure_identifier


IDENTIFIER_KEY = "Uuid"
DELETED_KEY = "IsDeleted"
UPDATED_AT_KEY = "UpdatedAt"

_UNION_ORIGINS = (typing.Union, types.UnionType)


class Direction(str, Enum):
    """Direction of a relationship, relative to the entity declaring it."""

    INCOMING = "INCOMING"
    OUTGOING = "OUTGOING"


@dataclass(frozen=True)
class Relationship:
    """
    Relationship declaration.

    Used as ``Annotated`` metadata on an entity field, and as the relationship argument
    of the client's relationship operations.

    Example:
        ```python
        class User(GraphEntity):
            posts: Annotated[List[Post], Relationship(name="WROTE", direction=Direction.OUTGOING)] = []
        ```
    """

    name: str
    direction: Direction = Direction.INCOMING

    def __post_init__(self) -> None:
        ensure_identifier(self.name, "relationship name")
        # Accept plain strings ("OUTGOING") for the direction
        object.__setattr__(self, "direction", Direction(self.direction))

    @property
    def from_part(self) -> str:
        """Arrow fragment on the side of the declaring node."""
        return "<-" if self.direction == Direction.INCOMING else "-"

    @property
    def to_part(self) -> str:
        """Arrow fragment on the side of the related node."""
        return "-" if self.direction == Direction.INCOMING else "->"

    @property
    def pattern(self) -> str:
        """Edge pattern, e.g. ``<-[r:KNOWS]-`` or ``-[r:KNOWS]->``."""
        return f"{self.from_part}[r:{self.name}]{self.to_part}"


class NotMapped:
    """Marks a field as excluded from persistence: ``Annotated[str, NotMapped()]``."""

    def __repr__(self) -> str:
        return "NotMapped()"


class FieldKind(str, Enum):
    SCALAR = "scalar"
    NOT_MAPPED = "not_mapped"
    RELATIONSHIP = "relationship"


@dataclass(frozen=True)
class FieldDescriptor:
    """Static metadata for one entity field."""

    name: str
    key: str
    kind: FieldKind
    frozen: bool = False
    relationship: Optional[Relationship] = None
    related_type: Optional[type] = None
    many: bool = False

    @property
    def is_persistable(self) -> bool:
        return self.kind == FieldKind.SCALAR

    @property
    def is_identifier(self) -> bool:
        return self.key == IDENTIFIER_KEY


@dataclass(frozen=True)
class EntityDescriptor:
    """
    Static metadata for one entity type.

    Built once per type and cached, see ``neoclient.orm.entities.describe``.
    """

    label: str
    fields: Tuple[FieldDescriptor, ...]

    @property
    def persistable_fields(self) -> List[FieldDescriptor]:
        """Scalar fields stored as node properties, in declaration order."""
        return [field for field in self.fields if field.is_persistable]

    @property
    def settable_fields(self) -> List[FieldDescriptor]:
        """Persistable fields a caller may set on create (the identifier is system assigned)."""
        return [field for field in self.persistable_fields if not field.is_identifier]

    @property
    def updatable_fields(self) -> List[FieldDescriptor]:
        """Persistable fields written by an update: no identifier, no frozen fields."""
        return [field for field in self.settable_fields if not field.frozen]

    @property
    def relationship_fields(self) -> List[FieldDescriptor]:
        return [field for field in self.fields if field.kind == FieldKind.RELATIONSHIP]

    def graph_key(self, name: str) -> str:
        """
        Translate a Python attribute name to its graph property key.

        Graph keys and names that are not entity fields pass through unchanged.
        """
        for field in self.fields:
            if name == field.name:
                return field.key
        return name

    def translate(self, properties: Dict[str, Any]) -> Dict[str, Any]:
        """Translate the keys of a property map to graph keys."""
        return {self.graph_key(name): value for name, value in properties.items()}


def inspect_field(name: str, field_info: FieldInfo) -> FieldDescriptor:
    """
    Derive the descriptor of a single pydantic field.

    The related type of a relationship field is resolved later, by
    ``resolve_related_type``, so forward references can be declared freely.
    """
    key = field_info.alias or name
    frozen = bool(field_info.frozen)

    relationship = next(
        (item for item in field_info.metadata if isinstance(item, Relationship)), None
    )
    if relationship is not None:
        return FieldDescriptor(
            name=name,
            key=key,
            kind=FieldKind.RELATIONSHIP,
            frozen=frozen,
            relationship=relationship,
        )

    if any(isinstance(item, NotMapped) or item is NotMapped for item in field_info.metadata):
        return FieldDescriptor(name=name, key=key, kind=FieldKind.NOT_MAPPED, frozen=frozen)

    return FieldDescriptor(
        name=name,
        key=ensure_identifier(key, "property key"),
        kind=FieldKind.SCALAR,
        frozen=frozen,
    )


def resolve_related_type(annotation: Any) -> Tuple[Optional[Type], bool]:
    """
    Find the related entity type of a relationship field annotation.

    ``Optional[Post]`` resolves to ``(Post, False)`` and ``List[Post]`` to
    ``(Post, True)``.

    Returns:
        (related_type, many) tuple; related_type is None when the annotation
        does not name a class.
    """
    origin = typing.get_origin(annotation)

    if origin in _UNION_ORIGINS:
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) != 1:
            return None, False
        return resolve_related_type(members[0])

    if _is_collection(origin):
        args = typing.get_args(annotation)
        if not args:
            return None, True
        inner, _ = resolve_related_type(args[0])
        return inner, True

    if isinstance(annotation, type):
        return annotation, False

    return None, False


def _is_collection(origin: Any) -> bool:
    return (
        isinstance(origin, type)
        and issubclass(origin, Iterable)
        and not issubclass(origin, (str, bytes, Mapping))
    )
