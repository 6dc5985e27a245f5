# src/neoclient/orm/entities.py
"""
neoclient GraphEntity - Pydantic V2 entity base

Entities are pydantic models: one class per node label. Graph property keys
are the field aliases (``Uuid``, ``IsDeleted``, ...) or the attribute names.
Relationship fields and not-mapped fields are declared with ``Annotated``
metadata and are never written as node properties.
"""

from __future__ import annotations

import dataclasses
import weakref
from datetime import datetime, timezone
from typing import Any, ClassVar, Optional, Set, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.errors import PydanticUndefinedAnnotation

from neoclient.exceptions import EntityConfigurationError, InvalidIdentifierError
from neoclient.orm.fields import (
    FieldKind,
    EntityDescriptor,
    inspect_field,
    resolve_related_type,
)
from neoclient.orm.templates import ensure_identifier


# Type variable for GraphEntity subclasses
EntityType = TypeVar('EntityType', bound='GraphEntity')


def timestamp() -> float:
    """Current UTC time in epoch milliseconds."""
    return datetime.now(timezone.utc).timestamp() * 1000


class GraphEntityConfig:
    """Configuration for GraphEntity classes."""

    def __init__(self, graph_label: Optional[str] = None):
        self.graph_label = graph_label


class GraphEntityMeta(type(BaseModel)):
    """
    Metaclass for GraphEntity.

    Attaches the entity configuration and registers every concrete entity
    class so it can be looked up by label.
    """

    def __new__(
        mcs,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        **kwargs: Any
    ) -> GraphEntityMeta:

        entity_config = namespace.pop('_entity_config', None)
        if entity_config is None:
            entity_config = GraphEntityConfig(graph_label=name)

        cls = super().__new__(mcs, name, bases, namespace, **kwargs)

        # Skip processing for the base GraphEntity class
        if name == 'GraphEntity':
            return cls

        cls._entity_config = entity_config

        GraphEntity._entity_registry.add(cls)

        return cls


class GraphEntity(BaseModel, metaclass=GraphEntityMeta):
    """
    Base class for mapped entities.

    Example:
        ```python
        @graph_entity(label="User")
        class User(GraphEntity):
            first_name: str = Field(alias="FirstName")
            email: str = Field(alias="Email")
            posts: Annotated[
                List[Post], Relationship(name="WROTE", direction=Direction.OUTGOING)
            ] = Field(default_factory=list)
            display_name: Annotated[Optional[str], NotMapped()] = None

        user = await client.add(User(first_name="Alice", email="alice@example.com"))
        ```
    """

    uuid: Optional[str] = Field(
        default=None,
        alias="Uuid",
        description="Unique node identifier, assigned by the client on create",
        frozen=True  # Never regenerated on update
    )

    created_at: float = Field(
        default_factory=timestamp,
        alias="CreatedAt",
        description="Creation time in epoch milliseconds",
        frozen=True
    )

    updated_at: Optional[float] = Field(
        default=None,
        alias="UpdatedAt",
        description="Last update time in epoch milliseconds"
    )

    is_deleted: bool = Field(
        default=False,
        alias="IsDeleted",
        description="Soft-delete flag"
    )

    model_config = ConfigDict(
        validate_assignment=True,
        use_enum_values=True,
        populate_by_name=True,

        # Nodes may carry properties the class does not declare
        extra='ignore',

        arbitrary_types_allowed=True,
    )

    _entity_registry: ClassVar[weakref.WeakSet] = weakref.WeakSet()
    _entity_config: ClassVar[GraphEntityConfig]

    @classmethod
    def get_label(cls) -> str:
        """Get the graph label for this entity class."""
        return describe(cls).label

    @classmethod
    def describe(cls) -> EntityDescriptor:
        return describe(cls)

    def __repr__(self) -> str:
        status = "persisted" if self.uuid else "new"
        if self.is_deleted:
            status += ", deleted"
        return f"{self.__class__.__name__}(uuid='{self.uuid}' ({status}))"


# =============================================================================
# DECORATOR FUNCTION
# =============================================================================

def graph_entity(
    cls: Optional[Type] = None,
    *,
    label: Optional[str] = None,
) -> Union[Type[GraphEntity], callable]:
    """
    Decorator for graph entities.

    Args:
        cls: The class being decorated
        label: Override the default label (class name)

    Returns:
        Decorated class or decorator function

    Example:
        ```python
        @graph_entity(label="Person")
        class User(GraphEntity):
            name: str
        ```
    """
    def decorator(target_cls: Type) -> Type:
        if not isinstance(target_cls, type) or not issubclass(target_cls, GraphEntity):
            raise TypeError("@graph_entity can only be applied to GraphEntity subclasses")

        target_cls._entity_config = GraphEntityConfig(
            graph_label=label or target_cls.__name__,
        )

        # Drop any descriptor built with the previous label
        _descriptors.pop(target_cls, None)

        return target_cls

    if cls is None:
        return decorator
    else:
        return decorator(cls)


# =============================================================================
# DESCRIPTOR REGISTRY
# =============================================================================

# Keyed weakly, like the entity registry
_descriptors: "weakref.WeakKeyDictionary[type, EntityDescriptor]" = weakref.WeakKeyDictionary()


def describe(entity_type: Type[GraphEntity]) -> EntityDescriptor:
    """
    Get the static descriptor of an entity type.

    Descriptors are built on first use and cached per type, so configuration
    problems surface the first time a type is used with the client.

    Raises:
        EntityConfigurationError: If the type is not a GraphEntity subclass, its
            label is not a valid identifier, or a relationship field does not
            resolve to a GraphEntity subclass.
    """
    if not isinstance(entity_type, type) or not issubclass(entity_type, GraphEntity) \
            or entity_type is GraphEntity:
        raise EntityConfigurationError(
            entity_type if isinstance(entity_type, type) else type(entity_type),
            "not a GraphEntity subclass",
        )

    descriptor = _descriptors.get(entity_type)
    if descriptor is not None:
        return descriptor

    if not entity_type.__pydantic_complete__:
        try:
            entity_type.model_rebuild()
        except PydanticUndefinedAnnotation as e:
            raise EntityConfigurationError(
                entity_type, f"unresolved annotation '{e.name}'"
            ) from e

    try:
        label = ensure_identifier(entity_type._entity_config.graph_label, "label")
    except InvalidIdentifierError as e:
        raise EntityConfigurationError(entity_type, str(e)) from e

    fields = []
    for name, field_info in entity_type.model_fields.items():
        try:
            field = inspect_field(name, field_info)
        except InvalidIdentifierError as e:
            raise EntityConfigurationError(entity_type, f"field '{name}': {e}") from e

        if field.kind == FieldKind.RELATIONSHIP:
            related_type, many = resolve_related_type(field_info.annotation)
            if related_type is None or not issubclass(related_type, GraphEntity) \
                    or related_type is GraphEntity:
                raise EntityConfigurationError(
                    entity_type,
                    f"relationship field '{name}' must be typed as a GraphEntity "
                    f"subclass or a collection of one",
                    details={"annotation": repr(field_info.annotation)},
                )
            field = dataclasses.replace(field, related_type=related_type, many=many)

        fields.append(field)

    descriptor = EntityDescriptor(label=label, fields=tuple(fields))
    _descriptors[entity_type] = descriptor
    return descriptor


# =============================================================================
# REGISTRY FUNCTIONS
# =============================================================================

def get_entity_classes() -> Set[Type[GraphEntity]]:
    """Get all registered GraphEntity classes."""
    return set(GraphEntity._entity_registry)


def get_entity_by_label(label: str) -> Optional[Type[GraphEntity]]:
    """Get entity class by its graph label."""
    for entity_class in get_entity_classes():
        if entity_class._entity_config.graph_label == label:
            return entity_class
    return None
