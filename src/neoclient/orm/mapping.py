"""
Mapping of raw result values to typed entities.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Type

from neoclient.orm.entities import EntityType


def node_properties(value: Any) -> Optional[Dict[str, Any]]:
    """
    Get the property map of a node value.

    Accepts ``neo4j.graph.Node`` (or anything exposing ``items()``) and plain
    mappings. ``None`` passes through.
    """
    if value is None:
        return None

    if isinstance(value, Mapping):
        return dict(value)

    items = getattr(value, "items", None)
    if callable(items):
        return dict(items())

    raise TypeError(f"Expected a node or a property map, got {type(value).__name__}")


def first_value(records: Iterable[Any]) -> Any:
    """First column of the first record, or None when there are no records."""
    for record in records:
        return record[0]
    return None


def map_node(
    properties: Optional[Mapping[str, Any]],
    entity_type: Type[EntityType],
) -> Optional[EntityType]:
    """
    Convert a flat property map into an entity.

    Either the whole map validates into a populated instance or the result is
    None (no row); validation errors propagate.
    """
    if properties is None:
        return None
    return entity_type.model_validate(dict(properties))


def map_nodes(
    values: Iterable[Optional[Mapping[str, Any]]],
    entity_type: Type[EntityType],
) -> List[EntityType]:
    return [map_node(properties, entity_type) for properties in values if properties is not None]
