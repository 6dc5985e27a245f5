"""
neoclient Clause Builders

Pure functions turning a property map or an entity into a Cypher fragment
plus the bound parameters it references. Keys are inlined (after identifier
validation), values never are.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, NamedTuple, Optional

from neoclient.orm.templates import NODE_VARIABLE, ensure_identifier

if TYPE_CHECKING:
    from neoclient.orm.entities import GraphEntity
    from neoclient.orm.fields import FieldDescriptor


SEPARATOR = ","


class Clause(NamedTuple):
    """A clause fragment and the parameters it binds."""

    text: str
    parameters: Dict[str, Any]

    def __bool__(self) -> bool:
        return bool(self.text)


def join_clauses(*fragments: str) -> str:
    """Join clause fragments with ``,``, skipping empty ones."""
    return SEPARATOR.join(fragment for fragment in fragments if fragment)


def build_condition_clause(
    properties: Mapping[str, Any],
    param_prefix: str = "",
) -> Clause:
    """
    Build a property-map condition: ``k1:$k1,k2:$k2``.

    Args:
        properties: Property keys and values, rendered in iteration order.
        param_prefix: Prefix for parameter names, for statements that bind
                      several maps with overlapping keys.

    Returns:
        Clause with the fragment and a ``{param: value}`` map.
    """
    parts: List[str] = []
    parameters: Dict[str, Any] = {}

    for key, value in properties.items():
        ensure_identifier(key, "property key")
        param = f"{param_prefix}{key}"
        parts.append(f"{key}:${param}")
        parameters[param] = value

    return Clause(SEPARATOR.join(parts), parameters)


def build_entity_condition_clause(
    entity: GraphEntity,
    fields: Iterable[FieldDescriptor],
    param_prefix: str = "",
) -> Clause:
    """Build a condition clause over the given fields of an entity."""
    return build_condition_clause(_entity_values(entity, fields), param_prefix)


def build_assignment_clause(
    entity: GraphEntity,
    prefix: str = NODE_VARIABLE,
    param_prefix: str = "",
    *,
    skip_none: bool = False,
    fields: Optional[Iterable[FieldDescriptor]] = None,
) -> Clause:
    """
    Build a SET assignment list: ``n.k1=$k1,n.k2=$k2``.

    By default covers the entity's updatable fields: every persistable field
    except the identifier and other frozen fields.

    Args:
        entity: Entity supplying the values.
        prefix: Variable the assigned node is bound to.
        param_prefix: Prefix for parameter names.
        skip_none: Leave out fields whose value is None (partial update).
        fields: Explicit field selection, overriding the updatable fields.
    """
    ensure_identifier(prefix, "variable")

    if fields is None:
        fields = entity.describe().updatable_fields

    parts: List[str] = []
    parameters: Dict[str, Any] = {}

    for key, value in _entity_values(entity, fields).items():
        if skip_none and value is None:
            continue
        param = f"{param_prefix}{key}"
        parts.append(f"{prefix}.{key}=${param}")
        parameters[param] = value

    return Clause(SEPARATOR.join(parts), parameters)


def _entity_values(entity: GraphEntity, fields: Iterable[FieldDescriptor]) -> Dict[str, Any]:
    return {
        field.key: getattr(entity, field.name)
        for field in fields
        if field.is_persistable
    }
