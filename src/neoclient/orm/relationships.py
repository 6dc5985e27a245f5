# src/neoclient/orm/relationships.py
"""
neoclient Relationship Resolver

Loads the nodes behind an entity's declared relationship fields. One query is
issued per relationship field, in declaration order, and only direct
neighbours are loaded.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Type

from neoclient.orm.engine import StatementResult
from neoclient.orm.entities import GraphEntity, describe
from neoclient.orm.fields import DELETED_KEY, IDENTIFIER_KEY, FieldDescriptor
from neoclient.orm.mapping import node_properties
from neoclient.orm.templates import GET_BY_PROPERTIES, RELATED_NODE_VARIABLE

logger = logging.getLogger(__name__)

Executor = Callable[[str, Optional[Dict[str, Any]]], Awaitable[StatementResult]]

ROOT_PARAMETER = "uuid"


def related_node_pattern(label: str) -> str:
    """Pattern matching a live related node, e.g. ``(rNode:Post{IsDeleted:false})``."""
    return f"({RELATED_NODE_VARIABLE}:{label}{{{DELETED_KEY}:false}})"


class RelationshipResolver:
    """
    Fetches related nodes for the relationship fields of an entity type.

    Args:
        execute: Coroutine function running ``(statement, parameters)`` and
                 returning a StatementResult. The client passes its own
                 executor so lookups join an active transaction.
    """

    def __init__(self, execute: Executor):
        self._execute = execute

    def build_statement(self, entity_type: Type[GraphEntity], field: FieldDescriptor) -> str:
        """Render the lookup statement for one relationship field."""
        descriptor = describe(entity_type)
        related_label = describe(field.related_type).label

        return GET_BY_PROPERTIES.render(
            label=descriptor.label,
            clause=f"{IDENTIFIER_KEY}:${ROOT_PARAMETER}",
            relationship=field.relationship.pattern,
            relatedNode=related_node_pattern(related_label),
            result=RELATED_NODE_VARIABLE,
        )

    async def fetch_related(self, entity_type: Type[GraphEntity], uuid: str) -> Dict[str, Any]:
        """
        Load the related nodes of one entity.

        Args:
            entity_type: Type declaring the relationship fields.
            uuid: Identifier of the root node.

        Returns:
            Map from field key to a list of property maps (collection fields)
            or a single property map. Fields without a match are omitted.

        Raises:
            EntityConfigurationError: If a related type cannot be described.
        """
        related: Dict[str, Any] = {}

        for field in describe(entity_type).relationship_fields:
            statement = self.build_statement(entity_type, field)
            result = await self._execute(statement, {ROOT_PARAMETER: uuid})

            nodes = [node_properties(record[0]) for record in result]
            if not nodes:
                continue

            related[field.key] = nodes if field.many else nodes[0]

        if related:
            logger.debug(
                "Resolved %s for %s %s", sorted(related), entity_type.__name__, uuid
            )

        return related

    async def with_related(
        self,
        entity_type: Type[GraphEntity],
        properties: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Merge a node's property map with its related nodes."""
        merged = dict(properties)
        uuid = merged.get(IDENTIFIER_KEY)
        # Nodes created outside the client may carry no identifier
        if uuid is None or not describe(entity_type).relationship_fields:
            return merged
        merged.update(await self.fetch_related(entity_type, uuid))
        return merged
