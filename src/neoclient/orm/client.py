# src/neoclient/orm/client.py
"""
neoclient NeoClient - typed CRUD over Cypher

NeoClient compiles entity operations into parameterized Cypher statements,
runs them through the active transaction (or a fresh session) and maps the
returned nodes back to entity instances, loading declared relationship fields
on every read.
"""

from __future__ import annotations

import logging
import uuid as uuid_lib
from typing import Any, Dict, List, Mapping, Optional, Type

from neoclient.exceptions import (
    ArgumentError,
    LabelNotAddedError,
    NodeNotCreatedError,
)
from neoclient.orm import templates
from neoclient.orm.clauses import (
    build_assignment_clause,
    build_condition_clause,
    build_entity_condition_clause,
    join_clauses,
)
from neoclient.orm.engine import GraphEngine, StatementResult
from neoclient.orm.entities import EntityType, GraphEntity, describe, timestamp
from neoclient.orm.fields import IDENTIFIER_KEY, Relationship
from neoclient.orm.mapping import first_value, map_node, map_nodes, node_properties
from neoclient.orm.relationships import RelationshipResolver
from neoclient.orm.templates import NODE_VARIABLE, ensure_identifier
from neoclient.orm.transaction import Transaction
from neoclient.settings import NeoClientSettings

logger = logging.getLogger(__name__)

# Parameter name prefixes for statements binding several maps
ON_CREATE_PREFIX = "create_"
ON_MATCH_PREFIX = "match_"
RELATIONSHIP_PREFIX = "r_"


class NeoClient:
    """
    Object-graph mapping client.

    Every operation is a coroutine; the statements of one call run strictly
    one after the other. A client (and its transaction) must not be shared by
    concurrently running tasks.

    Example:
        ```python
        async with NeoClient("bolt://localhost:7687", "neo4j", "secret") as client:
            user = await client.add(User(first_name="Alice", email="alice@example.com"))
            same = await client.get_by_uuid_with_related_nodes(User, user.uuid)
            await client.delete(User, user.uuid)
        ```
    """

    def __init__(
        self,
        uri: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        *,
        database: str = "neo4j",
        strip_hyphens: bool = False,
        driver_config: Optional[Dict[str, Any]] = None,
        engine: Optional[GraphEngine] = None,
    ):
        """
        Args:
            uri: The URI for the Neo4j instance. Ignored when ``engine`` is given.
            username: User name; authentication is skipped when blank.
            password: Password; authentication is skipped when blank.
            database: Default database for sessions.
            strip_hyphens: Generate identifiers as 32 hex digits instead of the
                           canonical hyphenated form.
            driver_config: Extra options for the Neo4j driver.
            engine: A prebuilt GraphEngine to use instead of creating one.
        """
        if engine is None:
            if not uri or not uri.strip():
                raise ArgumentError("uri", "A URI or an engine is required")
            auth = None
            if username and username.strip() and password and password.strip():
                auth = (username, password)
            engine = GraphEngine(uri=uri, auth=auth, database=database, driver_config=driver_config)

        self.engine = engine
        self.strip_hyphens = strip_hyphens
        self._transaction: Optional[Transaction] = None
        self._resolver = RelationshipResolver(self._execute)

    @classmethod
    def from_settings(cls, settings: Optional[NeoClientSettings] = None) -> NeoClient:
        """Create a client from settings (read from the environment when omitted)."""
        settings = settings or NeoClientSettings()
        auth = settings.auth
        return cls(
            settings.uri,
            auth[0] if auth else None,
            auth[1] if auth else None,
            database=settings.database,
            strip_hyphens=settings.strip_hyphens,
            driver_config=settings.driver_config,
        )

    # =============================================================================
    # CONNECTION
    # =============================================================================

    @property
    def connected(self) -> bool:
        return self.engine.connected

    async def connect(self) -> None:
        """Connect the underlying engine. Idempotent."""
        await self.engine.connect()

    async def close(self) -> None:
        """Roll back any active transaction and close the engine."""
        try:
            if self._transaction is not None:
                await self._transaction.close()
        finally:
            self._transaction = None
            await self.engine.close()

    async def ping(self) -> bool:
        """
        Check that the database answers a trivial statement.

        Driver errors (ServiceUnavailable, AuthError) propagate.
        """
        result = await self._execute("RETURN 1")
        return first_value(result) == 1

    async def __aenter__(self) -> NeoClient:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # =============================================================================
    # TRANSACTIONS
    # =============================================================================

    @property
    def transaction(self) -> Optional[Transaction]:
        """The transaction statements are currently routed through, if any."""
        if self._transaction is not None and self._transaction.in_transaction:
            return self._transaction
        return None

    async def begin_transaction(self) -> Transaction:
        """
        Begin a transaction; until it ends, every statement of this client runs in it.

        An already active transaction is rolled back and replaced.
        """
        if self.transaction is not None:
            logger.warning("Beginning a new transaction while one is active; rolling back the previous one")
            await self._transaction.rollback()

        transaction = Transaction(self.engine, self.engine.default_database)
        await transaction.begin()
        self._transaction = transaction
        return transaction

    async def _execute(self, statement: str, parameters: Optional[Dict[str, Any]] = None) -> StatementResult:
        transaction = self.transaction
        if transaction is not None:
            return await transaction.run(statement, parameters)
        return await self.engine.execute(statement, parameters)

    # =============================================================================
    # WRITE OPERATIONS
    # =============================================================================

    def new_uuid(self) -> str:
        """Generate a node identifier in the configured format."""
        value = uuid_lib.uuid4()
        return value.hex if self.strip_hyphens else str(value)

    async def add(self, entity: EntityType) -> EntityType:
        """
        Create a node from an entity.

        Returns:
            The created node mapped back to the entity type, with its new identifier.

        Raises:
            ArgumentError: If entity is not a GraphEntity.
            NodeNotCreatedError: If the statement created no node.
        """
        self._require_entity(entity)
        entity_type = type(entity)
        descriptor = describe(entity_type)

        clause = build_entity_condition_clause(entity, descriptor.settable_fields)
        uuid = self.new_uuid()

        statement = templates.CREATE.render(
            node=descriptor.label,
            conditions=join_clauses(clause.text, f"{IDENTIFIER_KEY}:${IDENTIFIER_KEY}"),
        )
        result = await self._execute(statement, {**clause.parameters, IDENTIFIER_KEY: uuid})

        if result.counters.nodes_created == 0:
            raise NodeNotCreatedError(
                f"No {descriptor.label} node was created", statement=statement
            )

        logger.debug("Created %s %s", descriptor.label, uuid)
        return map_node(node_properties(first_value(result)), entity_type)

    async def update(
        self,
        entity: EntityType,
        uuid: str,
        fetch_result: bool = False,
    ) -> Optional[EntityType]:
        """
        Overwrite every updatable property of a live node.

        Args:
            entity: Entity supplying the new values.
            uuid: Identifier of the node to update.
            fetch_result: Return the updated node. The write happens either way.

        Returns:
            The updated entity when ``fetch_result`` is true and the node exists, else None.
        """
        return await self._update(entity, uuid, fetch_result, skip_none=False)

    async def partial_update(
        self,
        entity: EntityType,
        uuid: str,
        fetch_result: bool = False,
    ) -> Optional[EntityType]:
        """Like ``update``, but leaves properties whose value on ``entity`` is None untouched."""
        return await self._update(entity, uuid, fetch_result, skip_none=True)

    async def _update(
        self,
        entity: EntityType,
        uuid: str,
        fetch_result: bool,
        skip_none: bool,
    ) -> Optional[EntityType]:
        self._require_entity(entity)
        self._require_uuid(uuid)
        entity_type = type(entity)
        descriptor = describe(entity_type)

        entity = entity.model_copy(update={"uuid": uuid, "updated_at": timestamp()})
        clause = build_assignment_clause(entity, NODE_VARIABLE, skip_none=skip_none)

        statement = templates.UPDATE.render(**{
            "label": descriptor.label,
            "clause": clause.text,
            "return": f"RETURN {NODE_VARIABLE}" if fetch_result else "",
        })
        result = await self._execute(statement, {**clause.parameters, IDENTIFIER_KEY: uuid})

        if not fetch_result:
            return None
        return map_node(node_properties(first_value(result)), entity_type)

    async def merge(
        self,
        entity_on_create: EntityType,
        entity_on_update: EntityType,
        where: Mapping[str, Any],
    ) -> Optional[EntityType]:
        """
        Create or update the node matching ``where`` in one statement.

        Args:
            entity_on_create: Values written when no node matches; a fresh
                              identifier is generated for this branch only.
            entity_on_update: Values written when a node matches; its
                              identifier is preserved.
            where: Property map identifying the node.

        Returns:
            The created or updated node.
        """
        self._require_entity(entity_on_create, "entity_on_create")
        self._require_entity(entity_on_update, "entity_on_update")
        self._require_properties(where, "where")
        entity_type = type(entity_on_create)
        descriptor = describe(entity_type)

        condition = build_condition_clause(descriptor.translate(where))

        on_create = build_assignment_clause(
            entity_on_create,
            NODE_VARIABLE,
            ON_CREATE_PREFIX,
            fields=descriptor.settable_fields,
        )
        on_create_text = join_clauses(
            on_create.text,
            f"{NODE_VARIABLE}.{IDENTIFIER_KEY}=${ON_CREATE_PREFIX}{IDENTIFIER_KEY}",
        )

        on_match = build_assignment_clause(
            entity_on_update.model_copy(update={"updated_at": timestamp()}),
            NODE_VARIABLE,
            ON_MATCH_PREFIX,
        )

        statement = templates.MERGE.render(
            node=descriptor.label,
            conditions=condition.text,
            on_create_clause=f"ON CREATE SET {on_create_text}",
            on_match_clause=f"ON MATCH SET {on_match.text}" if on_match else "",
        )
        parameters = {
            **condition.parameters,
            **on_create.parameters,
            f"{ON_CREATE_PREFIX}{IDENTIFIER_KEY}": self.new_uuid(),
            **on_match.parameters,
        }
        result = await self._execute(statement, parameters)

        return map_node(node_properties(first_value(result)), entity_type)

    async def delete(self, entity_type: Type[EntityType], uuid: str) -> Optional[EntityType]:
        """
        Soft delete a node: flag it as deleted and stamp its update time.

        Returns:
            The deleted node, or None when no live node has this identifier.
        """
        self._require_uuid(uuid)
        descriptor = describe(entity_type)

        statement = templates.DELETE.render(label=descriptor.label)
        result = await self._execute(
            statement, {IDENTIFIER_KEY: uuid, "UpdatedAt": timestamp()}
        )

        return map_node(node_properties(first_value(result)), entity_type)

    async def drop(self, entity_type: Type[GraphEntity], uuid: str) -> bool:
        """
        Remove a node and its relationships.

        Returns:
            True when exactly one node was removed.
        """
        self._require_uuid(uuid)
        descriptor = describe(entity_type)

        statement = templates.DROP.render(label=descriptor.label)
        result = await self._execute(statement, {IDENTIFIER_KEY: uuid})

        return result.counters.nodes_deleted == 1

    async def drop_by_properties(
        self,
        entity_type: Type[GraphEntity],
        properties: Mapping[str, Any],
    ) -> int:
        """
        Remove every node of the type matching a property map.

        Returns:
            Number of nodes removed.
        """
        self._require_properties(properties)
        descriptor = describe(entity_type)

        clause = build_condition_clause(descriptor.translate(properties))
        statement = templates.DROP_BY_PROPERTIES.render(label=descriptor.label, clause=clause.text)
        result = await self._execute(statement, clause.parameters)

        return result.counters.nodes_deleted

    # =============================================================================
    # READ OPERATIONS
    # =============================================================================

    async def get_by_property(
        self,
        entity_type: Type[EntityType],
        name: str,
        value: Any,
    ) -> List[EntityType]:
        """
        Get the live nodes whose property ``name`` equals ``value``.

        ``name`` may be the attribute name or the graph key.
        """
        if not isinstance(name, str) or not name.strip():
            raise ArgumentError("name", "Property name is required")
        if value is None:
            raise ArgumentError("value", "Property value is required")
        descriptor = describe(entity_type)

        statement = templates.GET_BY_PROPERTY.render(
            label=descriptor.label,
            property=ensure_identifier(descriptor.graph_key(name), "property key"),
            relationship="",
            relatedNode="",
            result=NODE_VARIABLE,
        )
        result = await self._execute(statement, {"value": value})

        return await self._map_with_related(entity_type, result)

    async def get_by_properties(
        self,
        entity_type: Type[EntityType],
        properties: Mapping[str, Any],
    ) -> List[EntityType]:
        """Get the live nodes matching every entry of a property map."""
        self._require_properties(properties)
        descriptor = describe(entity_type)

        clause = build_condition_clause(descriptor.translate(properties))
        statement = templates.GET_BY_PROPERTIES.render(
            label=descriptor.label,
            clause=clause.text,
            relationship="",
            relatedNode="",
            result=NODE_VARIABLE,
        )
        result = await self._execute(statement, clause.parameters)

        return await self._map_with_related(entity_type, result)

    async def get_all(self, entity_type: Type[EntityType]) -> List[EntityType]:
        """Get every live node of the type."""
        descriptor = describe(entity_type)

        statement = templates.GET_ALL.render(label=descriptor.label, result=NODE_VARIABLE)
        result = await self._execute(statement)

        return await self._map_with_related(entity_type, result)

    async def get_by_uuid_with_related_nodes(
        self,
        entity_type: Type[EntityType],
        uuid: str,
    ) -> Optional[EntityType]:
        """
        Get a live node by identifier with its relationship fields loaded.

        Returns:
            The entity, or None when no live node has this identifier.
        """
        self._require_uuid(uuid)
        descriptor = describe(entity_type)

        statement = templates.GET_BY_PROPERTY.render(
            label=descriptor.label,
            property=IDENTIFIER_KEY,
            relationship="",
            relatedNode="",
            result=NODE_VARIABLE,
        )
        result = await self._execute(statement, {"value": uuid})

        properties = node_properties(first_value(result))
        if properties is None:
            return None

        merged = await self._resolver.with_related(entity_type, properties)
        return map_node(merged, entity_type)

    async def _map_with_related(
        self,
        entity_type: Type[EntityType],
        result: StatementResult,
    ) -> List[EntityType]:
        entities = []
        for record in result:
            merged = await self._resolver.with_related(entity_type, node_properties(record[0]))
            entities.append(map_node(merged, entity_type))
        return entities

    # =============================================================================
    # RELATIONSHIPS AND LABELS
    # =============================================================================

    async def create_relationship(
        self,
        uuid_from: str,
        uuid_to: str,
        relationship: Relationship,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Create an edge between two nodes.

        Args:
            uuid_from: Identifier of the node the relationship is declared on.
            uuid_to: Identifier of the other node.
            relationship: Name and direction of the edge.
            properties: Optional edge properties.

        Returns:
            True when at least one edge was created.
        """
        self._require_uuid(uuid_from, "uuid_from")
        self._require_uuid(uuid_to, "uuid_to")
        self._require_relationship(relationship)

        clause = build_condition_clause(properties or {}, RELATIONSHIP_PREFIX)
        statement = templates.CREATE_RELATIONSHIP.render(
            fromPartDirection=relationship.from_part,
            toPartDirection=relationship.to_part,
            relationshipName=relationship.name,
            clause=f"{{{clause.text}}}" if clause else "",
        )
        result = await self._execute(
            statement, {"uuidFrom": uuid_from, "uuidTo": uuid_to, **clause.parameters}
        )

        return result.counters.relationships_created >= 1

    async def merge_relationship(
        self,
        uuid_from: str,
        uuid_to: str,
        relationship: Relationship,
    ) -> bool:
        """
        Create an edge between two nodes unless it already exists.

        Returns:
            True when the edge was created by this call; False when it already
            existed or either node is missing.
        """
        self._require_uuid(uuid_from, "uuid_from")
        self._require_uuid(uuid_to, "uuid_to")
        self._require_relationship(relationship)

        statement = templates.MERGE_RELATIONSHIP.render(
            fromPartDirection=relationship.from_part,
            toPartDirection=relationship.to_part,
            relationshipName=relationship.name,
        )
        result = await self._execute(statement, {"uuidFrom": uuid_from, "uuidTo": uuid_to})

        return result.counters.relationships_created >= 1

    async def drop_relationship_between_two_nodes(
        self,
        uuid_incoming: str,
        uuid_outgoing: str,
        relationship: Relationship,
    ) -> bool:
        """
        Delete the edges of one name and direction between two nodes.

        Returns:
            True when at least one edge was deleted.
        """
        self._require_uuid(uuid_incoming, "uuid_incoming")
        self._require_uuid(uuid_outgoing, "uuid_outgoing")
        self._require_relationship(relationship)

        statement = templates.DROP_RELATIONSHIP.render(
            fromPartDirection=relationship.from_part,
            toPartDirection=relationship.to_part,
            relationshipName=relationship.name,
        )
        result = await self._execute(
            statement, {"uuidIncoming": uuid_incoming, "uuidOutgoing": uuid_outgoing}
        )

        return result.counters.relationships_deleted >= 1

    async def add_label(self, uuid: str, label: str) -> bool:
        """
        Add a label to a node.

        Returns:
            True once the label was added.

        Raises:
            LabelNotAddedError: If no label was added (unknown node, or the
                node already carries the label).
        """
        self._require_uuid(uuid)
        if not isinstance(label, str) or not label.strip():
            raise ArgumentError("label", "Label is required")

        statement = templates.ADD_LABEL.render(label=ensure_identifier(label, "label"))
        result = await self._execute(statement, {IDENTIFIER_KEY: uuid})

        if result.counters.labels_added == 0:
            raise LabelNotAddedError(
                f"Label {label} was not added to node {uuid}", statement=statement
            )
        return True

    # =============================================================================
    # CUSTOM QUERIES
    # =============================================================================

    async def run_custom_query(
        self,
        query: str,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Run a caller-written statement and return each record as a dict."""
        if not isinstance(query, str) or not query.strip():
            raise ArgumentError("query", "Query text is required")
        result = await self._execute(query, parameters)
        return [record.data() for record in result]

    async def run_custom_query_as(
        self,
        entity_type: Type[EntityType],
        query: str,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> List[EntityType]:
        """Run a caller-written statement returning nodes in its first column."""
        if not isinstance(query, str) or not query.strip():
            raise ArgumentError("query", "Query text is required")
        describe(entity_type)
        result = await self._execute(query, parameters)
        return map_nodes((node_properties(record[0]) for record in result), entity_type)

    # =============================================================================
    # ARGUMENT CHECKS
    # =============================================================================

    @staticmethod
    def _require_entity(entity: Any, argument: str = "entity") -> None:
        if not isinstance(entity, GraphEntity):
            raise ArgumentError(argument, f"{argument} must be a GraphEntity instance")

    @staticmethod
    def _require_uuid(uuid: Any, argument: str = "uuid") -> None:
        if not isinstance(uuid, str) or not uuid.strip():
            raise ArgumentError(argument, f"{argument} must be a non-blank string")

    @staticmethod
    def _require_properties(properties: Any, argument: str = "properties") -> None:
        if not isinstance(properties, Mapping) or not properties:
            raise ArgumentError(argument, f"{argument} must be a non-empty mapping")

    @staticmethod
    def _require_relationship(relationship: Any) -> None:
        if not isinstance(relationship, Relationship):
            raise ArgumentError("relationship", "relationship must be a Relationship")

    def __repr__(self) -> str:
        state = "connected" if self.connected else "disconnected"
        return f"NeoClient(uri='{self.engine.uri}', {state})"
