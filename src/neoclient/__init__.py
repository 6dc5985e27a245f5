# src/neoclient/__init__.py
r"""
NeoClient - Typed object-graph mapping for Neo4j

NeoClient maps pydantic entities to labelled nodes and compiles CRUD calls
into parameterized Cypher:
- GraphEntity models with identifier, timestamps and soft delete built in
- Relationship fields loaded on every read
- Soft delete, hard drop, merge and partial update
- Explicit transactions that every client call joins while active

Example:
    ```python
    from typing import Annotated, List
    from pydantic import Field
    from neoclient import Direction, GraphEntity, NeoClient, Relationship, graph_entity

    @graph_entity(label="Post")
    class Post(GraphEntity):
        title: str = Field(alias="Title")

    @graph_entity(label="User")
    class User(GraphEntity):
        email: str = Field(alias="Email")
        posts: Annotated[
            List[Post], Relationship(name="WROTE", direction=Direction.OUTGOING)
        ] = Field(default_factory=list)

    async with NeoClient("bolt://localhost:7687", "neo4j", "secret") as client:
        alice = await client.add(User(email="alice@example.com"))
        post = await client.add(Post(title="Hello"))
        await client.create_relationship(
            alice.uuid, post.uuid, Relationship(name="WROTE", direction=Direction.OUTGOING)
        )
        alice = await client.get_by_uuid_with_related_nodes(User, alice.uuid)
    ```
"""

import logging

# ORM system - Entities
from neoclient.orm.entities import GraphEntity, graph_entity
from neoclient.orm.fields import Direction, NotMapped, Relationship

# Client and transactions
from neoclient.orm.client import NeoClient
from neoclient.orm.transaction import Transaction

# Engine for Neo4j connections
from neoclient.orm.engine import GraphEngine, create_graph_engine

from neoclient.settings import NeoClientSettings
from neoclient.exceptions import (
    ArgumentError,
    EntityConfigurationError,
    InvalidIdentifierError,
    LabelNotAddedError,
    NeoClientError,
    NodeNotCreatedError,
    QueryTemplateError,
    TransactionError,
    ZeroEffectWriteError,
)

# Version info
__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Main exports
__all__ = [
    # Entities
    "GraphEntity",
    "graph_entity",
    "Direction",
    "NotMapped",
    "Relationship",

    # Client
    "NeoClient",
    "NeoClientSettings",
    "Transaction",

    # Engine
    "GraphEngine",
    "create_graph_engine",

    # Errors
    "NeoClientError",
    "ArgumentError",
    "EntityConfigurationError",
    "InvalidIdentifierError",
    "QueryTemplateError",
    "ZeroEffectWriteError",
    "NodeNotCreatedError",
    "LabelNotAddedError",
    "TransactionError",

    # Version
    "__version__",
]
