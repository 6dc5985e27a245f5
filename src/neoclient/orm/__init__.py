# src/neoclient/orm/__init__.py
"""
NeoClient ORM Module

Entity declarations, Cypher statement building, relationship loading and
the client that ties them to a Neo4j connection.
"""

from neoclient.orm.entities import (
    GraphEntity,
    graph_entity,
    get_entity_classes,
    get_entity_by_label,
)

from neoclient.orm.fields import (
    Direction,
    NotMapped,
    Relationship,
)

from neoclient.orm.engine import (
    GraphEngine,
    create_graph_engine,
)

from neoclient.orm.client import NeoClient
from neoclient.orm.transaction import Transaction

__all__ = [
    # Entity system
    "GraphEntity",
    "graph_entity",
    "get_entity_classes",
    "get_entity_by_label",
    "Direction",
    "NotMapped",
    "Relationship",

    # Engine
    "GraphEngine",
    "create_graph_engine",

    # Client
    "NeoClient",
    "Transaction",
]
