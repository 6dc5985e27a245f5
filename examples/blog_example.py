#!/usr/bin/env python3
r"""
NeoClient Example - a small blog graph

Walks through entity declarations, CRUD calls, relationship loading and an
explicit transaction against a running Neo4j instance.

Configure the connection with NEOCLIENT_URI, NEOCLIENT_USERNAME and
NEOCLIENT_PASSWORD (see neoclient.settings), then run:

    python examples/blog_example.py
"""

import asyncio
import logging
from typing import Annotated, List, Optional

from pydantic import Field

from neoclient import (
    Direction,
    GraphEntity,
    NeoClient,
    NotMapped,
    Relationship,
    graph_entity,
)


# =============================================================================
# DEFINE ENTITIES
# =============================================================================

WROTE = Relationship(name="WROTE", direction=Direction.OUTGOING)
FOLLOWS = Relationship(name="FOLLOWS", direction=Direction.OUTGOING)


@graph_entity(label="Post")
class Post(GraphEntity):
    title: str = Field(alias="Title", min_length=1)
    body: str = Field(default="", alias="Body")


@graph_entity(label="Author")
class Author(GraphEntity):
    """Author with their posts and the authors they follow."""

    name: str = Field(alias="Name", min_length=1)
    email: Optional[str] = Field(default=None, alias="Email")
    posts: Annotated[List[Post], WROTE] = Field(default_factory=list)
    follows: Annotated[List["Author"], FOLLOWS] = Field(default_factory=list)

    # Computed locally, never stored
    display_name: Annotated[Optional[str], NotMapped()] = None


# =============================================================================
# WALKTHROUGH
# =============================================================================

async def main():
    async with NeoClient.from_settings() as client:
        print(f"Connected: {await client.ping()}")

        alice = await client.add(Author(name="Alice", email="alice@example.com"))
        bob = await client.add(Author(name="Bob"))
        print(f"Created {alice!r} and {bob!r}")

        post = await client.add(Post(title="Graphs are everywhere"))
        await client.create_relationship(alice.uuid, post.uuid, WROTE)
        await client.merge_relationship(bob.uuid, alice.uuid, FOLLOWS)

        loaded = await client.get_by_uuid_with_related_nodes(Author, alice.uuid)
        print(f"{loaded.name} wrote {[p.title for p in loaded.posts]}")

        await client.partial_update(Author(name="Alice Liddell"), alice.uuid)
        print(f"Found: {await client.get_by_property(Author, 'name', 'Alice Liddell')}")

        # Everything inside the transaction commits or rolls back together
        async with await client.begin_transaction() as tx:
            draft = await client.add(Post(title="Draft"))
            await client.create_relationship(bob.uuid, draft.uuid, WROTE)
            await tx.rollback()
        print(f"Posts after rollback: {len(await client.get_all(Post))}")

        rows = await client.run_custom_query(
            "MATCH (a:Author)-[:WROTE]->(p:Post) RETURN a.Name AS author, count(p) AS posts"
        )
        print(rows)

        # Soft delete hides the node from reads; drop removes it
        await client.delete(Post, post.uuid)
        print(f"Posts after delete: {len(await client.get_all(Post))}")
        removed = await client.drop_by_properties(Author, {"name": "Bob"})
        print(f"Dropped {removed} author(s)")
        await client.drop(Author, alice.uuid)
        await client.drop(Post, post.uuid)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
