# tests/conftest.py
"""
Shared fixtures: test entities and in-memory stand-ins for the driver's
session, transaction and result objects.
"""

from types import SimpleNamespace
from typing import Annotated, Any, Dict, List, Optional

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from neo4j import SummaryCounters
from pydantic import Field

from neoclient.orm.client import NeoClient
from neoclient.orm.engine import StatementResult, run_statement
from neoclient.orm.entities import GraphEntity, graph_entity
from neoclient.orm.fields import Direction, NotMapped, Relationship


# =============================================================================
# TEST ENTITIES
# =============================================================================

@graph_entity(label="Post")
class Post(GraphEntity):
    title: str = Field(alias="Title")


@graph_entity(label="Company")
class Company(GraphEntity):
    name: str = Field(alias="Name")


@graph_entity(label="Person")
class Person(GraphEntity):
    first_name: Optional[str] = Field(default=None, alias="FirstName")
    email: Optional[str] = Field(default=None, alias="Email")
    age: Optional[int] = Field(default=None, alias="Age")
    nickname: Annotated[Optional[str], NotMapped()] = None
    posts: Annotated[
        List[Post], Relationship(name="WROTE", direction=Direction.OUTGOING)
    ] = Field(default_factory=list)
    employer: Annotated[
        Optional[Company], Relationship(name="WORKS_AT", direction=Direction.OUTGOING)
    ] = None


WROTE = Relationship(name="WROTE", direction=Direction.OUTGOING)


# =============================================================================
# DRIVER FAKES
# =============================================================================

def counters(**values: int) -> Dict[str, int]:
    """Build a driver statistics map: counters(nodes_created=1) -> {"nodes-created": 1}."""
    return {key.replace("_", "-"): value for key, value in values.items()}


class FakeRecord:
    """Minimal stand-in for neo4j.Record: positional access and data()."""

    def __init__(self, **columns: Any):
        self._columns = columns

    def __getitem__(self, key):
        if isinstance(key, int):
            return list(self._columns.values())[key]
        return self._columns[key]

    def data(self) -> Dict[str, Any]:
        return dict(self._columns)


class FakeResult:
    """Async-iterable result with a summary, like neo4j.AsyncResult."""

    def __init__(self, records: Optional[List[FakeRecord]] = None, stats: Optional[Dict[str, int]] = None):
        self._records = list(records or [])
        self._summary = SimpleNamespace(counters=SummaryCounters(stats or {}))

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for record in self._records:
            yield record

    async def consume(self):
        return self._summary


def result(*nodes: Dict[str, Any], column: str = "n", **stats: int) -> FakeResult:
    """Result whose records each hold one node in ``column``."""
    return FakeResult([FakeRecord(**{column: node}) for node in nodes], counters(**stats))


class FakeRunner:
    """Records every statement and answers from a shared queue of results."""

    def __init__(self, responses: List[FakeResult]):
        self.responses = responses
        self.calls: List[tuple] = []

    async def run(self, statement: str, parameters: Optional[Dict[str, Any]] = None) -> FakeResult:
        self.calls.append((statement, parameters))
        return self.responses.pop(0) if self.responses else FakeResult()

    @property
    def statements(self) -> List[str]:
        return [statement for statement, _ in self.calls]


class FakeTransaction(FakeRunner):
    def __init__(self, responses: List[FakeResult]):
        super().__init__(responses)
        self.commit = AsyncMock()
        self.rollback = AsyncMock()
        self.close = AsyncMock()


class FakeSession:
    def __init__(self, transaction: FakeTransaction):
        self.transaction = transaction
        self.begin_transaction = AsyncMock(return_value=transaction)
        self.close = AsyncMock()


class FakeEngine:
    """
    GraphEngine stand-in.

    Auto-commit statements run on ``runner``; each session hands out a fresh
    FakeTransaction. All of them answer from the same ``responses`` queue.
    """

    uri = "bolt://fakehost:7687"
    default_database = "neo4j"

    def __init__(self):
        self.responses: List[FakeResult] = []
        self.runner = FakeRunner(self.responses)
        self.sessions: List[FakeSession] = []
        self.connected = True
        self.connect = AsyncMock()
        self.close = AsyncMock()

    def queue(self, *results: FakeResult) -> None:
        self.responses.extend(results)

    def get_session(self, database: Optional[str] = None) -> FakeSession:
        session = FakeSession(FakeTransaction(self.responses))
        self.sessions.append(session)
        return session

    async def execute(self, statement: str, parameters=None, database=None) -> StatementResult:
        return await run_statement(self.runner, statement, parameters)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest_asyncio.fixture
async def client(fake_engine: FakeEngine) -> NeoClient:
    neo_client = NeoClient(engine=fake_engine)
    yield neo_client
    await neo_client.close()
