# tests/orm/test_engine.py

import pytest
import pytest_asyncio
import asyncio
import logging
from unittest.mock import patch, AsyncMock, MagicMock
import re
from neo4j import AsyncDriver, AsyncSession
from neo4j.exceptions import ServiceUnavailable # For simulating connection errors

from neoclient.orm.engine import GraphEngine, StatementResult, create_graph_engine, run_statement

from conftest import FakeRecord, FakeResult, FakeRunner, counters

# --- Constants for testing ---
TEST_URI = "bolt://mockenginehost:7687"
TEST_AUTH = ("testengineuser", "testenginepass")
TEST_DEFAULT_DB = "enginedb"
ENGINE_LOGGER = "neoclient.orm.engine"

# --- Fixtures ---

@pytest_asyncio.fixture
async def engine_instance(request) -> GraphEngine:
    """
    Provides a GraphEngine instance for testing.
    It's not connected by default.
    """
    uri = getattr(request, "param", {}).get("uri", TEST_URI)
    auth = getattr(request, "param", {}).get("auth", TEST_AUTH)
    database = getattr(request, "param", {}).get("database", TEST_DEFAULT_DB)
    driver_config = getattr(request, "param", {}).get("driver_config", None)

    engine = GraphEngine(uri=uri, auth=auth, database=database, driver_config=driver_config)
    assert not engine.connected
    assert engine._driver is None

    yield engine

    if engine.connected:
        await engine.close()
    assert engine._driver is None
    assert not engine.connected


@pytest_asyncio.fixture
def mock_neo4j_driver_factory():
    """
    Provides a mock for neo4j.AsyncGraphDatabase.driver.
    The mock_driver_instance it returns can be further configured in tests.
    """
    mock_driver_instance = AsyncMock(spec=AsyncDriver)
    mock_driver_instance.verify_connectivity = AsyncMock()
    mock_driver_instance.close = AsyncMock()
    mock_session_instance = AsyncMock(spec=AsyncSession)
    mock_driver_instance.session = MagicMock(return_value=mock_session_instance)

    with patch("neo4j.AsyncGraphDatabase.driver", return_value=mock_driver_instance) as mock_factory:
        yield mock_factory, mock_driver_instance, mock_session_instance


# --- Test Cases ---

class TestGraphEngineInitialization:
    def test_engine_initialization_defaults(self):
        engine = GraphEngine(uri=TEST_URI, auth=TEST_AUTH)
        assert engine.uri == TEST_URI
        assert engine.auth == TEST_AUTH
        assert engine.default_database == "neo4j"
        assert not engine.connected
        assert engine._driver is None
        assert "NeoClient/0.1.0" in engine.driver_config["user_agent"]
        assert engine.driver_config["connection_timeout"] == 30

    def test_engine_initialization_without_auth(self):
        engine = GraphEngine(uri=TEST_URI)
        assert engine.auth is None

    def test_engine_initialization_custom(self):
        custom_db = "mycustomdb"
        custom_config = {"user_agent": "MyTestApp", "max_connection_pool_size": 10}
        engine = GraphEngine(
            uri=TEST_URI,
            auth=TEST_AUTH,
            database=custom_db,
            driver_config=custom_config
        )
        assert engine.default_database == custom_db
        assert engine.driver_config["user_agent"] == "MyTestApp"
        assert engine.driver_config["max_connection_pool_size"] == 10
        # Defaults survive when not overridden
        assert engine.driver_config["keep_alive"] is True

    def test_create_graph_engine_passes_driver_config(self):
        engine = create_graph_engine(TEST_URI, TEST_AUTH, database="other", connection_timeout=5)
        assert engine.default_database == "other"
        assert engine.driver_config["connection_timeout"] == 5


@pytest.mark.asyncio
class TestGraphEngineConnect:
    async def test_connect_successful(self, engine_instance: GraphEngine, mock_neo4j_driver_factory, caplog):
        mock_factory, mock_driver, _ = mock_neo4j_driver_factory
        caplog.set_level(logging.INFO, logger=ENGINE_LOGGER)

        await engine_instance.connect()

        mock_factory.assert_called_once_with(
            engine_instance.uri,
            auth=engine_instance.auth,
            **engine_instance.driver_config
        )
        mock_driver.verify_connectivity.assert_awaited_once()
        assert engine_instance.connected is True
        assert engine_instance._driver is mock_driver
        assert f"GraphEngine: Successfully connected to {engine_instance.uri}" in caplog.text

    async def test_connect_idempotent(self, engine_instance: GraphEngine, mock_neo4j_driver_factory):
        mock_factory, mock_driver, _ = mock_neo4j_driver_factory

        await engine_instance.connect()
        first_driver_instance = engine_instance._driver

        await engine_instance.connect()

        mock_factory.assert_called_once()
        mock_driver.verify_connectivity.assert_awaited_once()
        assert engine_instance.connected is True
        assert engine_instance._driver is first_driver_instance

    async def test_connect_failure_driver_creation(self, engine_instance: GraphEngine, mock_neo4j_driver_factory, caplog):
        mock_factory, _, _ = mock_neo4j_driver_factory
        mock_factory.side_effect = ServiceUnavailable("Cannot create driver")

        with pytest.raises(ConnectionError, match=re.escape(f"Failed to connect to Neo4j at {engine_instance.uri}: Cannot create driver")):
            await engine_instance.connect()

        assert engine_instance.connected is False
        assert engine_instance._driver is None
        assert f"GraphEngine: Connection to {engine_instance.uri} failed: Cannot create driver" in caplog.text

    async def test_connect_failure_verify_connectivity(self, engine_instance: GraphEngine, mock_neo4j_driver_factory, caplog):
        mock_factory, mock_driver, _ = mock_neo4j_driver_factory
        mock_driver.verify_connectivity.side_effect = ServiceUnavailable("Verification failed")

        with pytest.raises(ConnectionError, match=re.escape(f"Failed to connect to Neo4j at {engine_instance.uri}: Verification failed")):
            await engine_instance.connect()

        assert engine_instance.connected is False
        assert engine_instance._driver is None
        error_records = [record for record in caplog.records if record.levelno == logging.ERROR]
        assert len(error_records) == 1
        assert "Verification failed" in error_records[0].getMessage()

    async def test_connect_concurrent_calls(self, engine_instance: GraphEngine, mock_neo4j_driver_factory):
        """Concurrent connect calls create a single driver."""
        mock_factory, mock_driver, _ = mock_neo4j_driver_factory

        await asyncio.gather(*[engine_instance.connect() for _ in range(5)])

        mock_factory.assert_called_once()
        mock_driver.verify_connectivity.assert_awaited_once()
        assert engine_instance.connected is True


@pytest.mark.asyncio
class TestGraphEngineClose:
    async def test_close_active_connection(self, engine_instance: GraphEngine, mock_neo4j_driver_factory, caplog):
        mock_factory, mock_driver, _ = mock_neo4j_driver_factory
        caplog.set_level(logging.INFO, logger=ENGINE_LOGGER)
        await engine_instance.connect()

        await engine_instance.close()

        mock_driver.close.assert_awaited_once()
        assert engine_instance.connected is False
        assert engine_instance._driver is None
        assert f"GraphEngine: Connection to {engine_instance.uri} closed." in caplog.text

    async def test_close_when_not_connected(self, engine_instance: GraphEngine, caplog):
        caplog.set_level(logging.INFO, logger=ENGINE_LOGGER)

        await engine_instance.close() # Should not raise error

        assert "Closing connection" not in caplog.text
        assert engine_instance.connected is False
        assert engine_instance._driver is None

    async def test_close_when_driver_exists_but_not_fully_connected(self, engine_instance: GraphEngine, mock_neo4j_driver_factory, caplog):
        mock_factory, mock_driver, _ = mock_neo4j_driver_factory

        # Driver assigned but never verified
        engine_instance._driver = mock_driver
        engine_instance._is_connected = False

        await engine_instance.close()

        mock_driver.close.assert_awaited_once()
        assert engine_instance._driver is None
        assert not engine_instance.connected
        assert f"GraphEngine: Driver for {engine_instance.uri} exists but was not fully connected. Attempting close." in caplog.text

    async def test_close_idempotent(self, engine_instance: GraphEngine, mock_neo4j_driver_factory):
        mock_factory, mock_driver, _ = mock_neo4j_driver_factory
        await engine_instance.connect()

        await engine_instance.close()
        await engine_instance.close()

        mock_driver.close.assert_awaited_once()
        assert not engine_instance.connected


@pytest.mark.asyncio
class TestGraphEngineGetSession:
    async def test_get_session_when_connected(self, engine_instance: GraphEngine, mock_neo4j_driver_factory):
        mock_factory, mock_driver, mock_session = mock_neo4j_driver_factory
        await engine_instance.connect()

        session1 = engine_instance.get_session()
        assert session1 is mock_session
        mock_driver.session.assert_called_with(database=engine_instance.default_database)

        session2 = engine_instance.get_session(database="anotherdb")
        assert session2 is mock_session
        mock_driver.session.assert_called_with(database="anotherdb")

    async def test_get_session_when_not_connected(self, engine_instance: GraphEngine):
        with pytest.raises(ConnectionError, match=re.escape(f"GraphEngine for {engine_instance.uri} is not connected. Call `await engine.connect()` first.")):
            engine_instance.get_session()

    async def test_driver_property_when_connected(self, engine_instance: GraphEngine, mock_neo4j_driver_factory):
        mock_factory, mock_driver, _ = mock_neo4j_driver_factory
        await engine_instance.connect()
        assert engine_instance.driver is mock_driver

    async def test_driver_property_when_not_connected(self, engine_instance: GraphEngine):
        with pytest.raises(ConnectionError):
            _ = engine_instance.driver

    async def test_get_session_after_close(self, engine_instance: GraphEngine, mock_neo4j_driver_factory):
        mock_factory, mock_driver, _ = mock_neo4j_driver_factory
        await engine_instance.connect()
        await engine_instance.close()

        with pytest.raises(ConnectionError, match=re.escape(f"GraphEngine for {engine_instance.uri} is not connected.")):
            engine_instance.get_session()
        mock_driver.session.assert_not_called()


@pytest.mark.asyncio
class TestStatementExecution:
    async def test_run_statement_collects_records_and_counters(self):
        runner = FakeRunner([FakeResult([FakeRecord(n={"Uuid": "u1"})], counters(nodes_created=1))])

        outcome = await run_statement(runner, "CREATE (n:Person{Uuid:$Uuid}) RETURN n", {"Uuid": "u1"})

        assert isinstance(outcome, StatementResult)
        assert len(outcome) == 1
        assert list(outcome)[0][0] == {"Uuid": "u1"}
        assert outcome.counters.nodes_created == 1
        assert runner.calls == [("CREATE (n:Person{Uuid:$Uuid}) RETURN n", {"Uuid": "u1"})]

    async def test_run_statement_defaults_parameters(self):
        runner = FakeRunner([])

        outcome = await run_statement(runner, "RETURN 1")

        assert runner.calls == [("RETURN 1", {})]
        assert len(outcome) == 0
        assert outcome.counters.nodes_created == 0

    async def test_execute_uses_auto_commit_session(self, engine_instance: GraphEngine, mock_neo4j_driver_factory):
        mock_factory, mock_driver, mock_session = mock_neo4j_driver_factory
        mock_session.__aenter__.return_value = mock_session
        mock_session.run = AsyncMock(return_value=FakeResult([FakeRecord(value=1)]))
        await engine_instance.connect()

        outcome = await engine_instance.execute("RETURN 1 AS value", database="analytics")

        mock_driver.session.assert_called_with(database="analytics")
        mock_session.run.assert_awaited_once_with("RETURN 1 AS value", {})
        mock_session.__aexit__.assert_awaited_once()
        assert list(outcome)[0][0] == 1

    async def test_execute_when_not_connected(self, engine_instance: GraphEngine):
        with pytest.raises(ConnectionError):
            await engine_instance.execute("RETURN 1")


@pytest.mark.asyncio
class TestGraphEngineContextManager:
    async def test_engine_as_async_context_manager_success(self, engine_instance: GraphEngine, mock_neo4j_driver_factory):
        mock_factory, mock_driver, _ = mock_neo4j_driver_factory

        async with engine_instance as connected_engine:
            assert connected_engine is engine_instance
            assert engine_instance.connected is True
            mock_driver.verify_connectivity.assert_awaited_once()

        assert engine_instance.connected is False
        mock_driver.close.assert_awaited_once()

    async def test_engine_as_async_context_manager_connect_failure(self, engine_instance: GraphEngine, mock_neo4j_driver_factory):
        mock_factory, mock_driver, _ = mock_neo4j_driver_factory
        mock_driver.verify_connectivity.side_effect = ServiceUnavailable("Context connect failed")

        with pytest.raises(ConnectionError, match=re.escape(f"Failed to connect to Neo4j at {engine_instance.uri}: Context connect failed")):
            async with engine_instance:
                pytest.fail("Should not reach inside context if connect fails")

        assert not engine_instance.connected
        mock_driver.close.assert_not_awaited()

    async def test_engine_as_async_context_manager_error_inside_with_block(self, engine_instance: GraphEngine, mock_neo4j_driver_factory):
        mock_factory, mock_driver, _ = mock_neo4j_driver_factory

        class CustomTestError(Exception): pass

        with pytest.raises(CustomTestError):
            async with engine_instance:
                raise CustomTestError("Error inside with block")

        assert not engine_instance.connected
        mock_driver.close.assert_awaited_once()
