# src/neoclient/orm/engine.py
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union, cast

from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncManagedTransaction, AsyncSession, AsyncTransaction
from neo4j import SummaryCounters

logger = logging.getLogger(__name__)

Runner = Union[AsyncSession, AsyncTransaction, AsyncManagedTransaction]


@dataclass
class StatementResult:
    """
    Records and mutation counters of one executed statement.

    Records are fully fetched before the session or transaction that produced
    them moves on, so a StatementResult stays readable afterwards.
    """
    records: List[Any] = field(default_factory=list)
    counters: SummaryCounters = field(default_factory=lambda: SummaryCounters({}))

    def __iter__(self):
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)


async def run_statement(
    runner: Runner,
    statement: str,
    parameters: Optional[Dict[str, Any]] = None,
) -> StatementResult:
    """
    Execute a statement on a session or transaction and collect its result.

    Driver errors (syntax errors, authentication, service unavailable) are
    propagated unchanged.
    """
    logger.debug("Running statement: %s (parameters: %s)", statement, sorted(parameters or {}))
    result = await runner.run(statement, parameters or {})
    records = [record async for record in result]
    summary = await result.consume()
    return StatementResult(records=records, counters=summary.counters)


class GraphEngine:
    """
    Represents the core interface to a Neo4j database.

    It holds the configuration for connecting to the database and manages the
    underlying Neo4j AsyncDriver. An engine instance is typically created once per
    database configuration.
    """
    def __init__(
        self,
        uri: str,
        auth: Optional[Tuple[str, str]] = None,
        database: str = "neo4j", # Default database for sessions from this engine
        driver_config: Optional[Dict[str, Any]] = None
    ):
        """
        Initializes the GraphEngine. Does not establish a connection yet.
        Call `await engine.connect()` to establish the connection.

        Args:
            uri: The URI for the Neo4j instance (e.g., "bolt://localhost:7687").
            auth: A tuple of (username, password), or None for no authentication.
            database: The default Neo4j database name for sessions created by this engine.
            driver_config: Additional configuration options for the Neo4j driver.
        """
        self.uri: str = uri
        self.auth: Optional[Tuple[str, str]] = auth
        self.default_database: str = database

        _driver_defaults = {
            "connection_timeout": 30,  # seconds
            "max_connection_lifetime": 3600,  # seconds
            "keep_alive": True,
            "user_agent": "NeoClient/0.1.0" # Can be overridden by driver_config
        }
        self.driver_config: Dict[str, Any] = {**_driver_defaults, **(driver_config or {})}

        self._driver: Optional[AsyncDriver] = None
        self._is_connected: bool = False
        self._connection_lock = asyncio.Lock() # To prevent race conditions on connect/close

    async def connect(self) -> None:
        """
        Establishes and verifies the connection to the Neo4j database using the
        engine's configuration. This method is idempotent.
        """
        async with self._connection_lock:
            if self._is_connected and self._driver:
                return

            logger.info("GraphEngine: Connecting to %s (default session DB: '%s')...", self.uri, self.default_database)
            try:
                self._driver = AsyncGraphDatabase.driver(
                    self.uri,
                    auth=self.auth,
                    **self.driver_config
                )
                await self._driver.verify_connectivity()
                self._is_connected = True
                logger.info("GraphEngine: Successfully connected to %s.", self.uri)
            except Exception as e:
                self._driver = None # Ensure driver is None on failure
                self._is_connected = False
                logger.error("GraphEngine: Connection to %s failed: %s", self.uri, e)
                raise ConnectionError(f"Failed to connect to Neo4j at {self.uri}: {e}") from e

    async def close(self) -> None:
        """Closes the Neo4j driver connection if it's open."""
        async with self._connection_lock:
            if self._driver and self._is_connected:
                logger.info("GraphEngine: Closing connection to %s...", self.uri)
                await self._driver.close()
                self._driver = None
                self._is_connected = False
                logger.info("GraphEngine: Connection to %s closed.", self.uri)
            elif self._driver and not self._is_connected:
                # Driver assigned but never verified
                logger.warning("GraphEngine: Driver for %s exists but was not fully connected. Attempting close.", self.uri)
                await self._driver.close()
                self._driver = None
                self._is_connected = False

    def get_session(self, database: Optional[str] = None) -> AsyncSession:
        """
        Returns an asynchronous Neo4j session from the engine's driver.

        Args:
            database: The name of the database to use for this session.
                      If None, uses the engine's `default_database`.

        Returns:
            An AsyncSession object.

        Raises:
            ConnectionError: If the engine is not connected. Call `await engine.connect()` first.
        """
        db_to_use = database or self.default_database
        return cast(AsyncSession, self.driver.session(database=db_to_use))

    async def execute(
        self,
        statement: str,
        parameters: Optional[Dict[str, Any]] = None,
        database: Optional[str] = None,
    ) -> StatementResult:
        """Run one statement in its own auto-commit session."""
        async with self.get_session(database) as session:
            return await run_statement(session, statement, parameters)

    @property
    def driver(self) -> AsyncDriver:
        """
        The connected Neo4j AsyncDriver; sessions are opened from it.
        Prefer `engine.get_session()` over using it directly.

        Raises:
            ConnectionError: If the engine is not connected.
        """
        if not self._driver or not self._is_connected:
            raise ConnectionError(
                f"GraphEngine for {self.uri} is not connected. Call `await engine.connect()` first."
            )
        return self._driver

    @property
    def connected(self) -> bool:
        """Returns True if the engine is currently connected, False otherwise."""
        return self._is_connected

    async def __aenter__(self) -> "GraphEngine":
        """Allows the engine to be used as an async context manager for connect/close."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Ensures the engine's connection is closed when exiting the context."""
        await self.close()


def create_graph_engine(
    uri: str,
    auth: Optional[Tuple[str, str]] = None,
    database: str = "neo4j", # Default database for sessions created from this engine
    **driver_config: Any # Pass driver_config as keyword arguments
) -> GraphEngine:
    """
    Creates and returns a GraphEngine instance.

    The engine must be explicitly connected using `await engine.connect()`
    or by using it as an async context manager (`async with engine:`).

    Args:
        uri: The URI for the Neo4j instance (e.g., "bolt://localhost:7687").
        auth: A tuple of (username, password), or None.
        database: The default Neo4j database name for sessions created by this engine.
        **driver_config: Additional configuration options for the Neo4j driver
                         (e.g., user_agent, keep_alive, max_connection_pool_size).

    Returns:
        A GraphEngine instance.
    """
    logger.debug("Creating GraphEngine for URI: %s, Default DB for its sessions: %s", uri, database)
    return GraphEngine(uri=uri, auth=auth, database=database, driver_config=driver_config)
