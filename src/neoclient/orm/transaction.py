# src/neoclient/orm/transaction.py
"""
neoclient Transaction - explicit unit of work

A Transaction owns one driver session and one explicit driver transaction.
While it is active, the client that began it routes every statement through
it. Closing an active transaction without commit rolls it back.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional

from neo4j import AsyncSession, AsyncTransaction

from neoclient.exceptions import TransactionError
from neoclient.orm.engine import GraphEngine, StatementResult, run_statement

logger = logging.getLogger(__name__)


class TransactionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"


class Transaction:
    """
    Explicit transaction scope.

    Lifecycle: ``IDLE -> begin() -> ACTIVE -> commit() | rollback() | close() -> IDLE``.

    Example:
        ```python
        async with await client.begin_transaction() as tx:
            user = await client.add(User(first_name="Alice"))
            await client.add_label(user.uuid, "Admin")
            await tx.commit()
        ```
    """

    def __init__(self, engine: GraphEngine, database: Optional[str] = None):
        self.engine = engine
        self.database = database
        self._session: Optional[AsyncSession] = None
        self._transaction: Optional[AsyncTransaction] = None
        self._state = TransactionState.IDLE

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def in_transaction(self) -> bool:
        return self._state == TransactionState.ACTIVE

    async def begin(self) -> Transaction:
        """
        Open a session and begin the driver transaction.

        Raises:
            TransactionError: If the transaction is already active.
            ConnectionError: If the engine is not connected.
        """
        if self.in_transaction:
            raise TransactionError("Transaction already active")

        session = self.engine.get_session(self.database)
        try:
            self._transaction = await session.begin_transaction()
        except Exception:
            await session.close()
            raise

        self._session = session
        self._state = TransactionState.ACTIVE
        logger.debug("Transaction begun on %s", self.engine.uri)
        return self

    async def run(self, statement: str, parameters: Optional[Dict[str, Any]] = None) -> StatementResult:
        """Run a statement inside the transaction."""
        if not self.in_transaction:
            raise TransactionError("Transaction is not active")
        return await run_statement(self._transaction, statement, parameters)

    async def commit(self) -> None:
        """Commit the transaction and release its session."""
        if not self.in_transaction:
            raise TransactionError("No active transaction to commit")
        try:
            await self._transaction.commit()
            logger.debug("Transaction committed")
        finally:
            await self._dispose()

    async def rollback(self) -> None:
        """Discard the transaction and release its session."""
        if not self.in_transaction:
            raise TransactionError("No active transaction to roll back")
        try:
            await self._transaction.rollback()
            logger.debug("Transaction rolled back")
        finally:
            await self._dispose()

    async def close(self) -> None:
        """Release the transaction, rolling back if neither commit nor rollback was called."""
        if not self.in_transaction:
            return
        logger.debug("Transaction closed without commit, rolling back")
        await self.rollback()

    async def _dispose(self) -> None:
        transaction, session = self._transaction, self._session
        self._transaction = None
        self._session = None
        self._state = TransactionState.IDLE
        try:
            if transaction is not None:
                await transaction.close()
        finally:
            if session is not None:
                await session.close()

    async def __aenter__(self) -> Transaction:
        if not self.in_transaction:
            await self.begin()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"Transaction(state='{self._state.value}')"
