"""Custom exceptions for neoclient."""

from __future__ import annotations

from typing import Any, Optional


class NeoClientError(Exception):
    """Base exception for all neoclient errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class EntityConfigurationError(NeoClientError):
    """Raised when an entity type cannot be described (bad label, unresolvable relationship)."""

    def __init__(
        self,
        entity_type: type,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.entity_type = entity_type
        super().__init__(f"{entity_type.__name__}: {message}", details)


class QueryTemplateError(NeoClientError):
    """Raised when a template is rendered with unknown or missing placeholders."""

    pass


class InvalidIdentifierError(NeoClientError, ValueError):
    """Raised when a label, property key or relationship name is unsafe to inline."""

    def __init__(self, identifier: Any, kind: str = "identifier") -> None:
        self.identifier = identifier
        self.kind = kind
        super().__init__(f"Invalid {kind}: {identifier!r}")


class ArgumentError(NeoClientError, ValueError):
    """Raised for invalid call arguments, before any statement is executed."""

    def __init__(self, argument: str, message: Optional[str] = None) -> None:
        self.argument = argument
        super().__init__(message or f"Invalid argument: {argument}")


class ZeroEffectWriteError(NeoClientError):
    """Raised when a write that must change the graph ran but changed nothing."""

    def __init__(
        self,
        message: str,
        statement: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.statement = statement
        super().__init__(message, details)


class NodeNotCreatedError(ZeroEffectWriteError):
    """Raised when a create statement reported zero created nodes."""

    pass


class LabelNotAddedError(ZeroEffectWriteError):
    """Raised when an add-label statement reported zero added labels."""

    pass


class TransactionError(NeoClientError):
    """Raised on commit/rollback of a transaction that is not active."""

    pass
