"""
Centralized exception handling for the transport ticketing entity store.

This module provides:
- Base StoreException class carrying a human readable `detail`.
- Domain-specific exceptions raised by the registry, store and linker.
- Utility functions for logging and normalizing raw library exceptions.

Usage:
    - Raise specific exceptions in store operations.
    - Use `handle()` inside `except` blocks to normalize raw exceptions
      (SQLAlchemy, Pydantic) into store exceptions.
"""

from traceback import format_exception
from logging import getLogger
from typing import Any, List, Optional
from pydantic import ValidationError

from ticketing.src.schemas import Violation


# ---------------------------------------------------------------------------
# Utility functions
# ---------------------------------------------------------------------------
def violationsFrom(e: ValidationError) -> List[Violation]:
    """
    Convert a pydantic validation error into a list of field violations.

    The location tuple of each error is joined with dots, list positions
    included, e.g. `intermediateStops.0.stopId`.
    """
    violations = []
    for error in e.errors():
        field = ".".join(str(part) for part in error["loc"])
        violations.append(Violation(field=field, reason=error["msg"]))
    return violations


def logException(e: Exception) -> None:
    """Log an exception with traceback using the store's error logger."""
    detail = "".join(format_exception(type(e), e, e.__traceback__))
    logger = getLogger("ticketing.error")
    logger.error(detail)


# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------
class StoreException(Exception):
    """
    Base class for all recoverable store exceptions.

    Subclasses set a class-level `detail` or build one in `__init__`.
    """

    detail = None

    def __init__(self, detail: Optional[str] = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Exception handling entrypoint
# ---------------------------------------------------------------------------
def handle(e: Exception):
    """
    Normalize and re-raise exceptions as store errors.

    Pydantic validation errors become `SchemaViolation`. Anything else that
    is not a store error, such as an integrity error not attributed to a
    declared unique index, is logged and re-raised unchanged.
    """
    if isinstance(e, ValidationError):
        raise SchemaViolation(violationsFrom(e))
    if isinstance(e, (StoreException, UnknownEntityType)):
        raise e
    logException(e)
    raise e


# ---------------------------------------------------------------------------
# Programmer errors
# ---------------------------------------------------------------------------
class UnknownEntityType(LookupError):
    """Raised for an entity type that was never registered."""

    def __init__(self, entityType: str):
        self.entityType = entityType
        super().__init__(f"Unknown entity type '{entityType}'")


# ---------------------------------------------------------------------------
# Exception Classes
# ---------------------------------------------------------------------------
class SchemaViolation(StoreException):
    def __init__(self, violations: List[Violation]):
        self.violations = violations
        self.field = violations[0].field if violations else ""
        self.reason = violations[0].reason if violations else ""
        super().__init__(f"Invalid {self.field}: {self.reason}")


class UniquenessViolation(StoreException):
    def __init__(self, field: str, conflictingId: Any):
        self.field = field
        self.conflictingId = conflictingId
        detail = f"For {field} a document already exists with id {conflictingId}"
        super().__init__(detail)


class TerminalStateViolation(StoreException):
    def __init__(self, entity: str, currentState: str):
        self.entity = entity
        self.currentState = currentState
        detail = f"The {entity} is in terminal state {currentState}"
        super().__init__(detail)


class InvalidStateTransition(StoreException):
    def __init__(self, entity: str, currentState: str, newState: str):
        self.entity = entity
        self.currentState = currentState
        self.newState = newState
        detail = f"The {entity} status cannot move from {currentState} to {newState}"
        super().__init__(detail)


class ImmutableField(StoreException):
    def __init__(self, entity: str, field: str):
        self.entity = entity
        self.field = field
        super().__init__(f"The {field} of {entity} cannot be modified")


class ImmutableDocument(StoreException):
    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"Documents of {entity} cannot be modified once created")


class UnknownDocument(StoreException):
    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"No {entity} with id {key}")


class WriteConflict(StoreException):
    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"Concurrent writes to {entity} {key} kept conflicting")
