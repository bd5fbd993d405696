"""Custom exception hierarchy for the audit evaluation engine."""

from errors.exceptions import (
    AuditEngineError,
    NotFoundError,
    PersistenceError,
    SchemaError,
    StaleAuditError,
    ValidationError,
)

__all__ = [
    "AuditEngineError",
    "NotFoundError",
    "PersistenceError",
    "SchemaError",
    "StaleAuditError",
    "ValidationError",
]
