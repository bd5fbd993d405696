"""Domain-specific exceptions for the audit evaluation engine.

Every failure in the pipeline surfaces as one of these, tagged with the
stage that produced it (``schema``, ``validation``, ``lookup`` or
``persistence``) so the API layer and tests can tell exactly which step
failed.
"""

from __future__ import annotations


class AuditEngineError(Exception):
    """Base class for audit engine errors."""

    stage = "engine"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class SchemaError(AuditEngineError):
    """A form schema document is malformed or inconsistent.

    Raised while loading a schema (missing ``fields``, duplicate field ids,
    unknown field kind, negative weights or points).  Fatal to the current
    operation and never retried.
    """

    stage = "schema"

    def __init__(self, message: str, field_id: str | None = None) -> None:
        self.field_id = field_id
        super().__init__(message)


class ValidationError(AuditEngineError):
    """Required answers are missing at submission time.

    Carries the ``{field_id: message}`` mapping produced by the field
    validator so the caller can re-prompt the user.
    """

    stage = "validation"

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        count = len(self.errors)
        super().__init__(
            f"{count} required field{'s' if count != 1 else ''} missing"
        )


class NotFoundError(AuditEngineError):
    """A form or audit record does not exist, or is not owned by the caller."""

    stage = "lookup"

    def __init__(self, entity: str, entity_id: object) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class PersistenceError(AuditEngineError):
    """The store rejected or failed an insert, update or fetch.

    ``outcome_unknown`` is set when a write timed out or lost its connection:
    the record may or may not have been written, and the engine does not
    retry on the caller's behalf.
    """

    stage = "persistence"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        outcome_unknown: bool = False,
    ) -> None:
        self.status_code = status_code
        self.outcome_unknown = outcome_unknown
        super().__init__(message)


class StaleAuditError(PersistenceError):
    """An update lost a race: the record changed since it was loaded."""

    def __init__(self, record_id: object) -> None:
        self.record_id = record_id
        super().__init__(
            f"audit '{record_id}' was modified by another submission",
            status_code=409,
        )
