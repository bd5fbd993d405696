"""Shared route dependencies — caller identity, engine wiring, error mapping."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException

from errors import (
    AuditEngineError,
    NotFoundError,
    PersistenceError,
    SchemaError,
    StaleAuditError,
    ValidationError,
)
from services.audit_lifecycle import AuditLifecycleManager
from services.audit_store import AuditStore, get_audit_store

logger = logging.getLogger(__name__)


@dataclass
class Caller:
    """The authenticated user, as passed in by the auth layer."""

    user_id: str
    tenant_id: str | None = None


def get_caller(
    x_user_id: str = Header(default=""),
    x_tenant_id: str = Header(default=""),
) -> Caller:
    user_id = x_user_id.strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return Caller(user_id=user_id, tenant_id=x_tenant_id.strip() or None)


def get_lifecycle_manager(
    store: AuditStore = Depends(get_audit_store),
) -> AuditLifecycleManager:
    return AuditLifecycleManager(store)


def to_http_error(exc: AuditEngineError) -> HTTPException:
    """Translate an engine error into the HTTP error for its stage."""
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=422,
            detail={"message": exc.message, "errors": exc.errors},
        )
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=exc.message)
    if isinstance(exc, StaleAuditError):
        return HTTPException(status_code=409, detail=exc.message)
    if isinstance(exc, PersistenceError):
        logger.warning("Persistence failure: %s", exc.message)
        return HTTPException(
            status_code=502,
            detail={"message": exc.message, "outcomeUnknown": exc.outcome_unknown},
        )
    if isinstance(exc, SchemaError):
        logger.error("Malformed form schema: %s", exc.message)
        return HTTPException(status_code=500, detail=f"Malformed form schema: {exc.message}")
    logger.exception("Unhandled audit engine error")
    return HTTPException(status_code=500, detail=exc.message)
