"""Compliance API — pick a compliance record, then one of its forms.

Endpoints:
- ``GET /api/compliance``                      — every compliance record
- ``GET /api/compliance/{compliance_id}/forms`` — forms attached to a record
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import to_http_error
from errors import AuditEngineError
from models.compliance import ComplianceRecord, FormSummary
from services.audit_store import AuditStore, get_audit_store

router = APIRouter(prefix="/api/compliance", tags=["compliance"])


@router.get("", response_model=list[ComplianceRecord])
async def list_compliance(store: AuditStore = Depends(get_audit_store)):
    try:
        return await store.list_compliance()
    except AuditEngineError as exc:
        raise to_http_error(exc) from exc


@router.get("/{compliance_id}/forms", response_model=list[FormSummary])
async def list_compliance_forms(
    compliance_id: str,
    store: AuditStore = Depends(get_audit_store),
):
    try:
        return await store.list_forms(compliance_id)
    except AuditEngineError as exc:
        raise to_http_error(exc) from exc
