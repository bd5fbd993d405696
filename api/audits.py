"""Audits API — history, load-for-edit and resubmission.

Endpoints:
- ``GET /api/audits``             — caller's history with dashboard summary
- ``GET /api/audits/{audit_id}``  — load an owned audit for editing
- ``PUT /api/audits/{audit_id}``  — re-evaluate and update an owned audit
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import Caller, get_caller, get_lifecycle_manager, to_http_error
from errors import AuditEngineError
from models.audit import AuditRecord
from models.request import HistoryResponse, ResubmitRequest
from services.audit_history import list_history, summarize_history, to_history_item
from services.audit_lifecycle import AuditLifecycleManager
from services.audit_store import UNSET, AuditStore, get_audit_store

router = APIRouter(prefix="/api/audits", tags=["audits"])


@router.get("", response_model=HistoryResponse)
async def get_history(
    caller: Caller = Depends(get_caller),
    store: AuditStore = Depends(get_audit_store),
):
    try:
        records = await list_history(store, caller.user_id, caller.tenant_id)
    except AuditEngineError as exc:
        raise to_http_error(exc) from exc
    return HistoryResponse(
        summary=summarize_history(records),
        items=[to_history_item(r) for r in records],
    )


@router.get("/{audit_id}", response_model=AuditRecord)
async def load_audit(
    audit_id: str,
    caller: Caller = Depends(get_caller),
    manager: AuditLifecycleManager = Depends(get_lifecycle_manager),
):
    try:
        return await manager.load_for_edit(audit_id, caller.user_id)
    except AuditEngineError as exc:
        raise to_http_error(exc) from exc


@router.put("/{audit_id}", response_model=AuditRecord)
async def resubmit_audit(
    audit_id: str,
    req: ResubmitRequest,
    caller: Caller = Depends(get_caller),
    manager: AuditLifecycleManager = Depends(get_lifecycle_manager),
):
    expected = (
        req.expected_last_edit_at
        if "expected_last_edit_at" in req.model_fields_set
        else UNSET
    )
    try:
        return await manager.resubmit(
            audit_id,
            req.answers,
            req.comments,
            user_id=caller.user_id,
            expected_last_edit_at=expected,
        )
    except AuditEngineError as exc:
        raise to_http_error(exc) from exc
