"""Forms API — schema retrieval, dry-run evaluation and first submission.

Endpoints:
- ``GET  /api/forms/{form_id}``          — schema plus blank answer set
- ``POST /api/forms/{form_id}/evaluate`` — validate and score without saving
- ``POST /api/forms/{form_id}/audits``   — submit a new audit
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from api.deps import Caller, get_caller, get_lifecycle_manager, to_http_error
from errors import AuditEngineError, ValidationError
from models.audit import AuditRecord
from models.request import AnswersRequest, EvaluateResponse, FormResponse
from services.audit_lifecycle import AuditLifecycleManager, evaluate
from services.audit_store import AuditStore, get_audit_store
from services.form_fields import coerce_answers, initial_answers
from services.result_classifier import format_result

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/forms", tags=["forms"])


@router.get("/{form_id}", response_model=FormResponse)
async def get_form(form_id: str, store: AuditStore = Depends(get_audit_store)):
    try:
        schema = await store.fetch_form(form_id)
    except AuditEngineError as exc:
        raise to_http_error(exc) from exc
    return FormResponse(form_id=form_id, schema_=schema, initial_answers=initial_answers(schema))


@router.post("/{form_id}/evaluate", response_model=EvaluateResponse)
async def evaluate_form(
    form_id: str,
    req: AnswersRequest,
    store: AuditStore = Depends(get_audit_store),
):
    """Run the evaluation pipeline and report the outcome. Nothing is saved."""
    try:
        schema = await store.fetch_form(form_id)
    except AuditEngineError as exc:
        raise to_http_error(exc) from exc

    answers = coerce_answers(schema, req.answers)
    try:
        evaluation = evaluate(schema, answers)
    except ValidationError as exc:
        logger.info("Dry run on form %s: %s", form_id, exc.message)
        return EvaluateResponse(valid=False, errors=exc.errors)

    return EvaluateResponse(
        valid=True,
        score=evaluation.score,
        auto_fail=evaluation.auto_fail,
        classification=evaluation.classification,
        display_result=format_result(evaluation.classification.result),
    )


@router.post("/{form_id}/audits", response_model=AuditRecord, status_code=201)
async def submit_audit(
    form_id: str,
    req: AnswersRequest,
    caller: Caller = Depends(get_caller),
    manager: AuditLifecycleManager = Depends(get_lifecycle_manager),
):
    try:
        return await manager.submit_form(
            form_id,
            req.answers,
            req.comments,
            user_id=caller.user_id,
            tenant_id=caller.tenant_id,
        )
    except AuditEngineError as exc:
        raise to_http_error(exc) from exc
