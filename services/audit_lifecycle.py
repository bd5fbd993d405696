"""Audit lifecycle — evaluate an answer set and persist the outcome.

Pipeline for every submission:

    validate → detect_auto_fail → score → classify → insert | update

Everything up to the write is synchronous and pure.  The write is the only
suspending step and happens exactly once per successful call; a validation
failure performs no write at all.

State transitions over ``AuditRecord.status``:

- (none) → pending | completed    first submission (insert)
- pending | completed → pending | completed    resubmission (update, same
  id, ``last_edit_at`` set, ``created_at`` untouched)

Callers must not run two submissions for the same record concurrently;
pass ``expected_last_edit_at`` to have the store reject a lost race.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from errors import ValidationError
from models.audit import AuditPatch, AuditRecord, Evaluation, NewAuditRecord
from models.form_schema import FormSchema
from services.audit_store import UNSET, AuditStore, utc_now
from services.auto_fail import detect_auto_fail
from services.field_validator import validate
from services.form_fields import coerce_answers
from services.result_classifier import classify, round_stored
from services.scoring import score

logger = logging.getLogger(__name__)


def evaluate(schema: FormSchema, answers: dict[str, Any]) -> Evaluation:
    """Run the pure part of the pipeline.

    Raises:
        ValidationError: A required answer is missing.
    """
    errors = validate(schema, answers)
    if errors:
        raise ValidationError(errors)

    auto_fail = detect_auto_fail(schema, answers)
    result = score(schema, answers)
    return Evaluation(
        score=result,
        auto_fail=auto_fail,
        classification=classify(result, auto_fail),
    )


class AuditLifecycleManager:
    """Creates and re-evaluates audit records through an :class:`AuditStore`."""

    def __init__(
        self,
        store: AuditStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._clock = clock

    async def submit(
        self,
        schema: FormSchema,
        answers: dict[str, Any],
        comments: str | None = None,
        existing_record_id: int | str | None = None,
        *,
        form_id: int | str,
        user_id: str,
        tenant_id: str | None = None,
        expected_last_edit_at: datetime | None = UNSET,
    ) -> AuditRecord:
        """Evaluate *answers* and write the result.

        With *existing_record_id* the record owned by *user_id* is updated in
        place; otherwise a new record is inserted for ``(form_id, user_id)``.

        Raises:
            ValueError: *user_id* is empty.
            ValidationError: Required answers are missing; nothing is written.
            NotFoundError: The record to update does not exist or is not owned
                by *user_id*.
            PersistenceError: The store rejected or failed the write.
        """
        if not user_id:
            raise ValueError("user_id is required to submit an audit")

        snapshot = dict(answers)
        try:
            evaluation = evaluate(schema, snapshot)
        except ValidationError as exc:
            logger.info(
                "Audit submission rejected for form %s user %s — missing: %s",
                form_id, user_id, ", ".join(exc.errors),
            )
            raise

        verdict = evaluation.classification
        marks = round_stored(verdict.marks)
        percentage = round_stored(verdict.percentage)

        if existing_record_id is not None:
            record = await self._store.update_audit(
                existing_record_id,
                user_id,
                AuditPatch(
                    status=verdict.status,
                    result=verdict.result,
                    marks=marks,
                    percentage=percentage,
                    comments=comments,
                    answers=snapshot,
                    last_edit_at=self._clock(),
                ),
                expected_last_edit_at=expected_last_edit_at,
            )
            action = "updated"
        else:
            record = await self._store.insert_audit(
                NewAuditRecord(
                    form_id=form_id,
                    user_id=user_id,
                    tenant_id=tenant_id,
                    status=verdict.status,
                    result=verdict.result,
                    marks=marks,
                    percentage=percentage,
                    comments=comments,
                    answers=snapshot,
                )
            )
            action = "inserted"

        logger.info(
            "Audit %s %s for form %s user %s — result=%s status=%s %.2f%%%s",
            record.id, action, form_id, user_id,
            verdict.result.value, verdict.status.value, percentage,
            f" (auto-fail: {evaluation.auto_fail.reason})" if evaluation.auto_fail.triggered else "",
        )
        return record

    async def load_for_edit(self, record_id: int | str, user_id: str) -> AuditRecord:
        """Fetch an audit the caller owns, for re-entry into the form.

        Raises:
            NotFoundError: No such record for this user.  Callers treat this
                as "cannot edit", never as "create new".
        """
        if not user_id:
            raise ValueError("user_id is required to load an audit")
        return await self._store.fetch_audit(record_id, user_id)

    async def submit_form(
        self,
        form_id: int | str,
        answers: dict[str, Any],
        comments: str | None = None,
        *,
        user_id: str,
        tenant_id: str | None = None,
    ) -> AuditRecord:
        """Fetch the form's schema and submit a new audit for it.

        *answers* is raw client input; it is coerced per field kind first.
        """
        schema = await self._store.fetch_form(form_id)
        return await self.submit(
            schema,
            coerce_answers(schema, answers),
            comments,
            form_id=form_id,
            user_id=user_id,
            tenant_id=tenant_id,
        )

    async def resubmit(
        self,
        record_id: int | str,
        answers: dict[str, Any],
        comments: str | None = None,
        *,
        user_id: str,
        expected_last_edit_at: datetime | None = UNSET,
    ) -> AuditRecord:
        """Re-evaluate an existing audit against its form and update it.

        *answers* is raw client input; it is coerced per field kind first.
        """
        existing = await self.load_for_edit(record_id, user_id)
        schema = await self._store.fetch_form(existing.form_id)
        return await self.submit(
            schema,
            coerce_answers(schema, answers),
            comments,
            existing_record_id=existing.id,
            form_id=existing.form_id,
            user_id=user_id,
            tenant_id=existing.tenant_id,
            expected_last_edit_at=expected_last_edit_at,
        )
