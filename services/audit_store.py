"""Audit persistence — abstract store plus in-memory and Supabase bindings.

The engine needs seven calls: list compliance records, list the forms of a
record, fetch a form schema, fetch an audit owned by a user, insert an
audit, update an audit owned by a user, and list a user's audits.
``InMemoryAuditStore`` backs tests and local runs;
``SupabaseAuditStore`` talks to the PostgREST API over ``httpx`` with:

- retry with exponential backoff on reads (network / 5xx errors)
- no retry on writes: a lost insert response may still have created a row
- request timing logs
- connection-pool lifecycle tied to the FastAPI lifespan
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from config.settings import get_settings
from errors import NotFoundError, PersistenceError, StaleAuditError
from models.audit import AuditPatch, AuditRecord, NewAuditRecord
from models.compliance import ComplianceRecord, FormSummary
from models.form_schema import FormSchema, load_form_schema, schema_header

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Retry defaults (reads only)
MAX_RETRIES = 3
RETRY_BASE_DELAY = 0.5  # seconds, doubles each attempt


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()
"""Marker for "no precondition"; ``None`` means "expect never edited"."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _id_key(value: int | str) -> tuple[int, int, str]:
    """Sort key putting numeric ids in numeric order before other ids."""
    text = str(value)
    return (0, int(text), "") if text.isdigit() else (1, 0, text)


class AuditStore(ABC):
    """Abstract audit store — implement for different backends."""

    async def start(self) -> None:
        """Acquire connections. No-op by default."""

    async def close(self) -> None:
        """Release connections. No-op by default."""

    @abstractmethod
    async def fetch_form(self, form_id: int | str) -> FormSchema:
        """Return the form's schema or raise :class:`NotFoundError`."""

    @abstractmethod
    async def fetch_audit(self, record_id: int | str, user_id: str) -> AuditRecord:
        """Return the audit owned by *user_id* or raise :class:`NotFoundError`."""

    @abstractmethod
    async def insert_audit(self, record: NewAuditRecord) -> AuditRecord:
        """Write a new audit and return it with its id and ``created_at``."""

    @abstractmethod
    async def update_audit(
        self,
        record_id: int | str,
        user_id: str,
        patch: AuditPatch,
        expected_last_edit_at: datetime | None = UNSET,
    ) -> AuditRecord:
        """Patch the audit owned by *user_id*.

        When *expected_last_edit_at* is given, the write only applies if the
        stored ``last_edit_at`` still equals it; otherwise
        :class:`StaleAuditError` is raised.
        """

    @abstractmethod
    async def list_audits(
        self, user_id: str, tenant_id: str | None = None
    ) -> list[AuditRecord]:
        """Return the user's audits, newest first."""

    @abstractmethod
    async def list_compliance(self) -> list[ComplianceRecord]:
        """Return every compliance record, in id order."""

    @abstractmethod
    async def list_forms(self, compliance_id: int | str) -> list[FormSummary]:
        """Return the forms attached to a compliance record, in id order.

        An unknown compliance id yields an empty list.
        """


# ── In-memory ────────────────────────────────────────────────


class InMemoryAuditStore(AuditStore):
    """Thread-safe in-memory store.

    Rows are kept in their serialized (JSON) form and re-validated on the way
    out, so callers never share mutable state with the store.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._lock = threading.RLock()
        self._clock = clock
        self._compliance: dict[str, ComplianceRecord] = {}
        self._forms: dict[str, FormSchema] = {}
        self._form_rows: dict[str, dict[str, Any]] = {}
        self._audits: dict[str, dict[str, Any]] = {}
        self._next_id = 1
        self.insert_count = 0
        self.update_count = 0

    def add_compliance(
        self,
        compliance_id: int | str,
        name: str,
        status: str | None = None,
        description: str | None = None,
    ) -> ComplianceRecord:
        """Register a compliance record that forms can be attached to."""
        record = ComplianceRecord(
            id=compliance_id, name=name, status=status, description=description,
        )
        with self._lock:
            self._compliance[str(compliance_id)] = record
        return record

    def add_form(
        self,
        form_id: int | str,
        document: FormSchema | dict[str, Any] | str,
        compliance_id: int | str | None = None,
        status: str | None = None,
    ) -> FormSchema:
        """Register a form schema (validated on the way in)."""
        schema = load_form_schema(document)
        with self._lock:
            self._forms[str(form_id)] = schema
            self._form_rows[str(form_id)] = {
                "id": form_id,
                "compliance_id": compliance_id,
                "status": status,
            }
        return schema

    async def list_compliance(self) -> list[ComplianceRecord]:
        with self._lock:
            records = list(self._compliance.values())
        return sorted(records, key=lambda r: _id_key(r.id))

    async def list_forms(self, compliance_id: int | str) -> list[FormSummary]:
        with self._lock:
            summaries = [
                FormSummary(
                    **meta,
                    title=self._forms[form_id].title,
                    description=self._forms[form_id].description,
                )
                for form_id, meta in self._form_rows.items()
                if meta["compliance_id"] is not None
                and str(meta["compliance_id"]) == str(compliance_id)
            ]
        return sorted(summaries, key=lambda f: _id_key(f.id))

    async def fetch_form(self, form_id: int | str) -> FormSchema:
        with self._lock:
            schema = self._forms.get(str(form_id))
        if schema is None:
            raise NotFoundError("form", form_id)
        return schema

    async def fetch_audit(self, record_id: int | str, user_id: str) -> AuditRecord:
        with self._lock:
            row = self._owned_row(record_id, user_id)
            return AuditRecord.model_validate(row)

    async def insert_audit(self, record: NewAuditRecord) -> AuditRecord:
        with self._lock:
            row = record.model_dump(mode="json")
            row["id"] = self._next_id
            row["created_at"] = self._clock().isoformat()
            row["last_edit_at"] = None
            self._next_id += 1
            self._audits[str(row["id"])] = row
            self.insert_count += 1
            return AuditRecord.model_validate(row)

    async def update_audit(
        self,
        record_id: int | str,
        user_id: str,
        patch: AuditPatch,
        expected_last_edit_at: datetime | None = UNSET,
    ) -> AuditRecord:
        with self._lock:
            row = self._owned_row(record_id, user_id)
            if expected_last_edit_at is not UNSET:
                current = AuditRecord.model_validate(row).last_edit_at
                if current != expected_last_edit_at:
                    raise StaleAuditError(record_id)
            updated = {**row, **patch.model_dump(mode="json")}
            self._audits[str(record_id)] = updated
            self.update_count += 1
            return AuditRecord.model_validate(updated)

    async def list_audits(
        self, user_id: str, tenant_id: str | None = None
    ) -> list[AuditRecord]:
        with self._lock:
            records = [
                AuditRecord.model_validate({**row, "form_title": self._form_title(row["form_id"])})
                for row in self._audits.values()
                if row["user_id"] == user_id
                and (tenant_id is None or row.get("tenant_id") == tenant_id)
            ]
        return sorted(records, key=lambda r: (r.created_at, _id_key(r.id)), reverse=True)

    def _form_title(self, form_id: int | str) -> str | None:
        schema = self._forms.get(str(form_id))
        if schema is None or not schema.title:
            return None
        return schema.title

    def _owned_row(self, record_id: int | str, user_id: str) -> dict[str, Any]:
        row = self._audits.get(str(record_id))
        if row is None or row["user_id"] != user_id:
            raise NotFoundError("audit", record_id)
        return row


# ── Supabase / PostgREST ─────────────────────────────────────


class SupabaseAuditStore(AuditStore):
    """Async PostgREST client for the ``compliance``, ``form`` and ``audit`` tables."""

    def __init__(self) -> None:
        settings = get_settings()
        self._base_url = f"{settings.supabase_url.rstrip('/')}/rest/v1"
        self._api_key = settings.supabase_key
        self._timeout = settings.supabase_timeout
        self._form_table = settings.supabase_form_table
        self._audit_table = settings.supabase_audit_table
        self._compliance_table = settings.supabase_compliance_table
        self._http: httpx.AsyncClient | None = None

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Create the underlying ``httpx.AsyncClient`` connection pool."""
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers=self._auth_headers(),
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30,
            ),
        )
        logger.info("SupabaseAuditStore started — base_url=%s", self._base_url)

    async def close(self) -> None:
        """Gracefully close the connection pool."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.info("SupabaseAuditStore closed")

    # -- store API -----------------------------------------------------------

    async def fetch_form(self, form_id: int | str) -> FormSchema:
        rows = await self._read(
            f"/{self._form_table}",
            params={"id": f"eq.{form_id}", "select": "id,form_schema"},
        )
        if not rows:
            raise NotFoundError("form", form_id)
        return load_form_schema(rows[0].get("form_schema"))

    async def fetch_audit(self, record_id: int | str, user_id: str) -> AuditRecord:
        rows = await self._read(
            f"/{self._audit_table}",
            params={"id": f"eq.{record_id}", "user_id": f"eq.{user_id}", "select": "*"},
        )
        if not rows:
            raise NotFoundError("audit", record_id)
        return self._to_record(rows[0])

    async def insert_audit(self, record: NewAuditRecord) -> AuditRecord:
        rows = await self._write(
            "POST",
            f"/{self._audit_table}",
            json_body=record.model_dump(mode="json"),
        )
        if not rows:
            raise PersistenceError("insert returned no row")
        return self._to_record(rows[0])

    async def update_audit(
        self,
        record_id: int | str,
        user_id: str,
        patch: AuditPatch,
        expected_last_edit_at: datetime | None = UNSET,
    ) -> AuditRecord:
        params = {"id": f"eq.{record_id}", "user_id": f"eq.{user_id}"}
        if expected_last_edit_at is not UNSET:
            params["last_edit_at"] = (
                "is.null" if expected_last_edit_at is None
                else f"eq.{expected_last_edit_at.isoformat()}"
            )

        rows = await self._write(
            "PATCH",
            f"/{self._audit_table}",
            params=params,
            json_body=patch.model_dump(mode="json"),
        )
        if rows:
            return self._to_record(rows[0])

        # Nothing matched: either the record is gone / not ours, or the
        # precondition failed.
        if expected_last_edit_at is not UNSET:
            await self.fetch_audit(record_id, user_id)
            raise StaleAuditError(record_id)
        raise NotFoundError("audit", record_id)

    async def list_audits(
        self, user_id: str, tenant_id: str | None = None
    ) -> list[AuditRecord]:
        params = {
            "user_id": f"eq.{user_id}",
            "select": "*,form:form_id(form_schema)",
            "order": "created_at.desc",
        }
        if tenant_id is not None:
            params["tenant_id"] = f"eq.{tenant_id}"
        rows = await self._read(f"/{self._audit_table}", params=params)
        records = []
        for row in rows:
            form = row.pop("form", None) or {}
            title, _ = schema_header(form.get("form_schema"))
            records.append(self._to_record({**row, "form_title": title}))
        return records

    async def list_compliance(self) -> list[ComplianceRecord]:
        rows = await self._read(
            f"/{self._compliance_table}",
            params={"select": "*", "order": "id.asc"},
        )
        return [self._validate_row(ComplianceRecord, row, "compliance") for row in rows]

    async def list_forms(self, compliance_id: int | str) -> list[FormSummary]:
        rows = await self._read(
            f"/{self._form_table}",
            params={
                "compliance_id": f"eq.{compliance_id}",
                "select": "id,compliance_id,form_schema,status",
                "order": "id.asc",
            },
        )
        summaries = []
        for row in rows:
            title, description = schema_header(row.get("form_schema"))
            summaries.append(self._validate_row(
                FormSummary,
                {
                    "id": row.get("id"),
                    "compliance_id": row.get("compliance_id"),
                    "title": title or "",
                    "description": description,
                    "status": row.get("status"),
                },
                "form",
            ))
        return summaries

    # -- transport -----------------------------------------------------------

    async def _read(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """GET with exponential-backoff retry on network errors and 5xx."""
        client = self._ensure_started()
        last_exc: PersistenceError | None = None

        for attempt in range(1, MAX_RETRIES + 1):
            t0 = time.monotonic()
            try:
                response = await client.get(path, params=params)
            except httpx.TransportError as exc:
                elapsed_ms = (time.monotonic() - t0) * 1000
                logger.warning(
                    "GET %s → network error (%.0fms): %s [attempt %d/%d]",
                    path, elapsed_ms, exc, attempt, MAX_RETRIES,
                )
                last_exc = PersistenceError(f"GET {path} failed: {exc}")
            else:
                elapsed_ms = (time.monotonic() - t0) * 1000
                logger.info("GET %s → %d (%.0fms)", path, response.status_code, elapsed_ms)
                if response.status_code < 500:
                    return self._rows(response)
                last_exc = self._error(response)

            if attempt < MAX_RETRIES:
                delay = RETRY_BASE_DELAY * (2 ** (attempt - 1))
                logger.warning(
                    "GET %s → retry %d/%d in %.1fs", path, attempt, MAX_RETRIES, delay,
                )
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def _write(
        self,
        method: str,
        path: str,
        json_body: dict[str, Any],
        params: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Single-attempt POST/PATCH. A transport failure leaves the outcome unknown."""
        client = self._ensure_started()
        t0 = time.monotonic()
        try:
            response = await client.request(
                method,
                path,
                params=params,
                json=json_body,
                headers={"Prefer": "return=representation"},
            )
        except httpx.TransportError as exc:
            elapsed_ms = (time.monotonic() - t0) * 1000
            logger.warning("%s %s → network error (%.0fms): %s", method, path, elapsed_ms, exc)
            raise PersistenceError(
                f"{method} {path} did not complete: {exc}",
                outcome_unknown=True,
            ) from exc

        elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info("%s %s → %d (%.0fms)", method, path, response.status_code, elapsed_ms)
        return self._rows(response)

    def _rows(self, response: httpx.Response) -> list[dict[str, Any]]:
        if response.status_code >= 400:
            raise self._error(response)
        if not response.text:
            return []
        body = response.json()
        return body if isinstance(body, list) else [body]

    @staticmethod
    def _error(response: httpx.Response) -> PersistenceError:
        detail = response.text[:500] if response.text else f"HTTP {response.status_code}"
        return PersistenceError(
            f"Supabase {response.status_code}: {detail}",
            status_code=response.status_code,
        )

    @classmethod
    def _to_record(cls, row: dict[str, Any]) -> AuditRecord:
        return cls._validate_row(AuditRecord, row, "audit")

    @staticmethod
    def _validate_row(model: type[ModelT], row: dict[str, Any], entity: str) -> ModelT:
        try:
            return model.model_validate(row)
        except PydanticValidationError as exc:
            raise PersistenceError(f"malformed {entity} row {row.get('id')!r}: {exc}") from exc

    def _auth_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _ensure_started(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("SupabaseAuditStore not started — call await store.start() first")
        return self._http


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------

_store: AuditStore | None = None


def get_audit_store() -> AuditStore:
    """Return the module-level store singleton, chosen by ``audit_store_type``."""
    global _store
    if _store is None:
        store_type = get_settings().audit_store_type.lower()
        if store_type == "supabase":
            _store = SupabaseAuditStore()
        elif store_type == "memory":
            _store = InMemoryAuditStore()
        else:
            raise ValueError(f"Unknown audit_store_type: {store_type!r}")
        logger.info("Audit store: %s", type(_store).__name__)
    return _store
