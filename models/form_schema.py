"""Form schema models — server-supplied questionnaire definitions.

A schema document arrives as JSON (``form.form_schema``) and is loaded once
into frozen models.  Legacy spellings found in older documents are folded
into the canonical attributes here, so nothing downstream has to care:

- ``name`` → ``id``
- ``type`` → ``kind``
- ``weightage`` → ``weight`` (``weight`` wins when both are present)
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from errors import SchemaError
from models.base import FrozenCamelModel


class FieldKind(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SELECT = "select"


class FieldOption(FrozenCamelModel):
    """One selectable answer for a choice field."""

    value: str
    points: float = Field(default=0.0, ge=0)
    is_fail_option: bool = False  # selecting it fails the whole audit

    @model_validator(mode="before")
    @classmethod
    def _coerce_plain_values(cls, data: Any) -> Any:
        if isinstance(data, (str, int, float)) and not isinstance(data, bool):
            return {"value": str(data)}
        if isinstance(data, dict) and not isinstance(data.get("value", ""), str):
            data = {**data, "value": str(data["value"])}
        return data


class FieldDefinition(FrozenCamelModel):
    """A single question in a form."""

    id: str
    kind: FieldKind
    label: str = ""
    required: bool = False
    placeholder: str | None = None
    weight: float = Field(default=1.0, ge=0)
    options: tuple[FieldOption, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _normalize_legacy_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        if "id" not in data and "name" in data:
            data["id"] = data.pop("name")
        if isinstance(data.get("id"), int):
            data["id"] = str(data["id"])

        if "kind" not in data and "type" in data:
            data["kind"] = data.pop("type")
        if isinstance(data.get("kind"), str):
            data["kind"] = data["kind"].strip().lower()

        legacy_weight = data.pop("weightage", None)
        if data.get("weight") is None:
            data["weight"] = 1.0 if legacy_weight is None else legacy_weight

        if not data.get("label"):
            data["label"] = data.get("id", "")
        if data.get("options") is None:
            data["options"] = ()
        return data

    @property
    def is_scored(self) -> bool:
        return bool(self.options) or self.kind is FieldKind.BOOLEAN


class FormSchema(FrozenCamelModel):
    """Complete form definition. Immutable once loaded."""

    title: str = ""
    description: str | None = None
    fields: tuple[FieldDefinition, ...]

    @model_validator(mode="after")
    def _check_unique_ids(self) -> FormSchema:
        seen: set[str] = set()
        for field in self.fields:
            if field.id in seen:
                raise PydanticCustomError(
                    "duplicate_field_id",
                    "duplicate field id '{field_id}'",
                    {"field_id": field.id},
                )
            seen.add(field.id)
        return self


def load_form_schema(document: FormSchema | dict[str, Any] | str | bytes) -> FormSchema:
    """Load a schema document into a :class:`FormSchema`.

    Args:
        document: The decoded JSON object, or its raw JSON text.

    Raises:
        SchemaError: The document is not an object, has no ``fields``,
            repeats a field id, uses an unknown field kind, or carries a
            negative weight or option score.
    """
    if isinstance(document, FormSchema):
        return document
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as exc:
            raise SchemaError(f"form schema is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise SchemaError("form schema must be a JSON object")
    if document.get("fields") is None:
        raise SchemaError("form schema has no 'fields'")

    try:
        return FormSchema.model_validate(document)
    except PydanticValidationError as exc:
        message, field_id = _describe_error(exc, document)
        raise SchemaError(message, field_id=field_id) from exc


def schema_header(document: Any) -> tuple[str | None, str | None]:
    """``(title, description)`` of a raw schema document, without validating it.

    Listings only need the header, and one malformed form must not hide the
    others, so anything unreadable yields ``(None, None)``.
    """
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except json.JSONDecodeError:
            return None, None
    if not isinstance(document, dict):
        return None, None
    title = document.get("title")
    description = document.get("description")
    return (
        str(title) if title else None,
        str(description) if description else None,
    )


def _describe_error(
    exc: PydanticValidationError, document: dict[str, Any]
) -> tuple[str, str | None]:
    """Turn the first pydantic error into a readable message and field id."""
    first = exc.errors()[0]
    loc = first.get("loc", ())
    field_id: str | None = (first.get("ctx") or {}).get("field_id")

    if len(loc) >= 2 and loc[0] == "fields" and isinstance(loc[1], int):
        fields = document.get("fields") or []
        if loc[1] < len(fields) and isinstance(fields[loc[1]], dict):
            raw = fields[loc[1]]
            found = raw.get("id", raw.get("name"))
            field_id = str(found) if found is not None else None

    where = ".".join(str(part) for part in loc) or "schema"
    message = first.get("msg", "invalid value").removeprefix("Value error, ")
    if field_id:
        return f"field '{field_id}': {where}: {message}", field_id
    return f"{where}: {message}", field_id
