"""Pydantic models for the global technology taxonomy."""

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shared.models.cv import utc_now

_KEY_SEPARATORS = re.compile(r"[^a-z0-9]+")
_TOKEN_SEPARATORS = re.compile(r"[\s._\-]+")


def normalize_key(value: Any) -> str:
    """Slug a key or label: ``"Node.js"`` -> ``"node-js"``."""
    slug = _KEY_SEPARATORS.sub("-", str(value or "").strip().lower())
    return slug.strip("-")


def normalize_token(value: Any) -> str:
    """Normalise a free-text token for lookup: ``"Node.js"`` -> ``"nodejs"``."""
    return _TOKEN_SEPARATORS.sub("", str(value or "").casefold()).strip()


def _clean_strings(values: Any) -> list[str]:
    if not isinstance(values, (list, tuple, set)):
        return []
    return [str(v).strip() for v in values if str(v).strip()]


class TaxonomyEntry(BaseModel):
    key: str
    label: str
    category: str
    synonyms: list[str] = []
    implies: list[str] = []
    tags: list[str] = []
    vendor: str | None = None
    deprecated: bool = False
    notes: str = ""

    @model_validator(mode="before")
    @classmethod
    def _key_from_label(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data["key"] = data.get("key") or data.get("label")
            data["label"] = data.get("label") or data.get("key")
        return data

    @field_validator("key", mode="before")
    @classmethod
    def _key(cls, value: Any) -> str:
        return normalize_key(value)

    @field_validator("label", "notes", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return ("" if value is None else str(value)).strip()

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, value: Any) -> str:
        return ("" if value is None else str(value)).strip().lower()

    @field_validator("synonyms", "tags", mode="before")
    @classmethod
    def _strings(cls, value: Any) -> list[str]:
        return _clean_strings(value)

    @field_validator("implies", mode="before")
    @classmethod
    def _implies(cls, value: Any) -> list[str]:
        return [k for k in (normalize_key(v) for v in _clean_strings(value)) if k]

    @field_validator("deprecated", mode="before")
    @classmethod
    def _deprecated(cls, value: Any) -> bool:
        return bool(value)

    @model_validator(mode="after")
    def _required(self) -> "TaxonomyEntry":
        if not self.key or not self.label or not self.category:
            raise ValueError("key/label/category required")
        return self


class TaxonomyDocument(BaseModel):
    """The single persisted taxonomy document. The timestamp is stored as ``updatedAt``."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = 1
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")
    entries: list[TaxonomyEntry] = []
