"""Pydantic models for tender searches (requested seniority + profiles for a tender)."""

import re
from typing import Any

from pydantic import BaseModel, field_validator

from shared.models.mnemonic_record import ActivatableRecord

_BULLET_SPLIT = re.compile(r"\r?\n|•")
_LEADING_LIST_CHARS = re.compile(r"^[\s*\-•]+")


def normalize_bulletish(value: Any) -> list[str]:
    """Accept a list or a bullet/newline separated string and return clean items."""
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    items = (_LEADING_LIST_CHARS.sub("", part).strip() for part in _BULLET_SPLIT.split(str(value)))
    return [item for item in items if item]


class TenderProfile(BaseModel):
    title: str = ""
    description: str = ""
    nature_of_tasks: list[str] = []
    knowledge_and_skills: list[str] = []

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return ("" if value is None else str(value)).strip()

    @field_validator("nature_of_tasks", "knowledge_and_skills", mode="before")
    @classmethod
    def _bullets(cls, value: Any) -> list[str]:
        return normalize_bulletish(value)


class TenderSearchCreate(BaseModel):
    """Payload for creating a tender search.

    ``profiles`` is the preferred form. The single-profile fields are accepted
    for older clients and used only when ``profiles`` is empty.
    """

    seniority: str
    requested_services: list[str]
    tender_id: str | None = None
    profiles: list[TenderProfile] = []
    profile_title: str | None = None
    profile_description: str | None = None
    nature_of_tasks: Any = None
    knowledge_and_skills: Any = None

    @field_validator("seniority")
    @classmethod
    def _seniority_required(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("seniority required")
        return value

    @field_validator("tender_id", mode="before")
    @classmethod
    def _tender_id_as_str(cls, value: Any) -> str | None:
        return None if value is None else str(value)

    def normalized_profiles(self) -> list[TenderProfile]:
        if self.profiles:
            return [p for p in self.profiles if p.title]
        if not (self.profile_title or "").strip():
            return []
        return [
            TenderProfile(
                title=self.profile_title,
                description=self.profile_description,
                nature_of_tasks=self.nature_of_tasks,
                knowledge_and_skills=self.knowledge_and_skills,
            )
        ]


class TenderSearch(ActivatableRecord):
    tender_id: str | None = None
    seniority: str
    profiles: list[TenderProfile]
    requested_services: list[str]
