"""Pydantic models for stored prompts."""

from pydantic import BaseModel, field_validator

from shared.models.mnemonic_record import MnemonicRecord


def _clean_tags(tags: list[str] | None) -> list[str]:
    return [str(t).strip() for t in (tags or []) if str(t).strip()]


class PromptCreate(BaseModel):
    mnemonic: str
    text: str
    title: str = ""
    tags: list[str] = []

    @field_validator("text", "title")
    @classmethod
    def _strip(cls, value: str) -> str:
        return (value or "").strip()

    @field_validator("tags")
    @classmethod
    def _tags(cls, value: list[str]) -> list[str]:
        return _clean_tags(value)


class PromptUpdate(BaseModel):
    """Partial update. ``new_mnemonic`` renames the prompt."""

    text: str | None = None
    title: str | None = None
    tags: list[str] | None = None
    new_mnemonic: str | None = None

    @field_validator("tags")
    @classmethod
    def _tags(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else _clean_tags(value)


class Prompt(MnemonicRecord):
    title: str = ""
    text: str
    tags: list[str] = []
