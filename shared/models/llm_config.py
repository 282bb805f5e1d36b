"""Pydantic models for per-owner LLM endpoint configurations."""

from pydantic import BaseModel, field_validator

from shared.models.mnemonic_record import ActivatableRecord


def mask_api_key(key: str | None) -> str | None:
    """Mask a secret for display: first 3 + last 4 characters, or ``****`` for short keys."""
    if not key:
        return None
    if len(key) <= 8:
        return "****"
    return f"{key[:3]}…{key[-4:]}"


class LLMConfigCreate(BaseModel):
    """Payload for creating an LLM config. model, version and api_url are required."""

    name: str | None = None
    model: str
    version: str
    api_url: str
    api_key: str | None = None
    headers: dict[str, str] = {}
    temperature: float = 0
    max_tokens: int = 1024
    timeout_ms: int = 30000

    @field_validator("model", "version", "api_url")
    @classmethod
    def _required(cls, value: str, info) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError(f"{info.field_name} required")
        return value

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str | None:
        value = (value or "").strip()
        return value or None


class LLMConfig(ActivatableRecord):
    name: str | None = None
    model: str
    version: str
    api_url: str
    api_key: str | None = None
    headers: dict[str, str] = {}
    temperature: float = 0
    max_tokens: int = 1024
    timeout_ms: int = 30000

    def to_public(self) -> dict:
        """JSON view with the API key masked."""
        data = self.model_dump(mode="json")
        data["api_key"] = mask_api_key(self.api_key)
        return data
