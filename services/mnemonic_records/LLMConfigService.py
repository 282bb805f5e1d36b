import re

from services.mnemonic_records.MnemonicRecordService import ActivatableRecordService, parse_payload
from shared.helper.HelperMnemonic import build_base_mnemonic, fixed_width_code, generate_unique_mnemonic
from shared.models.llm_config import LLMConfig, LLMConfigCreate

DEFAULT_VERSION_CODE = "V10"


def version_code(version: str | None) -> str:
    """3 character version code: alphanumerics only, zero padded, ``V10`` when empty."""
    compact = re.sub(r"[^A-Z0-9]", "", (version or "").strip().upper())
    return fixed_width_code(compact or DEFAULT_VERSION_CODE, 3, filler="0")


def build_llm_mnemonic(model: str | None, name: str | None, version: str | None) -> str:
    """E.g. model "gpt-4o-mini", version "2025-06-01" -> ``GPT4_202``."""
    return build_base_mnemonic([fixed_width_code(model or name, 4), version_code(version)])


class LLMConfigService(ActivatableRecordService[LLMConfig]):
    """Per-owner LLM endpoint configurations. At most one is active."""

    collection = "llms"
    record_model = LLMConfig

    async def create(self, owner: str, payload: LLMConfigCreate | dict) -> LLMConfig:
        """
        Raises:
            InputValidationError: If model, version or api_url is missing.
        """
        data = parse_payload(LLMConfigCreate, payload)
        base = build_llm_mnemonic(data.model, data.name, data.version)
        return await self._insert_unique(
            owner,
            lambda taken: LLMConfig(mnemonic=generate_unique_mnemonic(base, taken), owner=owner, **data.model_dump()),
        )
