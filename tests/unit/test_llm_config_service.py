"""Unit tests for LLMConfigService."""

import pytest

from services.mnemonic_records.LLMConfigService import LLMConfigService, build_llm_mnemonic, version_code
from shared.exceptions.ServiceErrors import InputValidationError, RecordNotFoundError
from shared.models.llm_config import mask_api_key


def _payload(**overrides) -> dict:
    payload = {
        "name": "Main",
        "model": "gpt-4o-mini",
        "version": "2025-06-01",
        "api_url": "https://api.openai.com/v1",
        "api_key": "sk-abcdefghijkl",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def service(helper_config, store) -> LLMConfigService:
    return LLMConfigService(helper_config=helper_config, store=store)


class TestMnemonic:
    def test_model_and_version_codes(self):
        assert build_llm_mnemonic("gpt-4o-mini", None, "2025-06-01") == "GPT4_202"

    def test_name_used_when_model_empty(self):
        assert build_llm_mnemonic("", "my llm", "1") == "MYLL_100"

    @pytest.mark.parametrize("version,expected", [("", "V10"), ("v2", "V20"), ("1.5.3", "153")])
    def test_version_code(self, version, expected):
        assert version_code(version) == expected


class TestCreate:
    async def test_create_and_collision_suffix(self, service):
        first = await service.create("u1", _payload())
        second = await service.create("u1", _payload(name="Backup"))
        assert (first.mnemonic, second.mnemonic) == ("GPT4_202", "GPT4_2022")
        assert [c.mnemonic for c in await service.list_all("u1")] == ["GPT4_2022", "GPT4_202"]

    async def test_owners_have_separate_namespaces(self, service):
        await service.create("u1", _payload())
        assert (await service.create("u2", _payload())).mnemonic == "GPT4_202"

    @pytest.mark.parametrize("missing", ["model", "version", "api_url"])
    async def test_required_fields(self, service, missing):
        with pytest.raises(InputValidationError):
            await service.create("u1", _payload(**{missing: "  "}))

    async def test_new_config_is_inactive(self, service):
        created = await service.create("u1", _payload())
        assert created.active is False
        assert await service.get_active("u1") is None


class TestActivation:
    async def test_activation_is_exclusive(self, service):
        a = await service.create("u1", _payload())
        b = await service.create("u1", _payload())
        await service.set_active("u1", a.mnemonic)
        await service.set_active("u1", b.mnemonic)

        flags = {c.mnemonic: c.active for c in await service.list_all("u1")}
        assert flags == {a.mnemonic: False, b.mnemonic: True}
        assert (await service.get_active("u1")).mnemonic == b.mnemonic

    async def test_deactivate(self, service):
        a = await service.create("u1", _payload())
        await service.set_active("u1", a.mnemonic)
        updated = await service.set_active("u1", a.mnemonic, active=False)
        assert updated.active is False
        assert await service.get_active("u1") is None

    async def test_unknown_mnemonic(self, service):
        with pytest.raises(RecordNotFoundError):
            await service.set_active("u1", "NOPE_000")


class TestDeleteAndMasking:
    async def test_delete(self, service):
        created = await service.create("u1", _payload())
        await service.delete("u1", created.mnemonic)
        assert await service.list_all("u1") == []
        with pytest.raises(RecordNotFoundError):
            await service.get("u1", created.mnemonic)

    async def test_public_view_masks_key(self, service):
        created = await service.create("u1", _payload())
        public = created.to_public()
        assert public["api_key"] == "sk-…ijkl"
        assert (await service.get("u1", created.mnemonic)).api_key == "sk-abcdefghijkl"

    @pytest.mark.parametrize("key,expected", [(None, None), ("", None), ("short", "****")])
    def test_mask_edge_cases(self, key, expected):
        assert mask_api_key(key) == expected
