"""Unit tests for TenderSearchService and its code tables."""

import pytest

from services.mnemonic_records.TenderSearchService import TenderSearchService, profile_code, seniority_code
from shared.exceptions.ServiceErrors import InputValidationError


@pytest.fixture
def service(helper_config, store) -> TenderSearchService:
    return TenderSearchService(helper_config=helper_config, store=store)


def _payload(**overrides) -> dict:
    payload = {
        "seniority": "Senior",
        "requested_services": ["Development"],
        "profiles": [{"title": "Backend Developer", "knowledge_and_skills": "• Python\n• SQL"}],
    }
    payload.update(overrides)
    return payload


class TestCodes:
    @pytest.mark.parametrize(
        "value,expected",
        [("Senior", "SEN"), ("Mid-level", "MED"), ("Junior+", "JUN"), ("Guru", "GUR"), ("", "XXX")],
    )
    def test_seniority_code(self, value, expected):
        assert seniority_code(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("Backend Developer", "BACK"),
            ("Senior Full-Stack Engineer", "FULL"),
            ("Data Scientist", "DSCI"),
            ("Zookeeper 2", "ZOOK"),
            ("R2", "RXXX"),
        ],
    )
    def test_profile_code(self, value, expected):
        assert profile_code(value) == expected


class TestCreate:
    async def test_mnemonic_and_suffix(self, service):
        first = await service.create("u1", _payload())
        second = await service.create("u1", _payload())
        assert (first.mnemonic, second.mnemonic) == ("SEN_BACK", "SEN_BACK2")

    async def test_bullets_are_split(self, service):
        created = await service.create("u1", _payload())
        assert created.profiles[0].knowledge_and_skills == ["Python", "SQL"]

    async def test_single_profile_fields_are_accepted(self, service):
        created = await service.create(
            "u1",
            {
                "seniority": "Junior",
                "requested_services": ["Testing"],
                "tender_id": 4711,
                "profile_title": "QA Engineer",
                "nature_of_tasks": "- write tests\n- review",
            },
        )
        assert created.mnemonic == "JUN_QENG"
        assert created.tender_id == "4711"
        assert created.profiles[0].nature_of_tasks == ["write tests", "review"]

    async def test_untitled_profiles_are_dropped(self, service):
        created = await service.create("u1", _payload(profiles=[{"title": ""}, {"title": "Tester"}]))
        assert [p.title for p in created.profiles] == ["Tester"]
        assert created.mnemonic == "SEN_TEST"

    async def test_no_profile_is_rejected(self, service):
        with pytest.raises(InputValidationError):
            await service.create("u1", _payload(profiles=[]))

    @pytest.mark.parametrize("field", ["seniority", "requested_services"])
    async def test_required_fields(self, service, field):
        payload = _payload()
        payload.pop(field)
        with pytest.raises(InputValidationError):
            await service.create("u1", payload)


class TestManage:
    async def test_set_active_and_clear_all(self, service):
        a = await service.create("u1", _payload())
        await service.create("u1", _payload())
        await service.set_active("u1", a.mnemonic)
        assert (await service.get_active("u1")).mnemonic == "SEN_BACK"

        assert await service.clear_all("u1") == 2
        assert await service.list_all("u1") == []
        assert await service.clear_all("u1") == 0
