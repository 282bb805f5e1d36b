"""Unit tests for TaxonomyService: CRUD, search and implication resolution."""

import pytest

from services.taxonomy.TaxonomyService import TaxonomyService
from shared.exceptions.ServiceErrors import DuplicateIdentifierError, InputValidationError, RecordNotFoundError
from shared.models.taxonomy import TaxonomyEntry, normalize_key, normalize_token

ENTRIES = [
    {"key": "react", "label": "React", "category": "Framework", "synonyms": ["ReactJS", "React.js"], "implies": ["javascript"]},
    {"key": "javascript", "label": "JavaScript", "category": "language", "synonyms": ["JS", "ECMAScript"]},
    {"key": "nextjs", "label": "Next.js", "category": "framework", "implies": ["react", "nodejs"], "tags": ["ssr"]},
    {"label": "Node.js", "category": "runtime", "implies": ["javascript"]},
]


@pytest.fixture
async def service(helper_config, store) -> TaxonomyService:
    service = TaxonomyService(helper_config=helper_config, store=store)
    await service.replace_all(ENTRIES)
    return service


class TestNormalisation:
    def test_normalize_key(self):
        assert normalize_key(" Node.js ") == "node-js"

    def test_normalize_token(self):
        assert normalize_token("Node .JS") == "nodejs"
        assert normalize_token("react-js") == normalize_token("React.js")

    def test_key_derived_from_label(self):
        entry = TaxonomyEntry.model_validate({"label": "Vue 3", "category": "framework"})
        assert entry.key == "vue-3"

    @pytest.mark.parametrize("raw", [{"key": "x"}, {"label": "X", "category": " "}, {"category": "lang"}])
    def test_required_fields(self, raw):
        with pytest.raises(ValueError):
            TaxonomyEntry.model_validate(raw)


class TestResolve:
    async def test_direct_match_and_implication(self, service):
        assert await service.resolve(["React"]) == ["react", "javascript"]

    async def test_synonyms_and_separators(self, service):
        assert await service.resolve(["react.js"]) == ["react", "javascript"]
        assert await service.resolve(["node js"]) == ["node-js", "javascript"]

    async def test_transitive_breadth_first(self, service):
        assert await service.resolve(["next.js"]) == ["nextjs", "react", "nodejs", "javascript"]

    async def test_implied_key_without_entry_is_kept(self, service):
        # "nodejs" is implied by nextjs but the stored key is "node-js"
        assert "nodejs" in await service.resolve(["Next.js"])

    async def test_unmatched_tokens_are_dropped(self, service):
        assert await service.resolve(["cobol", ""]) == []

    async def test_each_key_once(self, service):
        assert await service.resolve(["JS", "React", "javascript"]) == ["javascript", "react"]

    async def test_cycles_terminate(self, helper_config, store):
        service = TaxonomyService(helper_config=helper_config, store=store)
        await service.replace_all(
            [
                {"key": "a", "label": "A", "category": "x", "implies": ["b"]},
                {"key": "b", "label": "B", "category": "x", "implies": ["a"]},
            ]
        )
        assert await service.resolve(["a"]) == ["a", "b"]

    async def test_index_follows_updates(self, service):
        await service.update("javascript", {"synonyms": ["JS", "Vanilla"]})
        assert await service.resolve(["vanilla"]) == ["javascript"]


class TestCrud:
    async def test_create_and_get(self, service):
        created = await service.create({"label": "Python", "category": "language"})
        assert created.key == "python"
        assert (await service.get("Python")).label == "Python"

    async def test_duplicate_key(self, service):
        with pytest.raises(DuplicateIdentifierError):
            await service.create({"key": "React", "label": "React again", "category": "framework"})

    async def test_invalid_entry(self, service):
        with pytest.raises(InputValidationError):
            await service.create({"label": "No category"})

    async def test_update_cannot_change_key(self, service):
        updated = await service.update("react", {"key": "preact", "label": "React 19"})
        assert (updated.key, updated.label) == ("react", "React 19")
        with pytest.raises(RecordNotFoundError):
            await service.get("preact")

    async def test_update_missing(self, service):
        with pytest.raises(RecordNotFoundError):
            await service.update("cobol", {"label": "COBOL"})

    async def test_remove(self, service):
        await service.remove("react")
        assert [e.key for e in await service.list_entries()] == ["javascript", "nextjs", "node-js"]
        with pytest.raises(RecordNotFoundError):
            await service.remove("react")

    async def test_search(self, service):
        assert [e.key for e in await service.search("js")] == ["react", "javascript", "nextjs", "node-js"]
        assert [e.key for e in await service.search("js", category="Framework")] == ["react", "nextjs"]
        assert [e.key for e in await service.search("ssr")] == ["nextjs"]

    async def test_replace_all_drops_duplicate_keys(self, service):
        count = await service.replace_all([{"key": "go", "label": "Go", "category": "language"}, {"key": "GO", "label": "Golang", "category": "language"}])
        assert count == 1
        assert (await service.get("go")).label == "Go"

    async def test_replace_all_is_all_or_nothing(self, service):
        with pytest.raises(InputValidationError):
            await service.replace_all([{"key": "go", "label": "Go", "category": "language"}, {"key": "bad"}])
        assert len(await service.list_entries()) == 4

    async def test_export_all(self, service):
        document = await service.export_all()
        assert document.version == 1
        assert len(document.entries) == 4

    async def test_timestamp_is_persisted_as_updated_at_camel_case(self, service, store):
        stored = await store.load_object("taxonomy")
        assert "updatedAt" in stored and "updated_at" not in stored

    async def test_reads_existing_updated_at_timestamp(self, helper_config, store):
        await store.save_object(
            "taxonomy",
            {"version": 1, "updatedAt": "2024-05-01T10:00:00+00:00", "entries": [{"key": "go", "label": "Go", "category": "language"}]},
        )
        document = await TaxonomyService(helper_config=helper_config, store=store).export_all()
        assert document.updated_at.isoformat() == "2024-05-01T10:00:00+00:00"
        assert [e.key for e in document.entries] == ["go"]
