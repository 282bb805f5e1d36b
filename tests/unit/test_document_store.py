"""Unit tests for DocumentStore: paths, degraded reads, atomic writes and owner locking."""

import asyncio
import json
import os
from unittest.mock import patch

import pytest

from shared.exceptions.ServiceErrors import InputValidationError
from shared.store.DocumentStore import DocumentStore


class TestPaths:
    def test_collection_path_layout(self, store, data_dir):
        assert store.get_collection_path("cvs", "u1") == data_dir / "cvs" / "u1_cvs.json"

    def test_object_path_layout(self, store, data_dir):
        assert store.get_object_path("taxonomy") == data_dir / "taxonomy" / "taxonomy.json"

    @pytest.mark.parametrize("owner", ["", "..", "../etc", "a/b", " "])
    def test_unsafe_owner_rejected(self, store, owner):
        with pytest.raises(InputValidationError):
            store.get_collection_path("cvs", owner)


class TestLoad:
    async def test_missing_file_is_empty(self, store):
        assert await store.load("cvs", "nobody") == []

    async def test_corrupt_file_is_empty(self, store):
        path = store.get_collection_path("cvs", "u1")
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")
        assert await store.load("cvs", "u1") == []

    async def test_non_array_payload_is_empty(self, store):
        path = store.get_collection_path("cvs", "u1")
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"id": 1}), encoding="utf-8")
        assert await store.load("cvs", "u1") == []

    async def test_non_object_elements_are_dropped(self, store):
        await store.save("cvs", "u1", [{"id": "a"}, "junk", 3])
        assert await store.load("cvs", "u1") == [{"id": "a"}]

    async def test_list_owners(self, store):
        await store.save("cvs", "u1", [])
        await store.save("cvs", "u2", [{"id": "x"}])
        await store.save("llms", "u3", [])
        assert await store.list_owners("cvs") == ["u1", "u2"]


class TestSave:
    async def test_roundtrip_and_no_temp_left(self, store):
        await store.save("cvs", "u1", [{"id": "a"}, {"id": "b"}])
        assert await store.load("cvs", "u1") == [{"id": "a"}, {"id": "b"}]
        folder = store.get_collection_path("cvs", "u1").parent
        assert [p.name for p in folder.iterdir()] == ["u1_cvs.json"]

    async def test_failed_write_keeps_previous_file_and_cleans_temp(self, store):
        await store.save("cvs", "u1", [{"id": "old"}])
        with patch("shared.store.DocumentStore.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                await store.save("cvs", "u1", [{"id": "new"}])
        assert await store.load("cvs", "u1") == [{"id": "old"}]
        folder = store.get_collection_path("cvs", "u1").parent
        assert [p.name for p in folder.iterdir()] == ["u1_cvs.json"]

    async def test_object_roundtrip(self, store):
        await store.save_object("taxonomy", {"version": 1, "entries": []})
        assert await store.load_object("taxonomy") == {"version": 1, "entries": []}
        assert await store.load_object("missing") is None


class TestLocking:
    async def test_lock_released_when_fn_raises(self, store):
        async def boom():
            raise RuntimeError("boom")

        async def ok():
            return "ok"

        with pytest.raises(RuntimeError):
            await store.with_lock("u1", boom)
        assert await asyncio.wait_for(store.with_lock("u1", ok), timeout=1) == "ok"

    async def test_lock_released_when_save_fails(self, store):
        with patch.object(DocumentStore, "save", side_effect=OSError("read-only")):
            with pytest.raises(OSError):
                await store.update("cvs", "u1", lambda records: records.append({"id": "x"}))
        # the owner lock must be free again
        await asyncio.wait_for(store.update("cvs", "u1", lambda records: records.append({"id": "y"})), timeout=1)
        assert await store.load("cvs", "u1") == [{"id": "y"}]

    async def test_concurrent_updates_lose_nothing(self, store):
        async def add(i):
            await store.update("cvs", "u1", lambda records: records.append({"id": i}))

        await asyncio.gather(*(add(i) for i in range(25)))
        assert sorted(r["id"] for r in await store.load("cvs", "u1")) == list(range(25))

    async def test_owners_do_not_block_each_other(self, store):
        async with store.lock("u1"):
            await asyncio.wait_for(store.update("cvs", "u2", lambda records: records.append({"id": 1})), timeout=1)

    async def test_failed_mutation_saves_nothing(self, store):
        await store.save("cvs", "u1", [{"id": "a"}])

        def mutate(records):
            records.clear()
            raise ValueError("abort")

        with pytest.raises(ValueError):
            await store.update("cvs", "u1", mutate)
        assert await store.load("cvs", "u1") == [{"id": "a"}]

    async def test_unchanged_mutation_does_not_write(self, store):
        await store.save("cvs", "u1", [{"id": "a"}])
        with patch.object(DocumentStore, "save") as save:
            result = await store.update("cvs", "u1", lambda records: len(records))
        assert result == 1
        save.assert_not_called()


class TestUpsert:
    async def test_upsert_replaces_first_match(self, store):
        await store.save("cvs", "u1", [{"id": "a", "v": 1}, {"id": "b", "v": 1}])
        await store.upsert("cvs", "u1", {"id": "b", "v": 2}, lambda r: r["id"] == "b")
        assert await store.load("cvs", "u1") == [{"id": "a", "v": 1}, {"id": "b", "v": 2}]

    async def test_upsert_prepends_when_no_match(self, store):
        await store.save("cvs", "u1", [{"id": "a"}])
        await store.upsert("cvs", "u1", {"id": "z"}, lambda r: r["id"] == "z")
        assert [r["id"] for r in await store.load("cvs", "u1")] == ["z", "a"]


def test_base_dir_defaults_to_data_dir(helper_config, data_dir):
    assert DocumentStore(helper_config=helper_config).get_base_dir() == data_dir
    assert os.fspath(data_dir).endswith("data")
