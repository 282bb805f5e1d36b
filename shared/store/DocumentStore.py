"""Filesystem-backed JSON document store.

Every (collection, owner) pair maps to one JSON array on disk::

    <base_dir>/<collection>/<owner>_<collection>.json

Global documents that are not owner-partitioned (e.g. the taxonomy) map to
one JSON object::

    <base_dir>/<name>/<name>.json

Writes go through a temp file in the target directory followed by an atomic
rename, so readers never see a partially written file. Read-modify-write
cycles are serialised per owner with in-process asyncio locks. Separate
processes sharing one data directory are NOT coordinated.
"""

import asyncio
import copy
import json
import os
import re
import tempfile
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

from shared.exceptions.ServiceErrors import InputValidationError
from shared.helper.HelperConfig import HelperConfig

T = TypeVar("T")

# lock key for documents that are shared by all owners
GLOBAL_OWNER = "__global__"

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.@-]*$")


class DocumentStore:
    """Durable, serialised access to per-owner JSON collections."""

    def __init__(self, helper_config: HelperConfig, base_dir: str | Path | None = None) -> None:
        self.logging = helper_config.get_logger()
        self._base_dir = Path(base_dir if base_dir is not None else helper_config.get_data_dir())
        self._locks: dict[str, asyncio.Lock] = {}

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_base_dir(self) -> Path:
        return self._base_dir

    def _check_name(self, value: str, what: str) -> str:
        """Reject names that could escape the data directory."""
        value = str(value or "").strip()
        if not value or value in (".", "..") or not _SAFE_NAME.match(value):
            raise InputValidationError(f"Invalid {what} '{value}'.")
        return value

    def get_collection_path(self, collection: str, owner: str) -> Path:
        """Return the backing file of one owner's collection.

        Args:
            collection (str): Collection type, e.g. "cvs".
            owner (str): Owner identifier.

        Returns:
            Path: e.g. ``<base_dir>/cvs/u1_cvs.json``

        Raises:
            InputValidationError: If collection or owner is empty or unsafe as a file name.
        """
        collection = self._check_name(collection, "collection")
        owner = self._check_name(owner, "owner")
        return self._base_dir / collection / f"{owner}_{collection}.json"

    def get_object_path(self, name: str) -> Path:
        name = self._check_name(name, "document name")
        return self._base_dir / name / f"{name}.json"

    ##########################################
    ################ LOCKING #################
    ##########################################

    def _get_lock(self, owner: str) -> asyncio.Lock:
        lock = self._locks.get(owner)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[owner] = lock
        return lock

    @asynccontextmanager
    async def lock(self, owner: str) -> AsyncIterator[None]:
        """Exclusive critical section for one owner. Not re-entrant."""
        async with self._get_lock(owner):
            yield

    async def with_lock(self, owner: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` while holding the owner lock and return its result.

        The lock is released on every exit path, including when ``fn`` raises.
        """
        async with self.lock(owner):
            return await fn()

    ##########################################
    ################# READ ###################
    ##########################################

    def _read_json(self, path: Path) -> Any:
        """Read and decode a JSON file. Missing or unreadable files yield None."""
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            self.logging.warning("Could not read '%s': %s. Treating as empty.", path, e)
            return None
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            self.logging.warning("Could not parse '%s': %s. Treating as empty.", path, e)
            return None

    async def load(self, collection: str, owner: str) -> list[dict]:
        """Load one owner's collection.

        Returns:
            list[dict]: The stored records. Empty if the file is missing, corrupt
            or does not hold a JSON array.
        """
        path = self.get_collection_path(collection, owner)
        data = await asyncio.to_thread(self._read_json, path)
        if data is None:
            return []
        if not isinstance(data, list):
            self.logging.warning("Collection file '%s' does not contain a JSON array. Treating as empty.", path)
            return []
        return [record for record in data if isinstance(record, dict)]

    async def load_object(self, name: str) -> dict | None:
        """Load a global JSON object document, or None if it does not exist yet."""
        path = self.get_object_path(name)
        data = await asyncio.to_thread(self._read_json, path)
        if data is not None and not isinstance(data, dict):
            self.logging.warning("Document '%s' does not contain a JSON object. Treating as empty.", path)
            return None
        return data

    async def list_owners(self, collection: str) -> list[str]:
        """List every owner that has a backing file for the given collection."""
        collection = self._check_name(collection, "collection")
        folder = self._base_dir / collection
        suffix = f"_{collection}.json"

        def _scan() -> list[str]:
            if not folder.is_dir():
                return []
            return sorted(p.name[: -len(suffix)] for p in folder.iterdir() if p.is_file() and p.name.endswith(suffix))

        return await asyncio.to_thread(_scan)

    ##########################################
    ################# WRITE ##################
    ##########################################

    def _write_json(self, path: Path, data: Any) -> None:
        """Write JSON to a temp file next to ``path`` and rename it into place."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, ensure_ascii=False)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except Exception:
            with suppress(OSError):
                os.unlink(tmp_path)
            raise

    async def save(self, collection: str, owner: str, records: list[dict]) -> None:
        """Atomically replace one owner's collection.

        Does not take the owner lock itself; use :meth:`update` or :meth:`with_lock`
        for read-modify-write cycles.

        Raises:
            OSError: If the file cannot be written. Nothing is replaced in that case.
        """
        path = self.get_collection_path(collection, owner)
        await asyncio.to_thread(self._write_json, path, list(records))
        self.logging.debug("Saved %d record(s) to '%s'.", len(records), path)

    async def save_object(self, name: str, data: dict) -> None:
        path = self.get_object_path(name)
        await asyncio.to_thread(self._write_json, path, data)

    async def update(self, collection: str, owner: str, mutate: Callable[[list[dict]], T]) -> T:
        """Run a locked load -> mutate -> save cycle and return the mutation's result.

        ``mutate`` edits the record list in place. If it raises, nothing is saved.
        The file is only rewritten when the mutation actually changed the list.

        Args:
            collection (str): Collection type.
            owner (str): Owner identifier (also the lock key).
            mutate (Callable[[list[dict]], T]): In-place mutation of the loaded records.

        Returns:
            T: Whatever ``mutate`` returned.
        """
        async with self.lock(owner):
            records = await self.load(collection, owner)
            snapshot = copy.deepcopy(records)
            result = mutate(records)
            if records != snapshot:
                await self.save(collection, owner, records)
            return result

    async def upsert(self, collection: str, owner: str, record: dict, match: Callable[[dict], bool]) -> dict:
        """Replace the first record satisfying ``match`` or prepend ``record`` if none does."""

        def _apply(records: list[dict]) -> dict:
            for index, existing in enumerate(records):
                if match(existing):
                    records[index] = record
                    return record
            records.insert(0, record)
            return record

        return await self.update(collection, owner, _apply)
