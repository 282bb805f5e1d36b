"""Global technology taxonomy: CRUD plus token resolution.

The taxonomy is a single JSON object document shared by all owners::

    {"version": 1, "updatedAt": "...", "entries": [ {key, label, category, synonyms, implies, ...} ]}

``resolve`` maps free-text tokens (from a CV or a tender) onto canonical keys
and then follows ``implies`` edges breadth first, so "React" also yields
"javascript". The implication graph may contain cycles.
"""

from collections import deque
from typing import Any, Iterable

from pydantic import ValidationError

from shared.exceptions.ServiceErrors import DuplicateIdentifierError, InputValidationError, RecordNotFoundError
from shared.helper.HelperConfig import HelperConfig
from shared.models.cv import utc_now
from shared.models.taxonomy import TaxonomyDocument, TaxonomyEntry, normalize_key, normalize_token
from shared.store.DocumentStore import GLOBAL_OWNER, DocumentStore

DOCUMENT_NAME = "taxonomy"


class TaxonomyService:
    def __init__(self, helper_config: HelperConfig, store: DocumentStore) -> None:
        self.logging = helper_config.get_logger()
        self.store = store
        # (updated_at, token -> key, key -> entry), rebuilt whenever the document changes
        self._index_cache: tuple[str, dict[str, str], dict[str, TaxonomyEntry]] | None = None

    ##########################################
    ############### PERSISTENCE ##############
    ##########################################

    def _parse_entry(self, raw: Any) -> TaxonomyEntry:
        """
        Raises:
            InputValidationError: If key, label or category is missing after normalisation.
        """
        try:
            return TaxonomyEntry.model_validate(raw)
        except ValidationError as e:
            raise InputValidationError(f"Invalid taxonomy entry: {e}")

    async def _read(self) -> TaxonomyDocument:
        data = await self.store.load_object(DOCUMENT_NAME)
        if not data:
            return TaxonomyDocument()
        entries: list[TaxonomyEntry] = []
        for raw in data.get("entries") or []:
            try:
                entries.append(TaxonomyEntry.model_validate(raw))
            except ValidationError as e:
                self.logging.warning("Skipping malformed taxonomy entry '%s': %s", (raw or {}).get("key"), e.errors()[:1])
        try:
            updated_at = data.get("updatedAt") or data.get("updated_at") or utc_now()
            return TaxonomyDocument(version=data.get("version") or 1, updated_at=updated_at, entries=entries)
        except ValidationError:
            return TaxonomyDocument(entries=entries)

    async def _write(self, document: TaxonomyDocument) -> None:
        document.updated_at = utc_now()
        await self.store.save_object(DOCUMENT_NAME, document.model_dump(mode="json", by_alias=True))

    ##########################################
    ################# QUERY ##################
    ##########################################

    async def list_entries(self) -> list[TaxonomyEntry]:
        async with self.store.lock(GLOBAL_OWNER):
            return (await self._read()).entries

    async def get(self, key: str) -> TaxonomyEntry:
        """
        Raises:
            RecordNotFoundError: If no entry has this (normalised) key.
        """
        key = normalize_key(key)
        for entry in await self.list_entries():
            if entry.key == key:
                return entry
        raise RecordNotFoundError(f"Taxonomy entry '{key}' not found.")

    async def search(self, query: str = "", category: str | None = None) -> list[TaxonomyEntry]:
        """Substring match over key, label, synonyms and tags, optionally within one category."""
        needle = (query or "").strip().lower()
        category = (category or "").strip().lower() or None

        def _hit(entry: TaxonomyEntry) -> bool:
            haystack = [entry.key, entry.label, *entry.synonyms, *entry.tags]
            return any(needle in value.lower() for value in haystack)

        return [e for e in await self.list_entries() if _hit(e) and (category is None or e.category == category)]

    async def export_all(self) -> TaxonomyDocument:
        async with self.store.lock(GLOBAL_OWNER):
            return await self._read()

    ##########################################
    ################# WRITE ##################
    ##########################################

    async def create(self, entry: TaxonomyEntry | dict) -> TaxonomyEntry:
        """
        Raises:
            InputValidationError: If key/label/category is missing.
            DuplicateIdentifierError: If the key already exists.
        """
        new_entry = self._parse_entry(entry.model_dump() if isinstance(entry, TaxonomyEntry) else entry)
        async with self.store.lock(GLOBAL_OWNER):
            document = await self._read()
            if any(e.key == new_entry.key for e in document.entries):
                raise DuplicateIdentifierError(f"Taxonomy key '{new_entry.key}' already exists.")
            document.entries.append(new_entry)
            await self._write(document)
        self.logging.info("Created taxonomy entry '%s'.", new_entry.key)
        return new_entry

    async def update(self, key: str, patch: dict) -> TaxonomyEntry:
        """Merge ``patch`` into an entry. The key itself can never change.

        Raises:
            RecordNotFoundError: If no entry has this key.
            InputValidationError: If the merged entry is invalid.
        """
        key = normalize_key(key)
        async with self.store.lock(GLOBAL_OWNER):
            document = await self._read()
            for index, current in enumerate(document.entries):
                if current.key == key:
                    merged = {**current.model_dump(), **(patch or {}), "key": current.key}
                    document.entries[index] = self._parse_entry(merged)
                    await self._write(document)
                    self.logging.info("Updated taxonomy entry '%s'.", key)
                    return document.entries[index]
        raise RecordNotFoundError(f"Taxonomy entry '{key}' not found.")

    async def remove(self, key: str) -> None:
        """
        Raises:
            RecordNotFoundError: If no entry has this key.
        """
        key = normalize_key(key)
        async with self.store.lock(GLOBAL_OWNER):
            document = await self._read()
            remaining = [e for e in document.entries if e.key != key]
            if len(remaining) == len(document.entries):
                raise RecordNotFoundError(f"Taxonomy entry '{key}' not found.")
            document.entries = remaining
            await self._write(document)
        self.logging.info("Removed taxonomy entry '%s'.", key)

    async def replace_all(self, entries: Iterable[TaxonomyEntry | dict]) -> int:
        """Replace the whole taxonomy. Later entries with an already seen key are dropped.

        Returns:
            int: Number of entries stored.

        Raises:
            InputValidationError: If any entry is invalid. Nothing is replaced in that case.
        """
        parsed: list[TaxonomyEntry] = []
        seen: set[str] = set()
        for raw in entries or []:
            entry = self._parse_entry(raw.model_dump() if isinstance(raw, TaxonomyEntry) else raw)
            if entry.key in seen:
                self.logging.warning("Dropping duplicate taxonomy key '%s' during replace.", entry.key)
                continue
            seen.add(entry.key)
            parsed.append(entry)

        async with self.store.lock(GLOBAL_OWNER):
            await self._write(TaxonomyDocument(entries=parsed))
        self.logging.info("Replaced taxonomy with %d entries.", len(parsed))
        return len(parsed)

    ##########################################
    ################ RESOLVE #################
    ##########################################

    def _build_index(self, document: TaxonomyDocument) -> tuple[dict[str, str], dict[str, TaxonomyEntry]]:
        stamp = document.updated_at.isoformat()
        if self._index_cache is not None and self._index_cache[0] == stamp:
            return self._index_cache[1], self._index_cache[2]

        token_index: dict[str, str] = {}
        by_key: dict[str, TaxonomyEntry] = {}
        for entry in document.entries:
            by_key.setdefault(entry.key, entry)
            for value in (entry.key, entry.label, *entry.synonyms):
                token = normalize_token(value)
                # first entry wins on ties
                if token and token not in token_index:
                    token_index[token] = entry.key
        self._index_cache = (stamp, token_index, by_key)
        return token_index, by_key

    async def resolve(self, tokens: Iterable[str]) -> list[str]:
        """Resolve free-text tokens to canonical keys, including implied keys.

        Unmatched tokens are dropped. Implied keys are included even when they
        have no entry of their own, but expansion only continues from keys
        that do.

        Args:
            tokens (Iterable[str]): e.g. ["React", "node.js"]

        Returns:
            list[str]: Distinct keys, direct matches first, then implications in breadth-first order.
        """
        async with self.store.lock(GLOBAL_OWNER):
            document = await self._read()
        token_index, by_key = self._build_index(document)

        result: list[str] = []
        visited: set[str] = set()
        for token in tokens or []:
            key = token_index.get(normalize_token(token))
            if key is not None and key not in visited:
                visited.add(key)
                result.append(key)

        queue = deque(result)
        while queue:
            entry = by_key.get(queue.popleft())
            if entry is None:
                continue
            for implied in entry.implies:
                if implied not in visited:
                    visited.add(implied)
                    result.append(implied)
                    queue.append(implied)
        return result
