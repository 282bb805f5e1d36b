"""CV ingestion and processing pipeline.

Records move through ``uploaded -> processing -> processed | error``. Every
write is a locked read-modify-write on the owner's ``cvs`` collection.
Extraction and analysis run as supervised background tasks. Each task carries
the ``run_id`` that was stamped when its record entered ``processing`` and
only writes its outcome if the record still carries that token, so a result
from a superseded run is discarded.
"""

import asyncio
import os
import uuid
from datetime import timedelta
from typing import Any, Iterable

from pydantic import ValidationError

from services.cv_pipeline.TaskSupervisor import TaskSupervisor
from services.cv_pipeline.UploadStorage import UploadStorage
from shared.clients.analyzer.TextAnalyzer import TextAnalyzer
from shared.clients.extractor.TextExtractor import TextExtractor
from shared.exceptions.ServiceErrors import InputValidationError, RecordNotFoundError, UnsupportedFileTypeError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperHash import compute_file_hash_async, hashes_equal, normalize_hash
from shared.models.cv import (
    AnalysisResult,
    CVBatchResult,
    CVFileType,
    CVListResponse,
    CVRecord,
    CVStatus,
    DuplicateUpload,
    ProcessAllResult,
    UploadedFile,
    UploadFailure,
    utc_now,
)
from shared.store.DocumentStore import DocumentStore

COLLECTION = "cvs"
MAX_PAGE_SIZE = 1000


class CVService:
    def __init__(
        self,
        helper_config: HelperConfig,
        store: DocumentStore,
        extractor: TextExtractor,
        analyzer: TextAnalyzer,
        supervisor: TaskSupervisor,
        uploads: UploadStorage | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self.store = store
        self.extractor = extractor
        self.analyzer = analyzer
        self.supervisor = supervisor
        self.uploads = uploads
        self.duplicate_policy = helper_config.get_choice_val("CV_DUPLICATE_POLICY", ("accept", "reject"), default="accept")
        self.stale_after = timedelta(minutes=float(helper_config.get_number_val("CV_STALE_PROCESSING_MINUTES", default=30)))

    ##########################################
    ################ HELPERS #################
    ##########################################

    def resolve_file_path(self, file_path: str) -> str:
        """Absolute path of a stored file. Relative paths are relative to the store's base dir."""
        if os.path.isabs(file_path):
            return file_path
        return os.path.join(str(self.store.get_base_dir()), file_path)

    def _parse_record(self, raw: dict) -> CVRecord | None:
        try:
            return CVRecord.model_validate(raw)
        except ValidationError as e:
            self.logging.warning("Skipping malformed CV record id=%s: %s", raw.get("id"), e.errors()[:1])
            return None

    def _parse_records(self, raws: Iterable[dict]) -> list[CVRecord]:
        return [record for record in (self._parse_record(raw) for raw in raws) if record is not None]

    @staticmethod
    def _index_of(records: list[dict], cv_id: str) -> int | None:
        for index, raw in enumerate(records):
            if raw.get("id") == cv_id:
                return index
        return None

    ##########################################
    ################ CREATE ##################
    ##########################################

    async def _build_record(self, upload: UploadedFile | dict) -> CVRecord:
        """Validate an upload descriptor and build the new record. The digest is computed if missing.

        Raises:
            InputValidationError: If required descriptor fields are missing.
            UnsupportedFileTypeError: If the declared type is not supported.
        """
        if not isinstance(upload, UploadedFile):
            try:
                upload = UploadedFile.model_validate(upload)
            except ValidationError as e:
                raise InputValidationError(f"Invalid upload descriptor: {e}")
        file_type = CVFileType.from_value(upload.file_type)

        content_hash = normalize_hash(upload.content_hash)
        if content_hash is None:
            try:
                content_hash = await compute_file_hash_async(self.resolve_file_path(upload.file_path))
            except OSError as e:
                self.logging.warning("Could not hash '%s' (%s). Leaving digest empty for later backfill.", upload.file_path, e)

        return CVRecord(
            owner=upload.owner,
            original_name=upload.original_name,
            stored_name=upload.stored_name,
            file_path=upload.file_path,
            file_size=upload.file_size,
            file_type=file_type,
            content_hash=content_hash,
        )

    async def _insert(self, record: CVRecord) -> CVRecord:
        document = record.to_document()
        await self.store.update(COLLECTION, record.owner, lambda records: records.insert(0, document))
        self.logging.info("Registered CV '%s' (id=%s) for owner '%s'.", record.original_name, record.id, record.owner)
        return record

    async def _insert_checked(self, record: CVRecord) -> tuple[CVRecord | None, bool]:
        """Look up a record with the same digest and prepend the new one in one locked step.

        Returns:
            tuple[CVRecord | None, bool]: The existing duplicate (if any) and whether the record was stored.
            Under ``CV_DUPLICATE_POLICY=reject`` a duplicate is not stored.
        """

        def _apply(records: list[dict]) -> tuple[CVRecord | None, bool]:
            existing = None
            if normalize_hash(record.content_hash) is not None:
                for raw in records:
                    if hashes_equal(raw.get("content_hash"), record.content_hash):
                        existing = self._parse_record(raw)
                        if existing is not None:
                            break
            if existing is not None and self.duplicate_policy == "reject":
                return existing, False
            records.insert(0, record.to_document())
            return existing, True

        existing, stored = await self.store.update(COLLECTION, record.owner, _apply)
        if stored:
            self.logging.info("Registered CV '%s' (id=%s) for owner '%s'.", record.original_name, record.id, record.owner)
        return existing, stored

    def validate_owner(self, owner: str) -> None:
        """
        Raises:
            InputValidationError: If the owner cannot name a collection file.
        """
        self.store.get_collection_path(COLLECTION, owner)

    async def create_cv_record(self, upload: UploadedFile | dict) -> CVRecord:
        """Register one stored upload as a new ``uploaded`` record.

        Duplicates are not checked here; use :meth:`find_duplicate` or
        :meth:`create_cv_records` for policy-aware creation.
        """
        return await self._insert(await self._build_record(upload))

    async def create_cv_records(self, uploads: list[UploadedFile | dict]) -> CVBatchResult:
        """Register a batch of uploads. Each file is handled independently.

        Duplicates (same digest already stored for the owner) are reported. With
        ``CV_DUPLICATE_POLICY=reject`` they are not registered and their stored
        file is removed. The stored file of an upload that fails to register is
        removed as well.
        """
        result = CVBatchResult()
        for upload in uploads:
            if isinstance(upload, UploadedFile):
                name, file_path = upload.original_name, upload.file_path
            else:
                name, file_path = str((upload or {}).get("original_name")), (upload or {}).get("file_path")
            try:
                record = await self._build_record(upload)
                existing, stored = await self._insert_checked(record)
                if existing is not None:
                    result.duplicates.append(DuplicateUpload(original_name=record.original_name, existing_id=existing.id, rejected=not stored))
                if not stored:
                    self.logging.info("Rejected duplicate upload '%s' (matches id=%s).", record.original_name, existing.id)
                    await self._remove_file(record.file_path)
                    continue
                result.created.append(record)
            except Exception as e:
                self.logging.error("Failed to register upload '%s': %s", name, e)
                result.failures.append(UploadFailure(original_name=name, error=str(e)))
                if file_path:
                    await self._remove_file(str(file_path))
        return result

    ##########################################
    ################# QUERY ##################
    ##########################################

    async def find_duplicate(self, owner: str, content_hash: str | None, exclude_id: str | None = None) -> CVRecord | None:
        """Return the first of the owner's records with the same digest (case-insensitive), if any."""
        if normalize_hash(content_hash) is None:
            return None
        for raw in await self.store.load(COLLECTION, owner):
            if raw.get("id") != exclude_id and hashes_equal(raw.get("content_hash"), content_hash):
                record = self._parse_record(raw)
                if record is not None:
                    return record
        return None

    async def is_duplicate_for_owner(self, owner: str, content_hash: str | None) -> bool:
        return await self.find_duplicate(owner, content_hash) is not None

    async def get_owner_cvs(self, owner: str, status: str | None = None, offset: int = 0, limit: int = 100) -> CVListResponse:
        """List an owner's records, newest first.

        Args:
            owner (str): Owner identifier.
            status (str | None): Only records in this lifecycle state.
            offset (int): Records to skip.
            limit (int): Page size, 1..1000.

        Returns:
            CVListResponse: The page plus the total number of matching records.

        Raises:
            InputValidationError: On an unknown status or invalid paging values.
        """
        status_filter = None
        if status:
            try:
                status_filter = CVStatus(status.strip().lower())
            except ValueError:
                raise InputValidationError(f"Invalid status '{status}'. Allowed: {[s.value for s in CVStatus]}")
        if offset < 0 or not 1 <= limit <= MAX_PAGE_SIZE:
            raise InputValidationError(f"Invalid paging: offset must be >= 0 and limit between 1 and {MAX_PAGE_SIZE}.")

        records = self._parse_records(await self.store.load(COLLECTION, owner))
        if status_filter is not None:
            records = [r for r in records if r.status == status_filter]
        return CVListResponse(records=records[offset : offset + limit], total=len(records), offset=offset, limit=limit)

    async def get_cv(self, owner: str, cv_id: str) -> CVRecord:
        """
        Raises:
            RecordNotFoundError: If the owner has no record with this id.
        """
        for raw in await self.store.load(COLLECTION, owner):
            if raw.get("id") == cv_id:
                record = self._parse_record(raw)
                if record is not None:
                    return record
        raise RecordNotFoundError(f"CV '{cv_id}' not found for owner '{owner}'.")

    ##########################################
    ############### PROCESSING ###############
    ##########################################

    async def process_all_pending(self, owner: str) -> ProcessAllResult:
        """Move every ``uploaded`` record to ``processing`` and queue it.

        The set of pending records is a snapshot taken under the owner lock.
        Uploads that arrive afterwards wait for the next sweep.
        """

        def _mark(records: list[dict]) -> tuple[list[tuple[str, str]], int]:
            queued: list[tuple[str, str]] = []
            already_processed = 0
            for index, raw in enumerate(records):
                status = raw.get("status")
                if status == CVStatus.PROCESSED.value:
                    already_processed += 1
                if status != CVStatus.UPLOADED.value:
                    continue
                record = self._parse_record(raw)
                if record is None:
                    continue
                record.mark_processing(run_id=str(uuid.uuid4()))
                records[index] = record.to_document()
                queued.append((record.id, record.run_id))
            return queued, already_processed

        queued, already_processed = await self.store.update(COLLECTION, owner, _mark)
        for cv_id, run_id in queued:
            self._queue_one(owner, cv_id, run_id)
        self.logging.info("Queued %d pending CV(s) for owner '%s'.", len(queued), owner)
        return ProcessAllResult(queued=len(queued), already_processed=already_processed)

    async def reprocess_cv(self, owner: str, cv_id: str) -> CVRecord:
        """Clear a record's previous output and queue it again.

        Works from any state. A run still in flight for the record is superseded
        and its result will be discarded.

        Raises:
            RecordNotFoundError: If the owner has no record with this id.
        """

        def _reset(records: list[dict]) -> CVRecord:
            index = self._index_of(records, cv_id)
            record = self._parse_record(records[index]) if index is not None else None
            if record is None:
                raise RecordNotFoundError(f"CV '{cv_id}' not found for owner '{owner}'.")
            record.reset_for_reprocess()
            record.mark_processing(run_id=str(uuid.uuid4()))
            records[index] = record.to_document()
            return record

        record = await self.store.update(COLLECTION, owner, _reset)
        self._queue_one(owner, record.id, record.run_id)
        self.logging.info("Re-queued CV '%s' (id=%s) for owner '%s'.", record.original_name, record.id, owner)
        return record

    def _queue_one(self, owner: str, cv_id: str, run_id: str) -> None:
        self.supervisor.submit(f"cv:{owner}:{cv_id}", self._process_record(owner, cv_id, run_id))

    async def _process_record(self, owner: str, cv_id: str, run_id: str) -> None:
        """Background job: extract, analyze and write the terminal state of one record."""
        try:
            record = await self.get_cv(owner, cv_id)
        except RecordNotFoundError:
            self.logging.info("CV id=%s was deleted before processing started. Skipping.", cv_id)
            return
        if record.run_id != run_id:
            self.logging.info("CV id=%s was re-queued before processing started. Skipping stale run.", cv_id)
            return

        try:
            text = await self._extract(record)
        except (UnsupportedFileTypeError, OSError) as e:
            await self._finish(owner, cv_id, run_id, AnalysisResult(success=False, error=f"Text extraction failed: {e}"))
            return
        except Exception as e:
            self.logging.exception("Unexpected extraction failure for CV id=%s.", cv_id)
            await self._finish(owner, cv_id, run_id, AnalysisResult(success=False, error=f"Text extraction failed: {e}"))
            return

        result = await self._run_analyzer(text, owner)
        await self._finish(owner, cv_id, run_id, result)

    async def _extract(self, record: CVRecord) -> str:
        """
        Raises:
            FileNotFoundError: If the stored path is missing or not a regular file.
            UnsupportedFileTypeError: From the extractor.
        """
        path = self.resolve_file_path(record.file_path)
        if not await asyncio.to_thread(os.path.isfile, path):
            raise FileNotFoundError(f"Stored file for CV '{record.original_name}' is missing or not a regular file: '{path}'")
        return await self.extractor.extract_text(path, record.file_type)

    async def _run_analyzer(self, text: str, owner: str) -> AnalysisResult:
        """Call the analyzer. Exceptions and odd return shapes become a normalised result."""
        try:
            raw: Any = await self.analyzer.analyze(text, owner)
        except Exception as e:
            self.logging.exception("Analyzer raised for owner '%s'.", owner)
            return AnalysisResult(success=False, error=f"AI processing failed: {e}")
        return AnalysisResult.coerce(raw)

    async def _finish(self, owner: str, cv_id: str, run_id: str, result: AnalysisResult) -> bool:
        """Write the terminal state if the record still belongs to this run.

        Returns:
            bool: False if the record was deleted or re-queued meanwhile.
        """

        def _apply(records: list[dict]) -> CVRecord | None:
            index = self._index_of(records, cv_id)
            if index is None or records[index].get("run_id") != run_id:
                return None
            record = self._parse_record(records[index])
            if record is None or record.status != CVStatus.PROCESSING:
                return None
            if result.success:
                record.mark_processed(result.data, result.get_confidence())
            else:
                record.mark_error(result.error)
            records[index] = record.to_document()
            return record

        record = await self.store.update(COLLECTION, owner, _apply)
        if record is None:
            self.logging.info("Discarding result for CV id=%s: record was deleted or re-queued.", cv_id)
            return False
        if record.status == CVStatus.PROCESSED:
            self.logging.info("Processed CV '%s' (id=%s).", record.original_name, cv_id, color="green")
        else:
            self.logging.warning("CV '%s' (id=%s) failed: %s", record.original_name, cv_id, record.error_message)
        return True

    ##########################################
    ################# DELETE #################
    ##########################################

    async def _remove_file(self, file_path: str) -> None:
        path = self.resolve_file_path(file_path)
        try:
            await asyncio.to_thread(os.unlink, path)
        except FileNotFoundError:
            self.logging.debug("Stored file '%s' was already gone.", path)
        except OSError as e:
            self.logging.warning("Could not remove stored file '%s': %s. File is orphaned.", path, e)

    async def delete_cv(self, owner: str, cv_id: str) -> CVRecord | None:
        """Remove a record, then best-effort remove its stored file.

        A failed file removal is logged and does not restore the record.

        Raises:
            RecordNotFoundError: If the owner has no record with this id.
        """

        def _remove(records: list[dict]) -> dict:
            index = self._index_of(records, cv_id)
            if index is None:
                raise RecordNotFoundError(f"CV '{cv_id}' not found for owner '{owner}'.")
            return records.pop(index)

        raw = await self.store.update(COLLECTION, owner, _remove)
        if raw.get("file_path"):
            await self._remove_file(raw["file_path"])
        self.logging.info("Deleted CV id=%s for owner '%s'.", cv_id, owner)
        return self._parse_record(raw)

    ##########################################
    ############## MAINTENANCE ###############
    ##########################################

    async def ensure_hashes_for_owner(self, owner: str) -> int:
        """Backfill missing digests. Files are hashed outside the lock.

        Returns:
            int: Number of records that received a digest.
        """
        missing = [
            (raw["id"], raw.get("file_path"))
            for raw in await self.store.load(COLLECTION, owner)
            if raw.get("id") and not normalize_hash(raw.get("content_hash"))
        ]
        computed: dict[str, str] = {}
        for cv_id, file_path in missing:
            if not file_path:
                continue
            try:
                computed[cv_id] = await compute_file_hash_async(self.resolve_file_path(file_path))
            except OSError as e:
                self.logging.warning("Cannot hash CV id=%s (%s). Skipping.", cv_id, e)
        if not computed:
            return 0

        def _apply(records: list[dict]) -> int:
            updated = 0
            for raw in records:
                digest = computed.get(raw.get("id"))
                if digest and not normalize_hash(raw.get("content_hash")):
                    raw["content_hash"] = digest
                    updated += 1
            return updated

        updated = await self.store.update(COLLECTION, owner, _apply)
        self.logging.info("Backfilled %d digest(s) for owner '%s'.", updated, owner)
        return updated

    async def reconcile_stale_processing(self, owner: str, max_age: timedelta | None = None) -> int:
        """Put records stuck in ``processing`` for longer than ``max_age`` back to ``uploaded``.

        Records are not re-queued; the next :meth:`process_all_pending` picks them up.

        Returns:
            int: Number of records reset.
        """
        cutoff = utc_now() - (self.stale_after if max_age is None else max_age)

        def _apply(records: list[dict]) -> int:
            reset = 0
            for index, raw in enumerate(records):
                if raw.get("status") != CVStatus.PROCESSING.value:
                    continue
                record = self._parse_record(raw)
                if record is None:
                    continue
                started = record.processing_started_at
                if started is not None and started.tzinfo is None:
                    started = started.replace(tzinfo=cutoff.tzinfo)
                if started is not None and started > cutoff:
                    continue
                record.reset_for_reprocess()
                records[index] = record.to_document()
                reset += 1
            return reset

        reset = await self.store.update(COLLECTION, owner, _apply)
        if reset:
            self.logging.warning("Reset %d stale processing CV(s) for owner '%s' to uploaded.", reset, owner)
        return reset

    async def reconcile_all_stale(self, max_age: timedelta | None = None) -> int:
        total = 0
        for owner in await self.store.list_owners(COLLECTION):
            total += await self.reconcile_stale_processing(owner, max_age=max_age)
        return total

    async def reindex_uploads(self, owner: str) -> list[CVRecord]:
        """Register stored upload files that no record of any owner references.

        The stored file name doubles as the original name, since the client's
        name is not known any more.

        Raises:
            InputValidationError: If the service was built without an UploadStorage.
        """
        if self.uploads is None:
            raise InputValidationError("Reindexing requires an upload storage.")

        referenced: set[str] = set()
        for known_owner in await self.store.list_owners(COLLECTION):
            for raw in await self.store.load(COLLECTION, known_owner):
                if raw.get("file_path"):
                    referenced.add(os.path.normpath(self.resolve_file_path(raw["file_path"])))

        created: list[CVRecord] = []
        for path, file_type in await asyncio.to_thread(self.uploads.iter_stored_files):
            if os.path.normpath(path) in referenced:
                continue
            name = os.path.basename(path)
            upload = UploadedFile(
                owner=owner,
                original_name=name,
                stored_name=name,
                file_path=self.uploads.to_stored_path(path),
                file_size=os.path.getsize(path),
                file_type=file_type.value,
            )
            created.append(await self.create_cv_record(upload))
        self.logging.info("Reindexed %d orphaned upload(s) for owner '%s'.", len(created), owner)
        return created
