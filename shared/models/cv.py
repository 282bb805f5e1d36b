"""Pydantic models for CV records and the processing pipeline.

Lifecycle of a record::

    uploaded -> processing -> processed | error
       ^                          |
       +------- reprocess --------+
"""

import os
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from shared.exceptions.ServiceErrors import UnsupportedFileTypeError

DEFAULT_ANALYSIS_ERROR = "AI processing failed"
NO_DATA_ERROR = "Analyzer returned no data"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CVStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"


class CVFileType(str, Enum):
    PDF = "pdf"
    DOC = "doc"
    DOCX = "docx"
    TXT = "txt"

    @classmethod
    def from_value(cls, value: Any) -> "CVFileType":
        """Parse a declared type such as "PDF", ".docx" or "txt".

        Raises:
            UnsupportedFileTypeError: If the type is not one of pdf, doc, docx, txt.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower().lstrip(".")
        try:
            return cls(normalized)
        except ValueError:
            raise UnsupportedFileTypeError(f"Unsupported file type: '{value}'. Allowed types: {[t.value for t in cls]}")

    @classmethod
    def from_filename(cls, filename: str) -> "CVFileType":
        return cls.from_value(os.path.splitext(filename or "")[1])


class UploadedFile(BaseModel):
    """A file already written to disk by the upload collaborator."""

    owner: str = Field(min_length=1)
    original_name: str = Field(min_length=1)
    stored_name: str = Field(min_length=1)
    file_path: str = Field(min_length=1)
    file_size: int | None = None
    file_type: str
    content_hash: str | None = None


class CVRecord(BaseModel):
    """One uploaded CV and the state of its extraction.

    ``processing`` is derived from ``status`` and cannot drift from it: the
    validator below re-derives it whenever a record is built or loaded, and the
    transition methods keep both in step.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner: str
    original_name: str
    stored_name: str
    file_path: str
    file_size: int | None = None
    file_type: CVFileType
    content_hash: str | None = None

    status: CVStatus = CVStatus.UPLOADED
    processing: bool = False
    run_id: str | None = None
    uploaded_at: datetime = Field(default_factory=utc_now)
    processing_started_at: datetime | None = None
    processed_at: datetime | None = None

    extraction_data: dict[str, Any] | None = None
    confidence: dict[str, Any] | None = None
    error_message: str | None = None

    @model_validator(mode="after")
    def _sync_lifecycle_flags(self) -> "CVRecord":
        self.processing = self.status == CVStatus.PROCESSING
        if self.status == CVStatus.ERROR and not self.error_message:
            self.error_message = "Unknown processing error"
        if self.status == CVStatus.PROCESSED:
            self.error_message = None
            if self.processed_at is None:
                self.processed_at = utc_now()
        return self

    ##########################################
    ############# TRANSITIONS ################
    ##########################################

    def mark_processing(self, run_id: str | None = None) -> None:
        self.status = CVStatus.PROCESSING
        self.processing = True
        self.run_id = run_id or str(uuid.uuid4())
        self.processing_started_at = utc_now()

    def mark_processed(self, extraction_data: dict[str, Any] | None, confidence: dict[str, Any] | None = None) -> None:
        self.status = CVStatus.PROCESSED
        self.processing = False
        self.processed_at = utc_now()
        self.extraction_data = extraction_data
        self.confidence = confidence
        self.error_message = None

    def mark_error(self, message: str | None) -> None:
        self.status = CVStatus.ERROR
        self.processing = False
        self.processed_at = utc_now()
        self.error_message = message or DEFAULT_ANALYSIS_ERROR

    def reset_for_reprocess(self) -> None:
        """Back to ``uploaded`` with all previous output cleared."""
        self.status = CVStatus.UPLOADED
        self.processing = False
        self.run_id = None
        self.processing_started_at = None
        self.processed_at = None
        self.extraction_data = None
        self.confidence = None
        self.error_message = None

    def to_document(self) -> dict:
        return self.model_dump(mode="json")


class AnalysisResult(BaseModel):
    """Normalised outcome of one TextAnalyzer call."""

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None

    def get_confidence(self) -> dict[str, Any] | None:
        confidence = (self.data or {}).get("confidence")
        return confidence if isinstance(confidence, dict) else None

    @classmethod
    def coerce(cls, raw: Any) -> "AnalysisResult":
        """Turn whatever an analyzer returned into an AnalysisResult.

        Accepts an AnalysisResult, a ``{success, data?, error?}`` dict, a bare
        payload dict or any other value (wrapped as ``{"value": ...}``). A success
        without data counts as a failure. Never raises.
        """
        if isinstance(raw, AnalysisResult):
            result = raw
        elif raw is None:
            return cls(success=False, error="Analyzer returned no result")
        elif isinstance(raw, dict) and "success" in raw:
            data = raw.get("data")
            if data is not None and not isinstance(data, dict):
                data = {"value": data}
            error = raw.get("error")
            try:
                result = cls(success=bool(raw.get("success")), data=data, error=str(error) if error is not None else None)
            except ValidationError as e:
                return cls(success=False, error=f"Malformed analyzer result: {e}")
        elif isinstance(raw, dict):
            result = cls(success=True, data=raw)
        else:
            result = cls(success=True, data={"value": raw})

        if result.success and result.data is None:
            return cls(success=False, error=NO_DATA_ERROR)
        if not result.success and not result.error:
            result = result.model_copy(update={"error": DEFAULT_ANALYSIS_ERROR})
        return result


class CVListResponse(BaseModel):
    records: list[CVRecord]
    total: int
    offset: int
    limit: int


class DuplicateUpload(BaseModel):
    original_name: str
    existing_id: str
    rejected: bool


class UploadFailure(BaseModel):
    original_name: str
    error: str


class CVBatchResult(BaseModel):
    """Outcome of registering a batch of uploads. One failing file never aborts the rest."""

    created: list[CVRecord] = []
    duplicates: list[DuplicateUpload] = []
    failures: list[UploadFailure] = []


class ProcessAllResult(BaseModel):
    queued: int
    already_processed: int
