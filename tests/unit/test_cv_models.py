"""Unit tests for CVRecord lifecycle invariants and AnalysisResult normalisation."""

import pytest

from shared.exceptions.ServiceErrors import UnsupportedFileTypeError
from shared.models.cv import AnalysisResult, CVFileType, CVRecord, CVStatus


def _make_record(**overrides) -> CVRecord:
    data = {
        "owner": "u1",
        "original_name": "cv.txt",
        "stored_name": "s.txt",
        "file_path": "uploads/txt/s.txt",
        "file_type": "txt",
    }
    data.update(overrides)
    return CVRecord(**data)


def _assert_invariants(record: CVRecord) -> None:
    assert record.processing == (record.status == CVStatus.PROCESSING)
    if record.status == CVStatus.PROCESSED:
        assert record.processed_at is not None
        assert record.error_message is None
    if record.status == CVStatus.ERROR:
        assert record.error_message


class TestCVFileType:
    @pytest.mark.parametrize("value,expected", [("PDF", CVFileType.PDF), (".docx", CVFileType.DOCX), ("txt", CVFileType.TXT)])
    def test_from_value(self, value, expected):
        assert CVFileType.from_value(value) == expected

    def test_unknown_type_raises(self):
        with pytest.raises(UnsupportedFileTypeError):
            CVFileType.from_value("exe")

    def test_from_filename(self):
        assert CVFileType.from_filename("Resume.Final.DOC") == CVFileType.DOC


class TestCVRecordLifecycle:
    def test_new_record_is_uploaded(self):
        record = _make_record()
        assert record.status == CVStatus.UPLOADED
        assert record.id
        _assert_invariants(record)

    def test_ids_are_unique(self):
        assert _make_record().id != _make_record().id

    def test_full_transition_chain_keeps_invariants(self):
        record = _make_record()
        record.mark_processing("run-1")
        _assert_invariants(record)
        assert record.run_id == "run-1"
        record.mark_processed({"firstName": "Ada"}, {"overall": "high"})
        _assert_invariants(record)
        record.reset_for_reprocess()
        _assert_invariants(record)
        assert record.extraction_data is None and record.run_id is None
        record.mark_processing()
        record.mark_error(None)
        _assert_invariants(record)
        assert record.error_message == "AI processing failed"

    def test_loaded_flag_is_rederived_from_status(self):
        record = CVRecord.model_validate({**_make_record().to_document(), "status": "processing", "processing": False})
        assert record.processing is True

    def test_loaded_error_without_message_gets_one(self):
        record = CVRecord.model_validate({**_make_record().to_document(), "status": "error", "error_message": None})
        _assert_invariants(record)

    def test_document_is_json_ready(self):
        document = _make_record().to_document()
        assert document["status"] == "uploaded"
        assert isinstance(document["uploaded_at"], str)


class TestAnalysisResultCoerce:
    def test_passes_result_through(self):
        result = AnalysisResult(success=True, data={"a": 1})
        assert AnalysisResult.coerce(result) == result

    def test_none_is_error(self):
        result = AnalysisResult.coerce(None)
        assert not result.success and result.error

    def test_shaped_dict(self):
        result = AnalysisResult.coerce({"success": True, "data": {"firstName": "Ada"}})
        assert result.success and result.data == {"firstName": "Ada"}

    def test_failure_without_message_gets_default(self):
        result = AnalysisResult.coerce({"success": False})
        assert result.error == "AI processing failed"

    @pytest.mark.parametrize("raw", [{"success": True}, {"success": True, "data": None}, AnalysisResult(success=True)])
    def test_success_without_data_is_error(self, raw):
        result = AnalysisResult.coerce(raw)
        assert not result.success
        assert result.data is None
        assert result.error == "Analyzer returned no data"

    def test_bare_dict_is_payload(self):
        assert AnalysisResult.coerce({"firstName": "Ada"}).data == {"firstName": "Ada"}

    def test_scalar_is_wrapped(self):
        assert AnalysisResult.coerce("text").data == {"value": "text"}

    def test_non_dict_data_is_wrapped(self):
        assert AnalysisResult.coerce({"success": True, "data": [1, 2]}).data == {"value": [1, 2]}

    def test_confidence_extraction(self):
        result = AnalysisResult(success=True, data={"confidence": {"overall": "low"}})
        assert result.get_confidence() == {"overall": "low"}
        assert AnalysisResult(success=True, data={"confidence": "x"}).get_confidence() is None
