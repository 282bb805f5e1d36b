"""
Shared fixtures for the CV tracker test suite.
Every test gets its own data directory under tmp_path; no network is used.
"""

import logging

import pytest

from services.cv_pipeline.CVService import CVService
from services.cv_pipeline.TaskSupervisor import TaskSupervisor
from services.cv_pipeline.UploadStorage import UploadStorage
from shared.clients.analyzer.TextAnalyzer import TextAnalyzer
from shared.clients.extractor.TextExtractor import TextExtractor
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from shared.models.cv import AnalysisResult
from shared.store.DocumentStore import DocumentStore


class StubAnalyzer(TextAnalyzer):
    """Analyzer returning a fixed value (or raising) and remembering its inputs."""

    def __init__(self, result=None, exc: Exception | None = None):
        self.result = result if result is not None else AnalysisResult(
            success=True,
            data={"firstName": "Ada", "lastName": "Lovelace", "confidence": {"name": "high", "contact": "low", "overall": "medium"}},
        )
        self.exc = exc
        self.calls: list[tuple[str, str]] = []

    async def analyze(self, text: str, owner: str):
        self.calls.append((text, owner))
        if self.exc is not None:
            raise self.exc
        return self.result


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    path = tmp_path / "data"
    monkeypatch.setenv("ROOT_DIR", str(tmp_path))
    monkeypatch.setenv("DATA_DIR", str(path))
    for key in ("CV_DUPLICATE_POLICY", "ANALYZER_ENGINE", "API_SERVER_API_KEY", "UPLOADS_DIR"):
        monkeypatch.delenv(key, raising=False)
    return path


@pytest.fixture
def helper_config(data_dir) -> HelperConfig:
    return HelperConfig(logger=ColorLogger(logging.getLogger("cv_tracker.tests")))


@pytest.fixture
def store(helper_config, data_dir) -> DocumentStore:
    return DocumentStore(helper_config=helper_config, base_dir=data_dir)


@pytest.fixture
def analyzer() -> StubAnalyzer:
    return StubAnalyzer()


@pytest.fixture
def supervisor(helper_config) -> TaskSupervisor:
    return TaskSupervisor(helper_config=helper_config, concurrency=2)


@pytest.fixture
def upload_storage(helper_config, data_dir) -> UploadStorage:
    return UploadStorage(helper_config=helper_config, data_dir=str(data_dir))


@pytest.fixture
def cv_service(helper_config, store, analyzer, supervisor, upload_storage) -> CVService:
    return CVService(
        helper_config=helper_config,
        store=store,
        extractor=TextExtractor(helper_config=helper_config),
        analyzer=analyzer,
        supervisor=supervisor,
        uploads=upload_storage,
    )


@pytest.fixture
def write_upload(data_dir):
    """Write a file below data/uploads and return its UploadedFile-style dict."""

    def _write(name: str, content: bytes | str = b"hello", owner: str = "u1") -> dict:
        ext = name.rsplit(".", 1)[-1].lower()
        folder = data_dir / "uploads" / ext
        folder.mkdir(parents=True, exist_ok=True)
        stored_name = f"stored-{name}"
        payload = content.encode("utf-8") if isinstance(content, str) else content
        (folder / stored_name).write_bytes(payload)
        return {
            "owner": owner,
            "original_name": name,
            "stored_name": stored_name,
            "file_path": f"uploads/{ext}/{stored_name}",
            "file_size": len(payload),
            "file_type": ext,
        }

    return _write


@pytest.fixture
def make_analyzer():
    """Factory for StubAnalyzer instances with a custom result or exception."""
    return StubAnalyzer
