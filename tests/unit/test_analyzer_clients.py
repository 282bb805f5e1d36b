"""Unit tests for the analyzer clients and their manager. HTTP is mocked on the client."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from shared.clients.analyzer.AnalyzerClientInterface import parse_cv_fields, validate_confidence
from shared.clients.analyzer.AnalyzerClientManager import AnalyzerClientManager
from shared.clients.analyzer.claude.AnalyzerClientClaude import AnalyzerClientClaude
from shared.clients.analyzer.fallback.AnalyzerClientFallback import AnalyzerClientFallback
from shared.clients.analyzer.ollama.AnalyzerClientOllama import AnalyzerClientOllama
from shared.clients.analyzer.openai.AnalyzerClientOpenai import AnalyzerClientOpenai

REPLY = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "email": "ada@example.org",
    "phone": "",
    "confidence": {"name": "HIGH", "contact": "unsure"},
    "extractionNotes": "",
    "salary": "ignored",
}


def _response(status: int, body: dict) -> MagicMock:
    response = MagicMock(spec=httpx.Response)
    response.status_code = status
    response.is_success = 200 <= status < 300
    response.json.return_value = body
    response.text = json.dumps(body)
    return response


def _attach_client(client, response) -> AsyncMock:
    client._client = MagicMock()
    client._client.request = AsyncMock(return_value=response)
    return client._client.request


class TestParseCVFields:
    def test_fenced_json_is_decoded_and_normalised(self):
        data = parse_cv_fields("```json\n" + json.dumps(REPLY) + "\n```")
        assert data["firstName"] == "Ada"
        assert data["phone"] is None
        assert data["confidence"] == {"name": "high", "contact": "low", "overall": "low"}
        assert "salary" not in data
        assert data["extractionNotes"] is None
        assert data["extractedAt"]

    def test_undecodable_reply_yields_low_confidence_payload(self):
        data = parse_cv_fields("Sorry, I cannot help with that.")
        assert data["firstName"] is None
        assert set(data["confidence"].values()) == {"low"}
        assert "Sorry, I cannot help" in data["extractionNotes"]

    def test_non_object_json_is_a_parse_failure(self):
        assert parse_cv_fields("[1, 2]")["extractionNotes"].startswith("AI response parsing failed")

    @pytest.mark.parametrize("value,expected", [("Medium", "medium"), (" low ", "low"), ("great", "low"), (None, "low")])
    def test_validate_confidence(self, value, expected):
        assert validate_confidence(value) == expected


class TestOpenaiClient:
    @pytest.fixture
    def client(self, helper_config, monkeypatch):
        monkeypatch.setenv("ANALYZER_OPENAI_API_KEY", "sk-test")
        return AnalyzerClientOpenai(helper_config=helper_config)

    def test_requires_api_key(self, helper_config, monkeypatch):
        monkeypatch.delenv("ANALYZER_OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError):
            AnalyzerClientOpenai(helper_config=helper_config)

    async def test_analyze_posts_prompt_and_parses_reply(self, client):
        request = _attach_client(
            client, _response(200, {"choices": [{"message": {"content": json.dumps(REPLY)}}]})
        )
        result = await client.analyze("Ada Lovelace, analyst", "u1")

        assert result.success is True
        assert result.data["lastName"] == "Lovelace"
        method = request.await_args.args[0]
        kwargs = request.await_args.kwargs
        assert method == "POST"
        assert kwargs["url"] == "https://api.openai.com/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert "Ada Lovelace, analyst" in kwargs["json"]["messages"][0]["content"]
        assert kwargs["json"]["max_tokens"] == 2000

    async def test_http_error_becomes_failed_result(self, client):
        _attach_client(client, _response(500, {"error": "down"}))
        result = await client.analyze("text", "u1")
        assert result.success is False
        assert result.error.startswith("openai API request failed")

    async def test_transport_error_becomes_failed_result(self, client):
        client._client = MagicMock()
        client._client.request = AsyncMock(side_effect=httpx.ConnectError("refused"))
        result = await client.analyze("text", "u1")
        assert result.success is False
        assert "refused" in result.error

    async def test_unbooted_client_fails_softly(self, client):
        result = await client.analyze("text", "u1")
        assert result.success is False

    def test_missing_reply_raises(self, client):
        with pytest.raises(ValueError):
            client.extract_chat_response({"choices": []})

    async def test_is_available(self, client):
        _attach_client(client, _response(200, {"data": []}))
        assert await client.is_available() is True
        client._client.request = AsyncMock(side_effect=httpx.ConnectError("refused"))
        assert await client.is_available() is False


class TestOllamaClient:
    @pytest.fixture
    def client(self, helper_config, monkeypatch):
        monkeypatch.setenv("ANALYZER_OLLAMA_BASE_URL", "http://ollama:11434/")
        monkeypatch.delenv("ANALYZER_OLLAMA_API_KEY", raising=False)
        monkeypatch.setenv("ANALYZER_OLLAMA_MODEL", "qwen2.5")
        return AnalyzerClientOllama(helper_config=helper_config)

    def test_payload(self, client):
        payload = client.get_chat_payload("hello")
        assert payload["model"] == "qwen2.5"
        assert payload["stream"] is False
        assert payload["format"] == "json"

    def test_no_auth_header_without_key(self, client):
        assert client._get_auth_header() == {}

    async def test_analyze(self, client):
        request = _attach_client(client, _response(200, {"message": {"content": json.dumps(REPLY)}}))
        result = await client.analyze("cv", "u1")
        assert result.data["email"] == "ada@example.org"
        assert request.await_args.kwargs["url"] == "http://ollama:11434/api/chat"


class TestClaudeClient:
    @pytest.fixture
    def client(self, helper_config, monkeypatch):
        monkeypatch.setenv("ANALYZER_CLAUDE_API_KEY", "key")
        return AnalyzerClientClaude(helper_config=helper_config)

    def test_headers(self, client):
        assert client._get_auth_header() == {"x-api-key": "key", "anthropic-version": "2023-06-01"}

    def test_extract_reply(self, client):
        assert client.extract_chat_response({"content": [{"type": "text", "text": "{}"}]}) == "{}"
        with pytest.raises(ValueError):
            client.extract_chat_response({"content": []})

    def test_custom_prompt_template(self, helper_config, monkeypatch):
        monkeypatch.setenv("ANALYZER_CLAUDE_API_KEY", "key")
        monkeypatch.setenv("ANALYZER_PROMPT_TEMPLATE", "Fields please: {CV_TEXT}")
        client = AnalyzerClientClaude(helper_config=helper_config)
        assert client.build_prompt("abc") == "Fields please: abc"


class TestFallbackAndManager:
    async def test_fallback_returns_low_confidence_preview(self, helper_config):
        result = await AnalyzerClientFallback(helper_config=helper_config).analyze("x" * 300, "u1")
        assert result.success is True
        assert result.data["confidence"]["overall"] == "low"
        assert result.data["preview"] == "x" * 200 + "..."

    def test_manager_defaults_to_fallback(self, helper_config):
        assert isinstance(AnalyzerClientManager(helper_config=helper_config).get_client(), AnalyzerClientFallback)

    def test_manager_picks_configured_engine(self, helper_config, monkeypatch):
        monkeypatch.setenv("ANALYZER_ENGINE", "OpenAI")
        monkeypatch.setenv("ANALYZER_OPENAI_API_KEY", "sk-test")
        assert isinstance(AnalyzerClientManager(helper_config=helper_config).get_client(), AnalyzerClientOpenai)

    def test_manager_rejects_unknown_engine(self, helper_config, monkeypatch):
        monkeypatch.setenv("ANALYZER_ENGINE", "nonexistent")
        with pytest.raises(ValueError):
            AnalyzerClientManager(helper_config=helper_config)
