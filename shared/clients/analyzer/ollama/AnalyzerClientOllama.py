from shared.clients.analyzer.AnalyzerClientInterface import AnalyzerClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class AnalyzerClientOllama(AnalyzerClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Ollama"

    def _get_default_model(self) -> str:
        return "llama3.1"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/api/tags"

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, prompt: str) -> dict:
        """
        Returns:
            dict: Non-streaming chat request asking Ollama for JSON output.
        """
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
            "format": "json",
            "options": {"temperature": self.temperature, "num_predict": self.max_tokens},
        }

    def extract_chat_response(self, response_data: dict) -> str:
        content = (response_data.get("message") or {}).get("content")
        if content is None:
            raise ValueError("Ollama chat response does not contain a valid message. Response keys: %s" % list(response_data.keys()))
        return content
