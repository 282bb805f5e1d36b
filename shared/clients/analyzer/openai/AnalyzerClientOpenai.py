from shared.clients.analyzer.AnalyzerClientInterface import AnalyzerClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class AnalyzerClientOpenai(AnalyzerClientInterface):
    """Analyzer for OpenAI and OpenAI compatible chat completion endpoints."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    def _get_default_model(self) -> str:
        return "gpt-4o-mini"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/v1/models"

    def _get_endpoint_chat(self) -> str:
        return "/v1/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, prompt: str) -> dict:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    def extract_chat_response(self, response_data: dict) -> str:
        try:
            content = response_data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if content is None:
            raise ValueError("OpenAI response does not contain a valid message. Response keys: %s" % list(response_data.keys()))
        return content
