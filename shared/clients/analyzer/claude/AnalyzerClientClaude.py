from shared.clients.analyzer.AnalyzerClientInterface import AnalyzerClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

ANTHROPIC_VERSION = "2023-06-01"


class AnalyzerClientClaude(AnalyzerClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.anthropic.com", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Claude"

    def _get_default_model(self) -> str:
        return "claude-3-5-haiku-latest"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.anthropic.com"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"x-api-key": self._api_key, "anthropic-version": ANTHROPIC_VERSION}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/v1/models"

    def _get_endpoint_chat(self) -> str:
        return "/v1/messages"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, prompt: str) -> dict:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }

    def extract_chat_response(self, response_data: dict) -> str:
        """Returns the text of the first content block of a /v1/messages response."""
        blocks = response_data.get("content") or []
        text = blocks[0].get("text") if blocks and isinstance(blocks[0], dict) else None
        if text is None:
            raise ValueError("Claude response does not contain a text block. Response keys: %s" % list(response_data.keys()))
        return text
