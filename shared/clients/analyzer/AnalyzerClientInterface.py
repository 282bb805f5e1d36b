import json
import re
from abc import abstractmethod
from typing import Any

from shared.clients.ClientInterface import ClientInterface
from shared.clients.analyzer.TextAnalyzer import TextAnalyzer
from shared.helper.HelperConfig import HelperConfig
from shared.models.cv import AnalysisResult, utc_now

DEFAULT_PROMPT_TEMPLATE = """Extract CV information as JSON:
{
  "firstName": "first name or null",
  "lastName": "last name or null",
  "email": "email or null",
  "phone": "phone or null",
  "address": "address or null",
  "uniqueIdentifier": "any ID number or null",
  "confidence": {
    "name": "high|medium|low",
    "contact": "high|medium|low",
    "overall": "high|medium|low"
  },
  "extractionNotes": "any notes about ambiguities"
}

CV TEXT:
{CV_TEXT}"""

CV_FIELDS = ("firstName", "lastName", "email", "phone", "address", "uniqueIdentifier")
CONFIDENCE_KEYS = ("name", "contact", "overall")
CONFIDENCE_LEVELS = ("high", "medium", "low")

_CODE_FENCE_OPEN = re.compile(r"```(?:json)?\s*\n?", re.IGNORECASE)


def validate_confidence(value: Any) -> str:
    if isinstance(value, str) and value.strip().lower() in CONFIDENCE_LEVELS:
        return value.strip().lower()
    return "low"


def parse_cv_fields(reply: str) -> dict:
    """Parse a model reply into the CV field payload.

    Markdown code fences are stripped before decoding. Unknown keys are dropped,
    confidence levels are forced into high/medium/low. A reply that cannot be
    decoded yields an all-empty, low confidence payload whose notes carry the
    start of the raw reply.
    """
    extracted_at = utc_now().isoformat()
    clean = _CODE_FENCE_OPEN.sub("", (reply or "").strip()).replace("```", "").strip()
    try:
        parsed = json.loads(clean)
        if not isinstance(parsed, dict):
            raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    except ValueError as e:
        return {
            **{field: None for field in CV_FIELDS},
            "confidence": {key: "low" for key in CONFIDENCE_KEYS},
            "extractionNotes": f"AI response parsing failed: {e}. Raw response: {(reply or '')[:200]}...",
            "extractedAt": extracted_at,
        }

    confidence = parsed.get("confidence") if isinstance(parsed.get("confidence"), dict) else {}
    return {
        **{field: parsed.get(field) or None for field in CV_FIELDS},
        "confidence": {key: validate_confidence(confidence.get(key)) for key in CONFIDENCE_KEYS},
        "extractionNotes": parsed.get("extractionNotes") or None,
        "extractedAt": extracted_at,
    }


class AnalyzerClientInterface(ClientInterface, TextAnalyzer):
    """TextAnalyzer backed by a chat completion API.

    One request per CV: the prompt template gets the CV text substituted for
    ``{CV_TEXT}``, the reply is parsed with :func:`parse_cv_fields`. Transport
    and HTTP errors are returned as failed results, they never raise.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.model = self.get_config_val("MODEL", default=self._get_default_model(), val_type="string")
        self.max_tokens = int(self.get_config_val("MAX_TOKENS", default=2000, val_type="number"))
        self.temperature = float(self.get_config_val("TEMPERATURE", default=0.1, val_type="number"))
        self.prompt_template = helper_config.get_string_val(
            f"{self.get_client_type().upper()}_PROMPT_TEMPLATE", default=DEFAULT_PROMPT_TEMPLATE
        )

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "analyzer"

    @abstractmethod
    def _get_default_model(self) -> str:
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        pass

    ################ PAYLOAD BUILDER ##################
    def build_prompt(self, text: str) -> str:
        return self.prompt_template.replace("{CV_TEXT}", text or "")

    @abstractmethod
    def get_chat_payload(self, prompt: str) -> dict:
        """Build the backend specific request body for a single user prompt."""
        pass

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from the parsed response body.

        Raises:
            ValueError: If the response does not contain a reply.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def is_available(self) -> bool:
        try:
            response = await self.do_healthcheck()
        except Exception as e:
            self.logging.warning("Analyzer '%s' is not reachable: %s", self.get_engine_name(), e)
            return False
        return response.status_code < 300

    async def do_chat(self, prompt: str) -> str:
        """Send one chat request and return the reply text.

        Raises:
            UpstreamServiceError: If the client is not booted or the backend returns a non-2xx status.
            httpx.HTTPError: On transport failures and timeouts.
            ValueError: If the response does not contain a valid reply.
        """
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=self.get_chat_payload(prompt),
            raise_on_error=True,
        )
        return self.extract_chat_response(response.json())

    async def analyze(self, text: str, owner: str) -> AnalysisResult:
        engine = self.get_engine_name()
        try:
            reply = await self.do_chat(self.build_prompt(text))
        except Exception as e:
            self.logging.error("Analyzer '%s' request for owner '%s' failed: %s", engine, owner, e)
            return AnalysisResult(success=False, error=f"{engine} API request failed: {e}")
        return AnalysisResult(success=True, data=parse_cv_fields(reply))
