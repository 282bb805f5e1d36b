from shared.clients.analyzer.TextAnalyzer import TextAnalyzer
from shared.helper.HelperConfig import HelperConfig
from shared.models.cv import AnalysisResult, utc_now

PREVIEW_CHARS = 200


class AnalyzerClientFallback(TextAnalyzer):
    """Offline analyzer used when no AI backend is configured.

    Produces an empty low confidence payload so that records still reach the
    processed state and can be reviewed by hand.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()

    def get_engine_name(self) -> str:
        return "fallback"

    async def analyze(self, text: str, owner: str) -> AnalysisResult:
        text = text or ""
        preview = text[:PREVIEW_CHARS] + ("..." if len(text) > PREVIEW_CHARS else "")
        return AnalysisResult(
            success=True,
            data={
                "firstName": None,
                "lastName": None,
                "email": None,
                "phone": None,
                "address": None,
                "uniqueIdentifier": None,
                "confidence": {"name": "low", "contact": "low", "overall": "low"},
                "extractionNotes": "No AI analyzer configured; fields were not extracted.",
                "preview": preview,
                "extractedAt": utc_now().isoformat(),
            },
        )
