from abc import ABC, abstractmethod

from shared.models.cv import AnalysisResult


class TextAnalyzer(ABC):
    """Capability that turns extracted CV text into structured fields."""

    async def boot(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def is_available(self) -> bool:
        """Returns True if the analyzer backend can currently be reached."""
        return True

    @abstractmethod
    async def analyze(self, text: str, owner: str) -> AnalysisResult:
        """Analyze one CV text.

        Args:
            text (str): The extracted CV text.
            owner (str): Owner of the CV, for provider-side accounting.

        Returns:
            AnalysisResult: success with a data payload, or failure with an error message.
        """
        pass
