import asyncio
import os

from shared.helper.HelperConfig import HelperConfig
from shared.models.cv import CVFileType


class TextExtractor:
    """Turns a stored CV file into plain text for the analyzer.

    Plain text files are decoded as UTF-8 (undecodable bytes are replaced).
    Binary formats are not parsed; they yield a short size placeholder such
    as ``Binary PDF (12KB)``.
    """

    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()

    def _read(self, path: str, file_type: CVFileType) -> str:
        if not os.path.isfile(path):
            raise FileNotFoundError(f"CV file not found: '{path}'")
        if file_type == CVFileType.TXT:
            with open(path, "r", encoding="utf-8", errors="replace") as handle:
                return handle.read()
        size_kb = round(os.path.getsize(path) / 1024)
        return f"Binary {file_type.value.upper()} ({size_kb}KB)"

    async def extract_text(self, path: str, file_type: CVFileType | str) -> str:
        """Extract the text of one file.

        Args:
            path (str): Absolute path to the stored file.
            file_type (CVFileType | str): Declared type of the file.

        Returns:
            str: The extracted text.

        Raises:
            UnsupportedFileTypeError: If the type is not supported (checked before the file).
            FileNotFoundError: If the file does not exist.
        """
        file_type = CVFileType.from_value(file_type)
        text = await asyncio.to_thread(self._read, path, file_type)
        self.logging.debug("Extracted %d characters from '%s'.", len(text), path)
        return text
