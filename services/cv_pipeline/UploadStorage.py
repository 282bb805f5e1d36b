import asyncio
import hashlib
import inspect
import os
import uuid
from contextlib import suppress
from typing import Any

from shared.exceptions.ServiceErrors import InputValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperHash import CHUNK_SIZE, HASH_ALGORITHM
from shared.models.cv import CVFileType, UploadedFile

SUPPORTED_EXTENSIONS = {t.value for t in CVFileType}


class UploadStorage:
    """Writes incoming upload streams below ``UPLOADS_DIR``.

    Files land at ``<UPLOADS_DIR>/<type>/<uuid><ext>``. The content digest is
    computed while streaming, so no second pass over the file is needed.
    """

    def __init__(self, helper_config: HelperConfig, data_dir: str | None = None, uploads_dir: str | None = None) -> None:
        self.logging = helper_config.get_logger()
        self.data_dir = os.path.abspath(data_dir or helper_config.get_data_dir())
        self.uploads_dir = os.path.abspath(uploads_dir or helper_config.get_uploads_dir(self.data_dir))
        self.max_bytes = int(float(helper_config.get_number_val("CV_MAX_UPLOAD_MB", default=10)) * 1024 * 1024)

    ##########################################
    ################ GETTER ##################
    ##########################################

    def to_stored_path(self, path: str) -> str:
        """Path as persisted on the record: relative to the data dir when inside it, else absolute."""
        path = os.path.abspath(path)
        if os.path.commonpath([path, self.data_dir]) == self.data_dir:
            return os.path.relpath(path, self.data_dir)
        return path

    def iter_stored_files(self) -> list[tuple[str, CVFileType]]:
        """List every stored upload with a supported extension as (absolute path, type)."""
        found: list[tuple[str, CVFileType]] = []
        if not os.path.isdir(self.uploads_dir):
            return found
        for root, _dirs, files in os.walk(self.uploads_dir):
            for name in sorted(files):
                ext = os.path.splitext(name)[1].lower().lstrip(".")
                if ext in SUPPORTED_EXTENSIONS:
                    found.append((os.path.join(root, name), CVFileType(ext)))
        return found

    ##########################################
    ################ WRITING #################
    ##########################################

    async def _read_chunk(self, source: Any) -> bytes:
        chunk = source.read(CHUNK_SIZE)
        if inspect.isawaitable(chunk):
            chunk = await chunk
        return chunk or b""

    async def store_upload(self, owner: str, original_name: str, source: Any) -> UploadedFile:
        """Stream one upload to disk.

        Args:
            owner (str): Owner of the upload.
            original_name (str): File name as sent by the client, used for the type.
            source (Any): Object with a ``read(size)`` method, sync or async (e.g. a FastAPI UploadFile).

        Returns:
            UploadedFile: Descriptor for :meth:`CVService.create_cv_record`.

        Raises:
            UnsupportedFileTypeError: If the extension is not pdf, doc, docx or txt.
            InputValidationError: If the file exceeds CV_MAX_UPLOAD_MB. The partial file is removed.
        """
        file_type = CVFileType.from_filename(original_name)
        stored_name = f"{uuid.uuid4()}.{file_type.value}"
        target_dir = os.path.join(self.uploads_dir, file_type.value)
        target = os.path.join(target_dir, stored_name)
        await asyncio.to_thread(os.makedirs, target_dir, exist_ok=True)

        digest = hashlib.new(HASH_ALGORITHM)
        size = 0
        try:
            handle = await asyncio.to_thread(open, target, "wb")
            with handle:
                while chunk := await self._read_chunk(source):
                    size += len(chunk)
                    if size > self.max_bytes:
                        raise InputValidationError(
                            f"File '{original_name}' exceeds the upload limit of {self.max_bytes // (1024 * 1024)}MB."
                        )
                    digest.update(chunk)
                    await asyncio.to_thread(handle.write, chunk)
        except BaseException:
            with suppress(OSError):
                os.unlink(target)
            raise

        self.logging.debug("Stored upload '%s' for owner '%s' at '%s' (%d bytes).", original_name, owner, target, size)
        return UploadedFile(
            owner=owner,
            original_name=original_name,
            stored_name=stored_name,
            file_path=self.to_stored_path(target),
            file_size=size,
            file_type=file_type.value,
            content_hash=digest.hexdigest(),
        )
