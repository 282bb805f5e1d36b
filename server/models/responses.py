from pydantic import BaseModel

from shared.models.cv import CVBatchResult


class UploadResponse(CVBatchResult):
    """Batch result of an upload request. Files rejected before storage appear under ``failures``."""


class DeletedResponse(BaseModel):
    deleted: str


class CountResponse(BaseModel):
    count: int


class ResolveResponse(BaseModel):
    keys: list[str]
