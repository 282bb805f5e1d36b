import os

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import FileResponse

from server.dependencies.auth import verify_api_key
from server.models.responses import CountResponse, DeletedResponse, UploadResponse
from services.cv_pipeline.CVService import CVService
from shared.exceptions.ServiceErrors import InputValidationError, RecordNotFoundError, UnsupportedFileTypeError
from shared.models.cv import CVListResponse, CVRecord, ProcessAllResult, UploadedFile, UploadFailure

router = APIRouter(prefix="/cvs", tags=["cvs"], dependencies=[Depends(verify_api_key)])


def _service(request: Request) -> CVService:
    return request.app.state.cv_service


@router.post("/upload")
async def upload_cvs(
    request: Request,
    owner: str = Form(...),
    files: list[UploadFile] = File(...),
) -> UploadResponse:
    """Store uploaded CV files and register them as ``uploaded`` records.

    Each file is handled on its own: a rejected or failing file is reported
    under ``failures`` and does not affect the others.
    """
    helper_config = request.app.state.helper_config
    max_files = helper_config.get_positive_int("CV_MAX_FILES_PER_UPLOAD", default=10)
    if len(files) > max_files:
        raise InputValidationError(f"Too many files: {len(files)} (max {max_files}).")

    service = _service(request)
    service.validate_owner(owner)

    storage = request.app.state.upload_storage
    stored: list[UploadedFile] = []
    failures: list[UploadFailure] = []
    for upload in files:
        name = upload.filename or "unnamed"
        try:
            stored.append(await storage.store_upload(owner, name, upload))
        except (UnsupportedFileTypeError, InputValidationError, OSError) as e:
            failures.append(UploadFailure(original_name=name, error=str(e)))
        finally:
            await upload.close()

    result = await service.create_cv_records(stored)
    return UploadResponse(created=result.created, duplicates=result.duplicates, failures=failures + result.failures)


@router.get("/{owner}")
async def list_cvs(
    request: Request,
    owner: str,
    status: str | None = None,
    offset: int = 0,
    limit: int = 100,
) -> CVListResponse:
    return await _service(request).get_owner_cvs(owner, status=status, offset=offset, limit=limit)


@router.get("/{owner}/{cv_id}")
async def get_cv(request: Request, owner: str, cv_id: str) -> CVRecord:
    return await _service(request).get_cv(owner, cv_id)


@router.get("/{owner}/{cv_id}/download")
async def download_cv(request: Request, owner: str, cv_id: str) -> FileResponse:
    service = _service(request)
    record = await service.get_cv(owner, cv_id)
    path = service.resolve_file_path(record.file_path)
    if not os.path.isfile(path):
        raise RecordNotFoundError(f"Stored file for CV '{cv_id}' is missing.")
    return FileResponse(path, filename=record.original_name)


@router.post("/{owner}/process-all")
async def process_all(request: Request, owner: str) -> ProcessAllResult:
    """Queue every ``uploaded`` CV of the owner for extraction. Returns immediately."""
    return await _service(request).process_all_pending(owner)


@router.post("/{owner}/{cv_id}/reprocess")
async def reprocess_cv(request: Request, owner: str, cv_id: str) -> CVRecord:
    return await _service(request).reprocess_cv(owner, cv_id)


@router.post("/{owner}/backfill-hashes")
async def backfill_hashes(request: Request, owner: str) -> CountResponse:
    return CountResponse(count=await _service(request).ensure_hashes_for_owner(owner))


@router.delete("/{owner}/{cv_id}")
async def delete_cv(request: Request, owner: str, cv_id: str) -> DeletedResponse:
    await _service(request).delete_cv(owner, cv_id)
    return DeletedResponse(deleted=cv_id)
