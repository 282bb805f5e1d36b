from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import SetActiveRequest
from server.models.responses import CountResponse, DeletedResponse
from services.mnemonic_records.TenderSearchService import TenderSearchService
from shared.models.tender_search import TenderSearch, TenderSearchCreate

router = APIRouter(prefix="/tender-searches", tags=["tender-searches"], dependencies=[Depends(verify_api_key)])


def _service(request: Request) -> TenderSearchService:
    return request.app.state.tender_search_service


@router.post("/{owner}")
async def create_tender_search(request: Request, owner: str, body: TenderSearchCreate) -> TenderSearch:
    return await _service(request).create(owner, body)


@router.get("/{owner}")
async def list_tender_searches(request: Request, owner: str) -> list[TenderSearch]:
    return await _service(request).list_all(owner)


@router.get("/{owner}/active")
async def get_active_tender_search(request: Request, owner: str) -> TenderSearch | None:
    return await _service(request).get_active(owner)


@router.put("/{owner}/{mnemonic}/active")
async def set_active_tender_search(request: Request, owner: str, mnemonic: str, body: SetActiveRequest) -> TenderSearch:
    return await _service(request).set_active(owner, mnemonic, body.active)


@router.delete("/{owner}")
async def clear_tender_searches(request: Request, owner: str) -> CountResponse:
    return CountResponse(count=await _service(request).clear_all(owner))


@router.delete("/{owner}/{mnemonic}")
async def delete_tender_search(request: Request, owner: str, mnemonic: str) -> DeletedResponse:
    await _service(request).delete(owner, mnemonic)
    return DeletedResponse(deleted=mnemonic)
