from typing import Any

from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import ReplaceTaxonomyRequest, ResolveRequest
from server.models.responses import CountResponse, DeletedResponse, ResolveResponse
from services.taxonomy.TaxonomyService import TaxonomyService
from shared.models.taxonomy import TaxonomyDocument, TaxonomyEntry

router = APIRouter(prefix="/taxonomy", tags=["taxonomy"], dependencies=[Depends(verify_api_key)])


def _service(request: Request) -> TaxonomyService:
    return request.app.state.taxonomy_service


# fixed paths first, so they are not captured by /{key}


@router.get("")
async def search_taxonomy(request: Request, q: str = "", category: str | None = None) -> list[TaxonomyEntry]:
    """List all entries, or those matching ``q`` (substring) and ``category``."""
    return await _service(request).search(q, category)


@router.get("/export")
async def export_taxonomy(request: Request) -> TaxonomyDocument:
    return await _service(request).export_all()


@router.post("/resolve")
async def resolve_tokens(request: Request, body: ResolveRequest) -> ResolveResponse:
    return ResolveResponse(keys=await _service(request).resolve(body.tokens))


@router.put("/replace")
async def replace_taxonomy(request: Request, body: ReplaceTaxonomyRequest) -> CountResponse:
    return CountResponse(count=await _service(request).replace_all(body.entries))


@router.post("")
async def create_entry(request: Request, body: dict[str, Any]) -> TaxonomyEntry:
    return await _service(request).create(body)


@router.get("/{key}")
async def get_entry(request: Request, key: str) -> TaxonomyEntry:
    return await _service(request).get(key)


@router.patch("/{key}")
async def update_entry(request: Request, key: str, body: dict[str, Any]) -> TaxonomyEntry:
    return await _service(request).update(key, body)


@router.delete("/{key}")
async def delete_entry(request: Request, key: str) -> DeletedResponse:
    await _service(request).remove(key)
    return DeletedResponse(deleted=key)
