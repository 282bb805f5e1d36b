from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import SetActiveRequest
from server.models.responses import DeletedResponse
from services.mnemonic_records.LLMConfigService import LLMConfigService
from shared.models.llm_config import LLMConfigCreate

router = APIRouter(prefix="/llms", tags=["llms"], dependencies=[Depends(verify_api_key)])


def _service(request: Request) -> LLMConfigService:
    return request.app.state.llm_service


# API keys never leave the server unmasked, hence dicts from to_public() below


@router.post("/{owner}")
async def create_llm_config(request: Request, owner: str, body: LLMConfigCreate) -> dict:
    return (await _service(request).create(owner, body)).to_public()


@router.get("/{owner}")
async def list_llm_configs(request: Request, owner: str) -> list[dict]:
    return [config.to_public() for config in await _service(request).list_all(owner)]


@router.get("/{owner}/active")
async def get_active_llm_config(request: Request, owner: str) -> dict | None:
    config = await _service(request).get_active(owner)
    return config.to_public() if config else None


@router.put("/{owner}/{mnemonic}/active")
async def set_active_llm_config(request: Request, owner: str, mnemonic: str, body: SetActiveRequest) -> dict:
    return (await _service(request).set_active(owner, mnemonic, body.active)).to_public()


@router.delete("/{owner}/{mnemonic}")
async def delete_llm_config(request: Request, owner: str, mnemonic: str) -> DeletedResponse:
    await _service(request).delete(owner, mnemonic)
    return DeletedResponse(deleted=mnemonic)
