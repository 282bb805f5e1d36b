from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.responses import DeletedResponse
from services.mnemonic_records.PromptService import PromptService
from shared.models.prompt import Prompt, PromptCreate, PromptUpdate

router = APIRouter(prefix="/prompts", tags=["prompts"], dependencies=[Depends(verify_api_key)])


def _service(request: Request) -> PromptService:
    return request.app.state.prompt_service


@router.post("/{owner}")
async def create_prompt(request: Request, owner: str, body: PromptCreate) -> Prompt:
    return await _service(request).create(owner, body)


@router.get("/{owner}")
async def list_prompts(request: Request, owner: str) -> list[Prompt]:
    return await _service(request).list_all(owner)


@router.get("/{owner}/{mnemonic}")
async def get_prompt(request: Request, owner: str, mnemonic: str) -> Prompt:
    return await _service(request).get(owner, mnemonic)


@router.patch("/{owner}/{mnemonic}")
async def update_prompt(request: Request, owner: str, mnemonic: str, body: PromptUpdate) -> Prompt:
    return await _service(request).update(owner, mnemonic, body)


@router.delete("/{owner}/{mnemonic}")
async def delete_prompt(request: Request, owner: str, mnemonic: str) -> DeletedResponse:
    await _service(request).delete(owner, mnemonic)
    return DeletedResponse(deleted=mnemonic)
