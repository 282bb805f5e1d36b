from typing import Any

from pydantic import BaseModel


class SetActiveRequest(BaseModel):
    active: bool = True


class ResolveRequest(BaseModel):
    tokens: list[str]


class ReplaceTaxonomyRequest(BaseModel):
    entries: list[dict[str, Any]]
