"""Base model for records identified by a per-owner mnemonic."""

from datetime import datetime

from pydantic import BaseModel, Field

from shared.models.cv import utc_now


class MnemonicRecord(BaseModel):
    """A record whose identity is a short mnemonic, unique within one owner's collection."""

    mnemonic: str
    owner: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ActivatableRecord(MnemonicRecord):
    """A mnemonic record of which at most one per owner is ``active``."""

    active: bool = False
