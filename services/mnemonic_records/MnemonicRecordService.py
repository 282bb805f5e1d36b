from typing import Callable, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from shared.exceptions.ServiceErrors import InputValidationError, RecordNotFoundError
from shared.helper.HelperConfig import HelperConfig
from shared.models.cv import utc_now
from shared.models.mnemonic_record import ActivatableRecord, MnemonicRecord
from shared.store.DocumentStore import DocumentStore

RecordT = TypeVar("RecordT", bound=MnemonicRecord)
ActivatableT = TypeVar("ActivatableT", bound=ActivatableRecord)


def parse_payload(model: type[BaseModel], payload: BaseModel | dict):
    """Validate an incoming payload, turning pydantic errors into InputValidationError."""
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    try:
        return model.model_validate(payload or {})
    except ValidationError as e:
        raise InputValidationError(str(e))


class MnemonicRecordService(Generic[RecordT]):
    """Per-owner collection of records keyed by a mnemonic.

    Subclasses set ``collection`` and ``record_model`` and decide how a new
    record's mnemonic is derived.
    """

    collection: str
    record_model: type[RecordT]

    def __init__(self, helper_config: HelperConfig, store: DocumentStore) -> None:
        self.logging = helper_config.get_logger()
        self.store = store

    ##########################################
    ################ HELPERS #################
    ##########################################

    def _parse(self, raw: dict) -> RecordT | None:
        try:
            return self.record_model.model_validate(raw)
        except ValidationError as e:
            self.logging.warning("Skipping malformed %s record '%s': %s", self.collection, raw.get("mnemonic"), e.errors()[:1])
            return None

    @staticmethod
    def _index_of(records: list[dict], mnemonic: str) -> int | None:
        for index, raw in enumerate(records):
            if raw.get("mnemonic") == mnemonic:
                return index
        return None

    def _not_found(self, owner: str, mnemonic: str) -> RecordNotFoundError:
        return RecordNotFoundError(f"{self.collection} record '{mnemonic}' not found for owner '{owner}'.")

    async def _insert_unique(self, owner: str, build: Callable[[set[str]], RecordT]) -> RecordT:
        """Build and prepend a record in one locked step.

        ``build`` receives the mnemonics already taken by the owner, so the
        uniqueness check and the insert cannot interleave with another create.
        """

        def _apply(records: list[dict]) -> RecordT:
            record = build({raw.get("mnemonic") for raw in records if raw.get("mnemonic")})
            records.insert(0, record.model_dump(mode="json"))
            return record

        record = await self.store.update(self.collection, owner, _apply)
        self.logging.info("Created %s record '%s' for owner '%s'.", self.collection, record.mnemonic, owner)
        return record

    ##########################################
    ################# QUERY ##################
    ##########################################

    async def list_all(self, owner: str) -> list[RecordT]:
        records = (self._parse(raw) for raw in await self.store.load(self.collection, owner))
        return [r for r in records if r is not None]

    async def get(self, owner: str, mnemonic: str) -> RecordT:
        """
        Raises:
            RecordNotFoundError: If the owner has no record with this mnemonic.
        """
        for raw in await self.store.load(self.collection, owner):
            if raw.get("mnemonic") == mnemonic:
                record = self._parse(raw)
                if record is not None:
                    return record
        raise self._not_found(owner, mnemonic)

    ##########################################
    ################# DELETE #################
    ##########################################

    async def delete(self, owner: str, mnemonic: str) -> None:
        """
        Raises:
            RecordNotFoundError: If the owner has no record with this mnemonic.
        """

        def _apply(records: list[dict]) -> None:
            index = self._index_of(records, mnemonic)
            if index is None:
                raise self._not_found(owner, mnemonic)
            records.pop(index)

        await self.store.update(self.collection, owner, _apply)
        self.logging.info("Deleted %s record '%s' for owner '%s'.", self.collection, mnemonic, owner)

    async def clear_all(self, owner: str) -> int:
        """Delete every record of the owner. Returns the number deleted."""

        def _apply(records: list[dict]) -> int:
            count = len(records)
            records.clear()
            return count

        deleted = await self.store.update(self.collection, owner, _apply)
        self.logging.info("Cleared %d %s record(s) for owner '%s'.", deleted, self.collection, owner)
        return deleted


class ActivatableRecordService(MnemonicRecordService[ActivatableT]):
    """Mnemonic collection with at most one ``active`` record per owner."""

    async def get_active(self, owner: str) -> ActivatableT | None:
        for raw in await self.store.load(self.collection, owner):
            if raw.get("active"):
                return self._parse(raw)
        return None

    async def set_active(self, owner: str, mnemonic: str, active: bool = True) -> ActivatableT:
        """Activate (or deactivate) one record. Activating clears the flag on every sibling.

        Raises:
            RecordNotFoundError: If the owner has no record with this mnemonic.
        """

        def _apply(records: list[dict]) -> dict:
            index = self._index_of(records, mnemonic)
            if index is None:
                raise self._not_found(owner, mnemonic)
            now = utc_now().isoformat()
            for position, raw in enumerate(records):
                target = position == index
                if target or (active and raw.get("active")):
                    raw["active"] = active if target else False
                    raw["updated_at"] = now
            return records[index]

        raw = await self.store.update(self.collection, owner, _apply)
        self.logging.info("%s %s record '%s' for owner '%s'.", "Activated" if active else "Deactivated", self.collection, mnemonic, owner)
        return self.record_model.model_validate(raw)

