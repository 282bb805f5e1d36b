from services.mnemonic_records.MnemonicRecordService import MnemonicRecordService, parse_payload
from shared.exceptions.ServiceErrors import DuplicateIdentifierError, InputValidationError
from shared.helper.HelperMnemonic import normalize_mnemonic
from shared.models.cv import utc_now
from shared.models.prompt import Prompt, PromptCreate, PromptUpdate


class PromptService(MnemonicRecordService[Prompt]):
    """Stored prompts. Unlike the other collections the mnemonic is chosen by the user."""

    collection = "prompts"
    record_model = Prompt

    @staticmethod
    def _clean_mnemonic(value: str | None) -> str:
        mnemonic = normalize_mnemonic(value)
        if not mnemonic:
            raise InputValidationError("mnemonic required")
        return mnemonic

    async def create(self, owner: str, payload: PromptCreate | dict) -> Prompt:
        """
        Raises:
            InputValidationError: If mnemonic or text is empty.
            DuplicateIdentifierError: If the owner already has a prompt with this mnemonic.
        """
        data = parse_payload(PromptCreate, payload)
        mnemonic = self._clean_mnemonic(data.mnemonic)
        if not data.text:
            raise InputValidationError("text required")

        def _build(taken: set[str]) -> Prompt:
            if mnemonic in taken:
                raise DuplicateIdentifierError(f"Prompt '{mnemonic}' already exists.")
            return Prompt(mnemonic=mnemonic, owner=owner, title=data.title, text=data.text, tags=data.tags)

        return await self._insert_unique(owner, _build)

    async def update(self, owner: str, mnemonic: str, payload: PromptUpdate | dict) -> Prompt:
        """Apply a partial update. A rename moves the prompt to the front of the collection.

        Raises:
            RecordNotFoundError: If the prompt does not exist.
            InputValidationError: If the new text is empty.
            DuplicateIdentifierError: If the new mnemonic is taken by another prompt.
        """
        data = parse_payload(PromptUpdate, payload)
        new_mnemonic = self._clean_mnemonic(data.new_mnemonic) if data.new_mnemonic is not None else None
        if data.text is not None and not data.text.strip():
            raise InputValidationError("text must not be empty")

        def _apply(records: list[dict]) -> Prompt:
            index = self._index_of(records, mnemonic)
            if index is None:
                raise self._not_found(owner, mnemonic)
            changes: dict = {"updated_at": utc_now()}
            if data.text is not None:
                changes["text"] = data.text.strip()
            if data.title is not None:
                changes["title"] = data.title.strip()
            if data.tags is not None:
                changes["tags"] = data.tags

            renamed = new_mnemonic is not None and new_mnemonic != mnemonic
            if renamed:
                if any(raw.get("mnemonic") == new_mnemonic for raw in records):
                    raise DuplicateIdentifierError(f"Prompt '{new_mnemonic}' already exists.")
                changes["mnemonic"] = new_mnemonic

            prompt = Prompt.model_validate(records[index]).model_copy(update=changes)
            document = prompt.model_dump(mode="json")
            if renamed:
                records.pop(index)
                records.insert(0, document)
            else:
                records[index] = document
            return prompt

        prompt = await self.store.update(self.collection, owner, _apply)
        self.logging.info("Updated prompt '%s' for owner '%s'.", prompt.mnemonic, owner)
        return prompt
