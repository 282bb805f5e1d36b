from typing import Literal

from pydantic import BaseModel

ConfigValueType = Literal["string", "number", "bool", "list"]


class EnvConfig(BaseModel):
    """One setting a client reads, declared without its ``<TYPE>_<ENGINE>_`` prefix.

    ``EnvConfig(env_key="API_KEY")`` on the OpenAI analyzer stands for
    ``ANALYZER_OPENAI_API_KEY``. A ``default`` of None makes the setting required.
    """

    env_key: str
    val_type: ConfigValueType = "string"
    default: str | int | float | bool | list | None = None

    @property
    def required(self) -> bool:
        return self.default is None
