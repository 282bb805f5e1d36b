from abc import ABC, abstractmethod
from typing import Any

import httpx

from shared.exceptions.ServiceErrors import UpstreamServiceError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientInterface(ABC):
    """Base for HTTP backed clients.

    Settings are read from env keys named ``<CLIENT_TYPE>_<ENGINE>_<KEY>``, e.g.
    ``ANALYZER_OPENAI_API_KEY``. The request timeout is shared per client type
    (``ANALYZER_TIMEOUT``).
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)

        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Reads every declared configuration value once so that bad settings fail at startup.

        Raises:
            ValueError: Listing every required key that is missing and every value that is invalid.
        """
        problems: list[str] = []
        for config in self._get_required_config():
            try:
                self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)
            except ValueError as e:
                kind = "missing" if config.required else "invalid"
                problems.append(f"{self._get_config_key_name(config.env_key)} ({kind}: {e})")
        if problems:
            raise ValueError(f"{self.get_engine_name()} {self.get_client_type()} is misconfigured: " + "; ".join(problems))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """
        Returns the type of the client in lowercase. E.g. "analyzer"
        """
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    def get_engine_name(self) -> str:
        """
        Returns the name of the backend engine in lowercase. E.g. "openai"
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns:
            list[EnvConfig]: The configuration keys (without prefix) this client needs.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        """
        Returns:
            str: The full env key, e.g. "ANALYZER_CLAUDE_BASE_URL" for raw key "BASE_URL".
        """
        return f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Retrieves the value of a client specific configuration key.

        Args:
            raw_key (str): Key without the client/engine prefix, e.g. "MODEL".
            default (Any): Value used when the key is not set. None makes the key required.
            val_type (str): One of "string", "number", "bool", "list".

        Raises:
            ValueError: If the key is required but missing, or the type is unsupported.
        """
        key = self._get_config_key_name(raw_key)
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
            "list": self._helper_config.get_list_val,
        }
        if val_type not in readers:
            raise ValueError(f"Unsupported config value type '{val_type}' for env key '{key}'.")
        return readers[val_type](key, default=default)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Returns:
            dict: Headers that authenticate against the backend. Empty if no key is configured.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        pass

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self) -> None:
        """Create the shared HTTP client."""
        self._client = httpx.AsyncClient(timeout=self.timeout)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def do_healthcheck(self) -> httpx.Response:
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())

    async def do_request(
        self,
        method: str = "GET",
        json: dict | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send an HTTP request to the backend.

        Args:
            method: HTTP method.
            json: JSON body.
            endpoint: Path appended to the base URL (leading slash optional).
            additional_headers: Extra headers, applied after the auth header.
            raise_on_error: Raise on a non-2xx response instead of returning it.

        Returns:
            httpx.Response: The raw response.

        Raises:
            UpstreamServiceError: If the client was not booted, or the status is non-2xx and raise_on_error is set.
            httpx.HTTPError: On transport failures and timeouts.
        """
        if self._client is None:
            raise UpstreamServiceError(f"{self.get_engine_name()} client is not booted. Call boot() first.")

        path = endpoint.strip().lstrip("/")
        url = self._get_base_url().rstrip("/") + (f"/{path}" if path else "")
        headers = {**self._get_auth_header(), **(additional_headers or {})}
        response = await self._client.request(method, url=url, headers=headers, json=json, timeout=self.timeout)

        if raise_on_error and not response.is_success:
            self.logging.error("%s %s answered %d: %s", method, url, response.status_code, response.text[:200])
            raise UpstreamServiceError(f"{method} {url} answered {response.status_code}", status_code=response.status_code)
        return response
