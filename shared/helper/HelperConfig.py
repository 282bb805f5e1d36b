"""Central configuration helper for the CV tracker."""

import logging
import os


class HelperConfig:
    """Reads every setting of the CV tracker from environment variables.

    Keys are case-insensitive and an empty value counts as unset. A getter
    called without a default treats the key as required.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @staticmethod
    def _raw(key: str) -> str | None:
        val = os.getenv(key.upper())
        if val is None or not val.strip():
            return None
        return val.strip()

    @staticmethod
    def _missing(key: str) -> ValueError:
        return ValueError(f"Environment variable '{key.upper()}' is not set.")

    ##########################################
    ############## SCALAR VALUES #############
    ##########################################

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string environment variable.

        Args:
            key (str): Environment variable name.
            default (str | None): Fallback if the variable is unset. None makes it required.

        Raises:
            ValueError: If the variable is required but unset.
        """
        val = self._raw(key)
        if val is None:
            if default is None:
                raise self._missing(key)
            return default
        return val

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a number. Values with a decimal point become floats, everything else ints.

        Raises:
            ValueError: If the variable is required but unset, or not a number.
        """
        raw = self._raw(key)
        if raw is None:
            if default is None:
                raise self._missing(key)
            return default
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

    def get_positive_int(self, key: str, default: int) -> int:
        """Read an integer that must be at least 1, e.g. a worker count or a file limit.

        Raises:
            ValueError: If the value is not a whole number >= 1.
        """
        val = self.get_number_val(key, default=default)
        if isinstance(val, float) and not val.is_integer():
            raise ValueError(f"Environment variable '{key.upper()}' must be a whole number. Got: {val}.")
        if val < 1:
            raise ValueError(f"Environment variable '{key.upper()}' must be at least 1. Got: {val}.")
        return int(val)

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """true, 1 and yes (any case) are True; every other value is False."""
        raw = self._raw(key)
        if raw is None:
            if default is None:
                raise self._missing(key)
            return default
        return raw.lower() in ("true", "1", "yes")

    def get_choice_val(self, key: str, choices: tuple[str, ...], default: str | None = None) -> str:
        """Read a string restricted to a fixed set of lowercase values.

        Args:
            key (str): Environment variable name.
            choices (tuple[str, ...]): Allowed values, e.g. ("accept", "reject").
            default (str | None): Fallback if the variable is unset.

        Returns:
            str: The lowercased value.

        Raises:
            ValueError: If the variable is required but unset, or not one of ``choices``.
        """
        val = self.get_string_val(key, default=default).lower()
        if val not in choices:
            raise ValueError(f"Environment variable '{key.upper()}' must be one of {list(choices)}. Got: '{val}'.")
        return val

    def get_list_val(self, key: str, default: list | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a bracketed list such as ``[pdf,docx]``.

        Raises:
            ValueError: If the variable is required but unset, is not bracketed,
                or holds an element that cannot be cast to ``element_type``.
        """
        raw = self._raw(key)
        if raw is None:
            if default is None:
                raise self._missing(key)
            return default
        if not (raw.startswith("[") and raw.endswith("]")):
            raise ValueError(f"Environment variable '{key.upper()}' must look like '[a{separator}b]'. Got: '{raw}'")
        elements = [v.strip() for v in raw[1:-1].split(separator) if v.strip()]
        try:
            return [element_type(elem) for elem in elements]
        except ValueError as e:
            raise ValueError(f"Environment variable '{key.upper()}' contains an invalid {element_type.__name__}: {e}")

    ##########################################
    ################# PATHS ##################
    ##########################################

    def get_root_dir(self) -> str:
        """``ROOT_DIR``, or the working directory."""
        return self.get_string_val("ROOT_DIR", default=os.getcwd())

    def get_data_dir(self) -> str:
        """Base directory of the JSON document store: ``DATA_DIR``, or ``<ROOT_DIR>/data``."""
        return self.get_string_val("DATA_DIR", default=os.path.join(self.get_root_dir(), "data"))

    def get_uploads_dir(self, data_dir: str | None = None) -> str:
        """Where uploaded CV files are written: ``UPLOADS_DIR``, or ``<data dir>/uploads``."""
        return self.get_string_val("UPLOADS_DIR", default=os.path.join(data_dir or self.get_data_dir(), "uploads"))

    def get_logger(self) -> logging.Logger:
        return self._logger
