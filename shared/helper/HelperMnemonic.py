"""Short, human readable identifiers that are unique within one owner's collection.

A mnemonic is built from fixed-width codes derived from free-text seeds, e.g.
seniority "Senior" + profile "Backend Developer" -> ``SEN_BACK``. When the base
is already taken a numeric suffix is appended (``SEN_BACK2``, ``SEN_BACK3``, ...).
"""

import re
import time
from typing import Iterable

SEPARATOR = "_"
FILLER = "X"
MAX_SUFFIX_ATTEMPTS = 999
MAX_MNEMONIC_LENGTH = 40

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_NON_ALPHA = re.compile(r"[^A-Z]")


def normalize_seed(seed: object) -> str:
    return ("" if seed is None else str(seed)).strip()


def fixed_width_code(seed: object, width: int, filler: str = FILLER, letters_only: bool = False) -> str:
    """Derive a fixed-width uppercase code from free text.

    Args:
        seed (object): Free text, e.g. "gpt-4o-mini".
        width (int): Exact length of the result.
        filler (str): Padding character for short or empty seeds.
        letters_only (bool): Drop digits as well as punctuation.

    Returns:
        str: e.g. ``fixed_width_code("gpt-4o-mini", 4) == "GPT4"``, ``fixed_width_code("", 3) == "XXX"``
    """
    pattern = _NON_ALPHA if letters_only else _NON_ALNUM
    compact = pattern.sub("", normalize_seed(seed).upper())
    return (compact + filler * width)[:width]


def build_base_mnemonic(codes: Iterable[str], separator: str = SEPARATOR) -> str:
    return separator.join(codes)


def generate_unique_mnemonic(base: str, existing: Iterable[str | None], max_attempts: int = MAX_SUFFIX_ATTEMPTS) -> str:
    """Return ``base`` or the first free ``base<N>`` for N in 2..max_attempts.

    Falls back to a coarse time-based suffix once all numeric suffixes are taken,
    so generation always terminates.

    Args:
        base (str): Base mnemonic, e.g. "SEN_BACK".
        existing (Iterable[str | None]): Mnemonics already present in the owner's collection.
        max_attempts (int): Highest numeric suffix to try.

    Returns:
        str: A mnemonic not contained in ``existing`` (except, in theory, for the time fallback).
    """
    taken = {m for m in existing if m}
    if base not in taken:
        return base
    for suffix in range(2, max_attempts + 1):
        candidate = f"{base}{suffix}"
        if candidate not in taken:
            return candidate
    return f"{base}{SEPARATOR}{int(time.time() * 1000) % 10000}"


def normalize_mnemonic(value: object, max_length: int = MAX_MNEMONIC_LENGTH) -> str:
    """Normalise a user supplied mnemonic: uppercase A-Z, 0-9 and underscores only.

    Whitespace and dashes collapse into a single underscore.
    """
    collapsed = re.sub(r"[\s\-]+", SEPARATOR, normalize_seed(value)).upper()
    return re.sub(r"[^A-Z0-9_]", "", collapsed)[:max_length]
