"""Streaming content fingerprints for uploaded files.

Used for duplicate detection per owner and for integrity checks. Files are
read in fixed-size chunks so large uploads never sit in memory at once.
"""

import asyncio
import errno
import hashlib
import os
import stat

HASH_ALGORITHM = "sha256"
CHUNK_SIZE = 64 * 1024


def compute_file_hash(path: str | os.PathLike) -> str:
    """Compute the hex SHA-256 digest of a regular file.

    Args:
        path (str | os.PathLike): File to hash.

    Returns:
        str: Lowercase hex digest (64 characters).

    Raises:
        FileNotFoundError: If the path does not exist.
        PermissionError: If the file cannot be read.
        OSError: If the path is not a regular file.
    """
    st = os.stat(path)
    if not stat.S_ISREG(st.st_mode):
        raise OSError(errno.EINVAL, "Not a regular file", str(path))

    digest = hashlib.new(HASH_ALGORITHM)
    with open(path, "rb") as handle:
        while chunk := handle.read(CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


async def compute_file_hash_async(path: str | os.PathLike) -> str:
    """Same as :func:`compute_file_hash`, run in a worker thread."""
    return await asyncio.to_thread(compute_file_hash, path)


def normalize_hash(value: str | None) -> str | None:
    if value is None:
        return None
    value = str(value).strip().lower()
    return value or None


def hashes_equal(left: str | None, right: str | None) -> bool:
    """Case-insensitive digest comparison. Missing digests never match."""
    left, right = normalize_hash(left), normalize_hash(right)
    return left is not None and left == right
