from __future__ import annotations
import re
import string

from .config import CATCH_ALL_SHARD

_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)
_DROP = re.compile(r"[^a-z0-9]")

SHARD_IDS: tuple[str, ...] = tuple(string.ascii_lowercase) + (CATCH_ALL_SHARD,)


def normalize(raw: str) -> str:
    """
    Canonical lookup key for a symbol name or a typed query.
      * ASCII A-Z lowercased (non-ASCII letters are NOT case-mapped)
      * every character outside [a-z0-9] dropped
    Idempotent; "" in, "" out.
    """
    return _DROP.sub("", raw.translate(_ASCII_LOWER))


def shard_for_key(key: str) -> str:
    """Partition function shared by the builder and the query engine."""
    if key and "a" <= key[0] <= "z":
        return key[0]
    return CATCH_ALL_SHARD
