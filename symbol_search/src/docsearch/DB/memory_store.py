# docsearch/DB/memory_store.py
from __future__ import annotations
import asyncio
from typing import Dict, Mapping, Optional, Set

from ..errors import ShardNotFoundError
from ..models import Shard
from .shard_format import encode_shard


class MemorySource:
    """Shard texts held in a dict (useful for tests or ephemeral sessions)."""

    def __init__(self, files: Optional[Mapping[str, str]] = None, *, known: Optional[Set[str]] = None) -> None:
        self._files: Dict[str, str] = dict(files or {})
        self._known = set(known) if known is not None else None
        self.fetches: Dict[str, int] = {}

    @classmethod
    def from_shards(cls, shards: Mapping[str, Shard]) -> "MemorySource":
        return cls({sid: encode_shard(s) for sid, s in shards.items()}, known=set(shards))

    def known_ids(self) -> Optional[Set[str]]:
        return self._known

    async def fetch(self, shard_id: str) -> str:
        self.fetches[shard_id] = self.fetches.get(shard_id, 0) + 1
        await asyncio.sleep(0)
        try:
            return self._files[shard_id]
        except KeyError:
            raise ShardNotFoundError(shard_id, "not in memory source") from None

    def close(self) -> None:
        self._files.clear()
