# docsearch/store.py
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional

from . import config as CFG
from .DB.api import ShardSource
from .DB.shard_format import decode_shard
from .errors import ShardLoadError, ShardTimeoutError
from .models import Shard
from .normalize import SHARD_IDS

log = logging.getLogger(__name__)


class ShardStore:
    """
    Session-lifetime shard cache in front of a ShardSource.

    Rules:
      * a shard is published once, after it is fully decoded; readers never see
        a partial shard
      * concurrent load() calls for the same id share one fetch
      * a failed, corrupt or slow load publishes an empty shard with
        degraded=True instead of raising
      * nothing is ever evicted or replaced

    Not thread-safe: use it from a single event loop.
    """

    def __init__(self, source: ShardSource, *, timeout: float = CFG.LOAD_TIMEOUT_SECONDS) -> None:
        self._source = source
        self._timeout = timeout
        self._shards: Dict[str, Shard] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        self._fetches: Counter = Counter()
        self._known = source.known_ids()

    # ------------- queries -------------

    def is_cached(self, shard_id: str) -> bool:
        return shard_id in self._shards

    def peek(self, shard_id: str) -> Optional[Shard]:
        return self._shards.get(shard_id)

    def cached_ids(self) -> List[str]:
        return sorted(self._shards)

    def fetch_count(self, shard_id: str) -> int:
        """Number of underlying source fetches issued for this id."""
        return self._fetches[shard_id]

    # ------------- loading -------------

    async def load(self, shard_id: str) -> Shard:
        if shard_id not in SHARD_IDS:
            raise ValueError(f"Unknown shard id: {shard_id!r}")
        shard = self._shards.get(shard_id)
        if shard is not None:
            return shard
        task = self._inflight.get(shard_id)
        if task is None:
            task = asyncio.ensure_future(self._load_and_publish(shard_id))
            self._inflight[shard_id] = task
        # a cancelled waiter must not cancel the load other waiters share
        return await asyncio.shield(task)

    def prefetch(self, shard_ids: Iterable[str]) -> None:
        """Start loads in the background; nothing waits on them."""
        for sid in shard_ids:
            if sid in SHARD_IDS and sid not in self._shards and sid not in self._inflight:
                log.debug("Prefetching shard %s", sid)
                self._inflight[sid] = asyncio.ensure_future(self._load_and_publish(sid))

    async def _fetch(self, shard_id: str) -> Shard:
        self._fetches[shard_id] += 1
        text = await self._source.fetch(shard_id)
        return decode_shard(text, shard_id)

    async def _load_and_publish(self, shard_id: str) -> Shard:
        try:
            if self._known is not None and shard_id not in self._known:
                # the index has no entries under this id: clean empty, not degraded
                shard = Shard.empty(shard_id)
            else:
                try:
                    shard = await asyncio.wait_for(self._fetch(shard_id), self._timeout)
                except asyncio.TimeoutError:
                    raise ShardTimeoutError(shard_id, f"no result within {self._timeout:.2f}s") from None
                log.info("Loaded shard %s (%d entries)", shard_id, len(shard))
        except (ShardLoadError, OSError) as e:
            log.warning("Shard load failed, serving degraded results: %s", e)
            shard = Shard.empty(shard_id, degraded=True)
        finally:
            self._inflight.pop(shard_id, None)
        self._shards[shard_id] = shard
        return shard

    # ------------- teardown -------------

    def close(self) -> None:
        for task in self._inflight.values():
            task.cancel()
        self._inflight.clear()
        self._source.close()

    async def aclose(self) -> None:
        pending = list(self._inflight.values())
        self.close()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
