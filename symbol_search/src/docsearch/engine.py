# docsearch/engine.py
from __future__ import annotations

import asyncio
import logging
import os
from typing import Callable, Iterable, List, Optional

from . import config as CFG
from .config import CATCH_ALL_SHARD
from .builder import ShardBuilder
from .loader import load_symbol_table
from .models import SearchResult
from .normalize import normalize, shard_for_key
from .search import run_query
from .store import ShardStore
from .DB.api import ShardSource, make_source

log = logging.getLogger(__name__)

ResultCallback = Callable[[SearchResult], None]


def _neighbors(shard_id: str) -> List[str]:
    if shard_id == CATCH_ALL_SHARD:
        return []
    out = []
    for c in (chr(ord(shard_id) - 1), chr(ord(shard_id) + 1)):
        if "a" <= c <= "z":
            out.append(c)
    return out


class QueryEngine:
    """
    Incremental, per-keystroke matcher on top of a ShardStore.

    update(text) is called from the event loop for every edit of the search
    box. Each call gets a new sequence number; a result is handed to on_result
    only if its sequence number is still the latest when it is ready, so a slow
    shard load for an old query can never overwrite a newer answer.

    Timing:
      * empty query          -> idle result, delivered immediately
      * owning shard cached  -> computed and delivered immediately
      * otherwise            -> wait `debounce` seconds of quiet, then load
    """

    def __init__(
        self,
        store: ShardStore,
        *,
        max_results: int = CFG.MAX_RESULTS,
        debounce: float = CFG.DEBOUNCE_SECONDS,
        on_result: Optional[ResultCallback] = None,
        prefetch_neighbors: bool = CFG.PREFETCH_NEIGHBORS,
    ) -> None:
        self.store = store
        self.max_results = max_results
        self.debounce = debounce
        self.on_result = on_result
        self.prefetch_neighbors = prefetch_neighbors

        self.query: str = ""
        self.seq: int = 0
        self.latest: SearchResult = SearchResult.idle_result("", 0)
        self._pending: Optional[asyncio.Task] = None

    # ------------- keystrokes -------------

    def update(self, text: str) -> None:
        """New contents of the search box. Must be called inside the running loop."""
        self.seq += 1
        self.query = text
        seq = self.seq
        self._cancel_pending()

        q = normalize(text)
        if not q:
            self._deliver(SearchResult.idle_result(text, seq))
            return

        sid = shard_for_key(q)
        shard = self.store.peek(sid)
        if shard is not None:
            self._deliver(run_query(text, shard, max_results=self.max_results, seq=seq))
            return

        self._pending = asyncio.get_running_loop().create_task(self._run(seq, text, sid))

    async def _run(self, seq: int, text: str, sid: str) -> None:
        if self.debounce > 0:
            await asyncio.sleep(self.debounce)
        if seq != self.seq:
            return
        shard = await self.store.load(sid)
        if seq != self.seq:
            log.debug("Discarding stale result for %r (seq %d < %d)", text, seq, self.seq)
            return
        self._deliver(run_query(text, shard, max_results=self.max_results, seq=seq))
        if self.prefetch_neighbors:
            self.store.prefetch(_neighbors(sid))

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def _deliver(self, result: SearchResult) -> None:
        if result.seq != self.seq:
            return
        self.latest = result
        if result.degraded:
            log.info("Degraded result for %r: results may be incomplete", result.query)
        if self.on_result is not None:
            self.on_result(result)

    async def settle(self) -> SearchResult:
        """Wait for the current keystroke's work to finish; return the latest result."""
        while self._pending is not None and not self._pending.done():
            # a newer keystroke may replace the task while we wait
            await asyncio.wait({self._pending})
        return self.latest

    # ------------- one-shot -------------

    async def search(self, text: str, *, max_results: Optional[int] = None) -> SearchResult:
        """Stateless query used by non-interactive callers (CLI, HTTP)."""
        q = normalize(text)
        if not q:
            return SearchResult.idle_result(text)
        shard = await self.store.load(shard_for_key(q))
        cap = self.max_results if max_results is None else max_results
        return run_query(text, shard, max_results=cap)

    async def aclose(self) -> None:
        self._cancel_pending()
        await self.store.aclose()


class Engine:
    """
    Thin orchestration layer that glues together:
      - symbol table ingestion (loader) and the offline ShardBuilder,
      - a ShardSource + ShardStore for the run-time session,
      - the QueryEngine.

    Public API (used by CLI/Flask):
      * build(symbol_paths, out_dir): ingest -> group/partition -> persist
      * load(index_dsn):              open a built index for querying
      * complete(query) / acomplete(query): ranked groups for one query
      * shutdown():                   close underlying resources
    """

    def __init__(self) -> None:
        self.store: Optional[ShardStore] = None
        self.query_engine: Optional[QueryEngine] = None

    # /* ~~~ Build shards from extraction output ~~~ */
    def build(self, symbol_paths: Iterable[str], out_dir: str, *, verbose: bool = False) -> dict:
        if verbose:
            logging.basicConfig(level=logging.INFO)
            os.environ[CFG.VERBOSE_ENV] = "1"

        paths = list(symbol_paths)
        if not paths:
            raise ValueError("build(): at least one symbol table path is required")

        log.info("Loading symbol table from %s", paths)
        builder = ShardBuilder()
        builder.extend(load_symbol_table(paths))
        manifest = builder.write(out_dir)
        log.info("Engine build() complete: shards=%d records=%d", len(manifest["shards"]), len(builder))
        return manifest

    # /* ~~~ Open a built index for querying ~~~ */
    def load(
        self,
        index_dsn: Optional[str] = None,
        *,
        source: Optional[ShardSource] = None,
        max_results: int = CFG.MAX_RESULTS,
        timeout: float = CFG.LOAD_TIMEOUT_SECONDS,
        verbose: bool = False,
    ) -> QueryEngine:
        if verbose:
            logging.basicConfig(level=logging.INFO)
            os.environ[CFG.VERBOSE_ENV] = "1"

        if source is None:
            if not index_dsn:
                raise ValueError("load(): an index DSN or a source is required")
            log.info("Opening index %s", index_dsn)
            source = make_source(index_dsn)

        self.store = ShardStore(source, timeout=timeout)
        self.query_engine = QueryEngine(self.store, max_results=max_results, debounce=0)
        return self.query_engine

    # ------------- query -------------

    async def acomplete(self, query: str) -> SearchResult:
        if self.query_engine is None:
            raise RuntimeError("Engine not initialized. Call load() first.")
        return await self.query_engine.search(query)

    def complete(self, query: str) -> SearchResult:
        """Blocking wrapper for scripts; do not call from inside a running loop."""
        return asyncio.run(self.acomplete(query))

    # ------------- teardown -------------

    def shutdown(self) -> None:
        try:
            if self.store is not None:
                self.store.close()
        finally:
            self.store = None
            self.query_engine = None
            log.info("Engine shutdown complete")
