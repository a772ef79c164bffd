import asyncio
from pathlib import Path

import pytest

from docsearch.builder import ShardBuilder
from docsearch.DB.api import DirectorySource, make_source
from docsearch.DB.memory_store import MemorySource
from docsearch.config import MANIFEST_NAME
from docsearch.DB.storage import shard_filename
from docsearch.models import SymbolRecord
from docsearch.store import ShardStore

SAMPLE = Path(__file__).parent / "data" / "all_n.js"


class GatedSource(MemorySource):
    """MemorySource whose fetches block until release() is called."""

    def __init__(self, files, **kw):
        super().__init__(files, **kw)
        self.gate = asyncio.Event()

    def release(self) -> None:
        self.gate.set()

    async def fetch(self, shard_id: str) -> str:
        await self.gate.wait()
        return await super().fetch(shard_id)


class SlowSource(MemorySource):
    async def fetch(self, shard_id: str) -> str:
        await asyncio.sleep(10)
        return await super().fetch(shard_id)


def _sample() -> dict:
    return {"n": SAMPLE.read_text(encoding="utf-8")}


def test_concurrent_loads_share_one_fetch():
    async def scenario():
        src = GatedSource(_sample())
        store = ShardStore(src)
        t1 = asyncio.ensure_future(store.load("n"))
        t2 = asyncio.ensure_future(store.load("n"))
        await asyncio.sleep(0)
        assert not store.is_cached("n")          # nothing published mid-load
        src.release()
        a, b = await asyncio.gather(t1, t2)
        again = await store.load("n")
        return store, src, a, b, again

    store, src, a, b, again = asyncio.run(scenario())
    assert a is b is again
    assert store.fetch_count("n") == 1
    assert src.fetches == {"n": 1}
    assert len(a) == 15 and not a.degraded


def test_cancelled_waiter_does_not_cancel_shared_load():
    async def scenario():
        src = GatedSource(_sample())
        store = ShardStore(src)
        doomed = asyncio.ensure_future(store.load("n"))
        survivor = asyncio.ensure_future(store.load("n"))
        await asyncio.sleep(0)
        doomed.cancel()
        src.release()
        shard = await survivor
        return store, doomed, shard

    store, doomed, shard = asyncio.run(scenario())
    assert doomed.cancelled()
    assert len(shard) == 15 and store.fetch_count("n") == 1


def test_missing_shard_degrades_instead_of_raising():
    async def scenario():
        store = ShardStore(MemorySource({}))
        return store, await store.load("q")

    store, shard = asyncio.run(scenario())
    assert shard.degraded and len(shard) == 0
    assert store.is_cached("q")   # the marker is published; no retry storm


def test_corrupt_shard_degrades():
    async def scenario():
        store = ShardStore(MemorySource({"n": "var searchData=\n[\n  ['next',['Next'"}))
        return await store.load("n")

    assert asyncio.run(scenario()).degraded


def test_slow_load_times_out_and_degrades():
    async def scenario():
        store = ShardStore(SlowSource(_sample()), timeout=0.05)
        return await store.load("n")

    assert asyncio.run(scenario()).degraded


def test_id_absent_from_manifest_is_clean_empty_without_fetch():
    async def scenario():
        src = MemorySource(_sample(), known={"n"})
        store = ShardStore(src)
        return store, src, await store.load("x")

    store, src, shard = asyncio.run(scenario())
    assert len(shard) == 0 and not shard.degraded
    assert src.fetches == {} and store.fetch_count("x") == 0


def test_unknown_shard_id_is_a_programming_error():
    async def scenario():
        await ShardStore(MemorySource({})).load("ab")

    with pytest.raises(ValueError):
        asyncio.run(scenario())


def test_prefetch_populates_cache_in_background():
    async def scenario():
        store = ShardStore(MemorySource(_sample()))
        store.prefetch(["n", "m"])
        await asyncio.sleep(0.01)
        return store

    store = asyncio.run(scenario())
    assert store.cached_ids() == ["m", "n"]
    assert store.peek("m").degraded and not store.peek("n").degraded


@pytest.mark.e2e
def test_directory_source_uses_manifest(tmp_path: Path):
    b = ShardBuilder()
    b.extend([SymbolRecord("Next", "../class_random.html", "Random", "a1"),
              SymbolRecord("Apply", "../class_op.html", "Op", "a2")])
    b.write(str(tmp_path))
    (tmp_path / shard_filename("a")).unlink()   # simulate a lost file

    async def scenario():
        store = ShardStore(make_source(f"dir://{tmp_path}"))
        return await store.load("n"), await store.load("z"), await store.load("a")

    n, z, a = asyncio.run(scenario())
    assert n.get("next").references[0].label == "Random::Next"
    assert len(z) == 0 and not z.degraded     # no 'z' symbols at all
    assert a.degraded                         # listed in the manifest but unreadable


def test_unreadable_manifest_falls_back_to_fetching_every_id(tmp_path: Path, caplog):
    b = ShardBuilder()
    b.extend([SymbolRecord("Next", "../class_random.html", "Random", "a1")])
    b.write(str(tmp_path))
    (tmp_path / MANIFEST_NAME).write_text("{\"format\": \"docsearch-sha", encoding="utf-8")

    with caplog.at_level("WARNING", logger="docsearch.DB.api"):
        src = DirectorySource(str(tmp_path))
    assert src.known_ids() is None
    assert "manifest" in caplog.text

    async def scenario():
        store = ShardStore(src)
        return await store.load("n"), await store.load("z")

    n, z = asyncio.run(scenario())
    assert n.get("next") is not None and not n.degraded
    assert z.degraded                         # unknown without a manifest, and no file


def test_directory_source_rejects_missing_root(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        DirectorySource(str(tmp_path / "nope"))
