import asyncio
from pathlib import Path

from docsearch.builder import build_shards
from docsearch.DB.memory_store import MemorySource
from docsearch.engine import QueryEngine
from docsearch.models import SymbolRecord
from docsearch.store import ShardStore

SAMPLE = Path(__file__).parent / "data" / "all_n.js"


class ControlledSource(MemorySource):
    """Each shard id has its own gate so tests decide which load finishes first."""

    def __init__(self, files, **kw):
        super().__init__(files, **kw)
        self.gates: dict[str, asyncio.Event] = {}

    def gate(self, shard_id: str) -> asyncio.Event:
        return self.gates.setdefault(shard_id, asyncio.Event())

    async def fetch(self, shard_id: str) -> str:
        await self.gate(shard_id).wait()
        return await super().fetch(shard_id)


def _files() -> dict:
    files = {"n": SAMPLE.read_text(encoding="utf-8")}
    extra = build_shards([
        SymbolRecord("Random", "../class_random.html"),
        SymbolRecord("RandomSampler", "../class_random_sampler.html"),
    ])
    files.update(MemorySource.from_shards(extra)._files)
    return files


def _engine(src, delivered, **kw) -> QueryEngine:
    kw.setdefault("debounce", 0)
    return QueryEngine(ShardStore(src), on_result=delivered.append, **kw)


def test_initial_state_is_idle_and_empty_query_returns_to_idle():
    async def scenario():
        delivered = []
        qe = _engine(MemorySource(_files()), delivered)
        assert qe.latest.idle
        qe.update("nex")
        await qe.settle()
        qe.update("  ")
        return qe, delivered

    qe, delivered = asyncio.run(scenario())
    assert [r.idle for r in delivered] == [False, True]
    assert qe.latest.idle and qe.store.fetch_count("n") == 1


def test_last_write_wins_when_older_load_is_slower():
    async def scenario():
        delivered = []
        src = ControlledSource(_files())
        qe = _engine(src, delivered)
        qe.update("nex")                 # shard n: load pending
        await asyncio.sleep(0.01)
        qe.update("rand")                # shard r: newer keystroke
        src.gate("r").set()
        await asyncio.sleep(0.01)
        src.gate("n").set()              # the old load finishes last
        await qe.settle()
        await asyncio.sleep(0.01)
        return qe, delivered

    qe, delivered = asyncio.run(scenario())
    assert [r.query for r in delivered] == ["rand"]
    assert [g.key for g in qe.latest.groups] == ["random", "randomsampler"]


def test_stale_result_is_discarded_even_if_it_completes_first():
    async def scenario():
        delivered = []
        src = ControlledSource(_files())
        qe = _engine(src, delivered)
        qe.update("nex")
        await asyncio.sleep(0.01)
        qe.update("ra")
        src.gate("n").set()              # old finishes first: must be dropped
        await asyncio.sleep(0.01)
        src.gate("r").set()
        await qe.settle()
        return delivered

    delivered = asyncio.run(scenario())
    assert [(r.query, r.seq) for r in delivered] == [("ra", 2)]


def test_cached_shard_answers_synchronously():
    async def scenario():
        delivered = []
        qe = _engine(MemorySource(_files()), delivered, debounce=10)
        await qe.store.load("n")
        qe.update("nextu")               # no await: served from cache right away
        return delivered

    delivered = asyncio.run(scenario())
    assert len(delivered) == 1
    assert [g.key for g in delivered[0].groups] == ["nextuint"]


def test_debounce_coalesces_fast_typing_into_one_fetch():
    async def scenario():
        delivered = []
        qe = _engine(MemorySource(_files()), delivered, debounce=0.05)
        for text in ("n", "ne", "nex", "next"):
            qe.update(text)
            await asyncio.sleep(0.005)
        await qe.settle()
        return qe, delivered

    qe, delivered = asyncio.run(scenario())
    assert qe.store.fetch_count("n") == 1
    assert [r.query for r in delivered] == ["next"]
    assert delivered[0].groups[0].exact


def test_degraded_shard_gives_flagged_empty_result():
    async def scenario():
        delivered = []
        qe = _engine(MemorySource({}), delivered)
        qe.update("zeta")
        return await qe.settle()

    res = asyncio.run(scenario())
    assert res.degraded and res.groups == () and not res.idle


def test_prefetch_warms_neighbours_without_delivering():
    async def scenario():
        delivered = []
        qe = _engine(MemorySource(_files()), delivered, prefetch_neighbors=True)
        qe.update("nex")
        await qe.settle()
        await asyncio.sleep(0.01)
        return qe, delivered

    qe, delivered = asyncio.run(scenario())
    assert len(delivered) == 1
    assert qe.store.is_cached("m") and qe.store.is_cached("o")


def test_one_shot_search_is_independent_of_keystroke_state():
    async def scenario():
        qe = _engine(MemorySource(_files()), [])
        return await qe.search("NumSamples"), await qe.search("")

    res, idle = asyncio.run(scenario())
    assert [g.key for g in res.groups] == ["numsamples"]
    assert len(res.groups[0].references) == 3
    assert idle.idle
