from __future__ import annotations
import bisect
from typing import List, Sequence, Tuple

from .config import MAX_RESULTS
from .models import Entry, ResultGroup, SearchResult, Shard
from .normalize import normalize

# Sorts after every character a normalized key can contain
_PREFIX_END = "\uffff"


def prefix_range(shard: Shard, q: str) -> Tuple[int, int]:
    """[lo, hi) slice of shard.entries whose key starts with q (bisect on sorted keys)."""
    keys = shard.keys
    lo = bisect.bisect_left(keys, q)
    hi = bisect.bisect_right(keys, q + _PREFIX_END, lo=lo)
    return lo, hi


def rank_entries(entries: Sequence[Entry], q: str) -> List[Entry]:
    """Exact key first, then ascending key. References are left untouched."""
    return sorted(entries, key=lambda e: (e.key != q, e.key))


def search_shard(shard: Shard, q: str, *, max_results: int = MAX_RESULTS) -> Tuple[Tuple[ResultGroup, ...], bool]:
    """
    Prefix-match q against one shard and cap the merged reference list.
    Returns (groups, truncated). A group cut short by the cap is marked
    truncated and the groups after it are dropped.
    """
    lo, hi = prefix_range(shard, q)
    groups: List[ResultGroup] = []
    budget = max(0, int(max_results))
    truncated = False
    for entry in rank_entries(shard.entries[lo:hi], q):
        refs = entry.references
        if budget <= 0:
            truncated = True
            break
        cut = len(refs) > budget
        if cut:
            refs = refs[:budget]
            truncated = True
        groups.append(ResultGroup(
            key=entry.key,
            display_name=entry.display_name,
            references=refs,
            exact=entry.key == q,
            truncated=cut,
        ))
        budget -= len(refs)
    return tuple(groups), truncated


def run_query(text: str, shard: Shard, *, max_results: int = MAX_RESULTS, seq: int = 0) -> SearchResult:
    """Evaluate a typed string against the (already loaded) shard that owns it."""
    q = normalize(text)
    if not q:
        return SearchResult.idle_result(text, seq)
    if shard.degraded:
        return SearchResult(query=text, normalized=q, seq=seq, degraded=True)
    groups, truncated = search_shard(shard, q, max_results=max_results)
    return SearchResult(query=text, normalized=q, seq=seq, groups=groups, truncated=truncated)
