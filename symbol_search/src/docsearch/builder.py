from __future__ import annotations
import logging
from collections import defaultdict
from typing import Dict, Iterable, List

from .models import Entry, Reference, Shard, SymbolRecord
from .normalize import normalize, shard_for_key

log = logging.getLogger(__name__)


def group_records(records: Iterable[SymbolRecord]) -> Dict[str, Entry]:
    """
    Group extraction records by normalized name.
    Records that share a key are merged into ONE Entry whatever their declaring
    scope; references keep discovery order and the first name seen becomes the
    display name.
    """
    refs: Dict[str, List[Reference]] = defaultdict(list)
    display: Dict[str, str] = {}
    for rec in records:
        key = normalize(rec.name)
        if key not in display:
            display[key] = rec.name
        refs[key].append(Reference.from_record(rec))
    return {k: Entry(key=k, display_name=display[k], references=tuple(v)) for k, v in refs.items()}


def build_shards(records: Iterable[SymbolRecord]) -> Dict[str, Shard]:
    """Partition grouped entries by leading key character; entries sorted by key."""
    buckets: Dict[str, List[Entry]] = defaultdict(list)
    for key, entry in group_records(records).items():
        # empty keys are routed to the catch-all, never discarded
        buckets[shard_for_key(key)].append(entry)
    return {
        sid: Shard(shard_id=sid, entries=tuple(sorted(entries, key=lambda e: e.key)))
        for sid, entries in sorted(buckets.items())
    }


class ShardBuilder:
    """
    Offline accumulator: feed it records, then build() or write(out_dir).
    The persistence step is delegated to DB.storage so the same writer is used
    by the CLI and by tests.
    """

    def __init__(self) -> None:
        self._records: List[SymbolRecord] = []

    def add(self, record: SymbolRecord) -> None:
        self._records.append(record)

    def extend(self, records: Iterable[SymbolRecord]) -> int:
        n = 0
        for rec in records:
            self._records.append(rec); n += 1
        return n

    def __len__(self) -> int:
        return len(self._records)

    def build(self) -> Dict[str, Shard]:
        shards = build_shards(self._records)
        log.info(
            "Built %d shards from %d records (%d entries)",
            len(shards), len(self._records), sum(len(s) for s in shards.values()),
        )
        return shards

    def write(self, out_dir: str) -> dict:
        """Build, persist every shard plus the manifest, and return the manifest."""
        from .DB.storage import save_shards

        return save_shards(self.build(), out_dir)
