"""Public API for the documentation symbol search engine."""
from __future__ import annotations

from .builder import ShardBuilder, build_shards, group_records
from .engine import Engine, QueryEngine
from .errors import ShardFormatError, ShardLoadError, ShardNotFoundError, ShardTimeoutError
from .models import Entry, Reference, ResultGroup, SearchResult, Shard, SymbolRecord
from .normalize import SHARD_IDS, normalize, shard_for_key
from .store import ShardStore

__all__ = [
    "Engine", "QueryEngine", "ShardBuilder", "ShardStore",
    "build_shards", "group_records", "normalize", "shard_for_key", "SHARD_IDS",
    "Entry", "Reference", "ResultGroup", "SearchResult", "Shard", "SymbolRecord",
    "ShardLoadError", "ShardNotFoundError", "ShardFormatError", "ShardTimeoutError",
]
