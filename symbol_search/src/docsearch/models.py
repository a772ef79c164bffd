from __future__ import annotations
import bisect
import html
from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class SymbolRecord:
    """One (name, scope, url, anchor) triple produced by the extraction pass."""
    name: str
    url: str
    scope: Optional[str] = None
    anchor: Optional[str] = None

    def __post_init__(self) -> None:
        # "" and None mean the same thing for the optional parts
        if self.scope == "":
            object.__setattr__(self, "scope", None)
        if self.anchor == "":
            object.__setattr__(self, "anchor", None)


@dataclass(frozen=True)
class Reference:
    label: str                    # display text, e.g. "RandomSampler::Next"
    url: str                      # page path relative to the docs root
    anchor: Optional[str] = None  # in-page fragment id
    scope: Optional[str] = None   # owning type, for disambiguation only
    link_flag: int = 1            # 1 = page inside the generated docs

    @property
    def url_with_anchor(self) -> str:
        return f"{self.url}#{self.anchor}" if self.anchor else self.url

    @classmethod
    def from_record(cls, rec: SymbolRecord) -> "Reference":
        label = f"{rec.scope}::{rec.name}" if rec.scope else rec.name
        return cls(label=label, url=rec.url, anchor=rec.anchor, scope=rec.scope)

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "url": self.url,
            "anchor": self.anchor,
            "scope": self.scope,
            "href": self.url_with_anchor,
            # labels copied from generated pages may carry entities (&amp;)
            "text": html.unescape(self.label),
        }


@dataclass(frozen=True)
class Entry:
    key: str                            # normalized, unique within its shard
    display_name: str                   # group header
    references: Tuple[Reference, ...]   # discovery order, never re-sorted

    def __post_init__(self) -> None:
        if not self.references:
            raise ValueError(f"Entry {self.key!r} needs at least one reference")


@dataclass(frozen=True)
class Shard:
    """
    Immutable, key-sorted run of Entries sharing one partition id.
    `degraded` marks the empty stand-in published when a load failed.
    """
    shard_id: str
    entries: Tuple[Entry, ...] = ()
    degraded: bool = False
    keys: Tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "keys", tuple(e.key for e in self.entries))

    @classmethod
    def empty(cls, shard_id: str, *, degraded: bool = False) -> "Shard":
        return cls(shard_id=shard_id, entries=(), degraded=degraded)

    def get(self, key: str) -> Optional[Entry]:
        i = bisect.bisect_left(self.keys, key)
        if i != len(self.keys) and self.keys[i] == key:
            return self.entries[i]
        return None

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class ResultGroup:
    key: str
    display_name: str
    references: Tuple[Reference, ...]
    exact: bool = False       # key == normalized query
    truncated: bool = False   # some of this entry's references were cut

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "display_name": self.display_name,
            "exact": self.exact,
            "truncated": self.truncated,
            "references": [r.to_dict() for r in self.references],
        }


@dataclass(frozen=True)
class SearchResult:
    query: str
    normalized: str
    seq: int = 0
    groups: Tuple[ResultGroup, ...] = ()
    truncated: bool = False
    degraded: bool = False
    idle: bool = False

    @classmethod
    def idle_result(cls, query: str, seq: int = 0) -> "SearchResult":
        return cls(query=query, normalized="", seq=seq, idle=True)

    @property
    def reference_count(self) -> int:
        return sum(len(g.references) for g in self.groups)

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "normalized": self.normalized,
            "seq": self.seq,
            "truncated": self.truncated,
            "degraded": self.degraded,
            "idle": self.idle,
            "groups": [g.to_dict() for g in self.groups],
        }
