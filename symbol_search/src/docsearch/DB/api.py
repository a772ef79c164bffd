# docsearch/DB/api.py
from __future__ import annotations
import asyncio
import logging
import os
from typing import Optional, Protocol, Set

from ..errors import ShardLoadError, ShardNotFoundError
from .storage import load_manifest, shard_filename

log = logging.getLogger(__name__)


class ShardSource(Protocol):
    """Where raw shard text comes from. fetch() is the only suspension point."""
    async def fetch(self, shard_id: str) -> str: ...
    # ids that exist in this index, or None if the source cannot tell
    def known_ids(self) -> Optional[Set[str]]: ...
    def close(self) -> None: ...


class DirectorySource:
    """Shard files in a directory on disk, as written by DB.storage.save_shards()."""

    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)
        if not os.path.isdir(self.root):
            raise FileNotFoundError(self.root)
        try:
            manifest = load_manifest(self.root)
        except ValueError as e:
            # same as having no manifest: fetch everything, failures are degraded
            log.warning("Ignoring unreadable manifest in %s: %s", self.root, e)
            manifest = None
        self._known: Optional[Set[str]] = set(manifest["shards"]) if manifest else None
        if self._known is None:
            log.info("No manifest in %s; every shard id will be fetched", self.root)

    def known_ids(self) -> Optional[Set[str]]:
        return self._known

    def _read(self, shard_id: str) -> str:
        path = os.path.join(self.root, shard_filename(shard_id))
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError as e:
            raise ShardNotFoundError(shard_id, f"{path} does not exist") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ShardLoadError(shard_id, f"cannot read {path}: {e}") from e

    async def fetch(self, shard_id: str) -> str:
        # file IO off the event loop thread
        return await asyncio.to_thread(self._read, shard_id)

    def close(self) -> None:
        pass


def make_source(dsn: str) -> ShardSource:
    """
    Factory:
      - dir:///path/to/index or a plain path -> DirectorySource
      - memory://                            -> empty MemorySource
    """
    if dsn.startswith("memory://"):
        from .memory_store import MemorySource
        return MemorySource()
    if dsn.startswith("dir://"):
        dsn = dsn.removeprefix("dir://")
    if "://" in dsn:
        raise ValueError(f"Unsupported index DSN: {dsn}")
    return DirectorySource(dsn)
