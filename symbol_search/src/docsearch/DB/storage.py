from __future__ import annotations
import json
import logging
import os
from typing import Dict, Mapping, Optional

from ..config import (
    CATCH_ALL_FILE_NAME,
    CATCH_ALL_SHARD,
    FORMAT_TAG,
    MANIFEST_NAME,
    SHARD_FILE_TEMPLATE,
)
from ..models import Shard
from ..normalize import SHARD_IDS
from .shard_format import encode_shard

log = logging.getLogger(__name__)


def shard_filename(shard_id: str) -> str:
    """File name for a partition id: 'all_n.js', catch-all -> 'all_other.js'."""
    if shard_id not in SHARD_IDS:
        raise ValueError(f"Unknown shard id: {shard_id!r}")
    name = CATCH_ALL_FILE_NAME if shard_id == CATCH_ALL_SHARD else shard_id
    return SHARD_FILE_TEMPLATE.format(name=name)


def _atomic_write(path: str, text: str) -> None:
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8", newline="\n") as f:
        f.write(text)
    os.replace(tmp, path)


def save_shards(shards: Mapping[str, Shard], out_dir: str) -> dict:
    """
    Write one file per shard plus the manifest. Every file is written to a temp
    name and swapped in, so a reader never sees a half-written shard.
    Returns the manifest dict.
    """
    os.makedirs(out_dir, exist_ok=True)
    counts: Dict[str, int] = {}
    for sid in sorted(shards):
        shard = shards[sid]
        path = os.path.join(out_dir, shard_filename(sid))
        _atomic_write(path, encode_shard(shard))
        counts[sid] = len(shard)
        log.info("Wrote shard %s (%d entries) -> %s", sid, len(shard), path)

    manifest = {"format": FORMAT_TAG, "shards": counts}
    _atomic_write(
        os.path.join(out_dir, MANIFEST_NAME),
        json.dumps(manifest, indent=2, sort_keys=True) + "\n",
    )
    return manifest


def load_manifest(index_dir: str) -> Optional[dict]:
    """
    Read the manifest of an index directory.
    Returns None when there is none (older index: every shard id is fetched and a
    missing file counts as a failure). A manifest that exists but is not ours
    raises ValueError.
    """
    path = os.path.join(index_dir, MANIFEST_NAME)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    if not isinstance(data, dict) or data.get("format") != FORMAT_TAG:
        raise ValueError(f"{path} is not a {FORMAT_TAG} manifest")
    shards = data.get("shards")
    if not isinstance(shards, dict) or any(sid not in SHARD_IDS for sid in shards):
        raise ValueError(f"{path}: invalid shard table")
    return data
