from __future__ import annotations


class ShardLoadError(Exception):
    """A shard could not be turned into a usable Shard. Absorbed by ShardStore."""

    def __init__(self, shard_id: str, message: str) -> None:
        super().__init__(f"shard {shard_id!r}: {message}")
        self.shard_id = shard_id


class ShardNotFoundError(ShardLoadError):
    pass


class ShardFormatError(ShardLoadError):
    """Corrupt payload or schema violation; the whole shard is rejected."""


class ShardTimeoutError(ShardLoadError):
    pass
