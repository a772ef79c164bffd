# docsearch/DB/shard_format.py
from __future__ import annotations
import ast
from typing import Any, List, Optional, Sequence, Tuple

from ..config import SHARD_PREAMBLE
from ..errors import ShardFormatError
from ..models import Entry, Reference, Shard
from ..normalize import normalize, shard_for_key

_ESCAPES = {"\\": "\\\\", "'": "\\'", "\n": "\\n", "\r": "\\r", "\t": "\\t"}
# JS string literals end at these even inside quotes
_LINE_SEPARATORS = {"\u2028": "\\u2028", "\u2029": "\\u2029"}


class ShardFormat:
    """
    Text layout of one shard file (also valid JavaScript, so a browser page can
    <script>-include it as-is):

        var searchData=
        [
          ['next',['Next',['../class_random.html#a76',1,'Random::Next()'],...]],
          ['name',['Name',['../class_config_node.html#a63',1,'ConfigNode']]],
        ];

    Each record is [key, [display, ref, ref, ...]] with ref = [urlWithAnchor, flag, text].
    `flag` is 1 for pages inside the generated docs and is carried through as
    Reference.link_flag.
    For a single reference `text` is the owning scope (or ''); for several it is
    the scope-qualified label. Older writers flattened the single case to
    [key, [display, urlWithAnchor, flag, scope]]; both shapes decode to the same
    Entry.
    """

    # ---- encode ----
    @staticmethod
    def encode(shard: Shard) -> str:
        lines = [SHARD_PREAMBLE, "["]
        for entry in shard.entries:
            lines.append(f"  {_encode_entry(entry)},")
        lines.append("];")
        return "\n".join(lines) + "\n"

    # ---- decode ----
    @staticmethod
    def decode(text: str, shard_id: str) -> Shard:
        body = text.strip()
        if not body.startswith(SHARD_PREAMBLE):
            raise ShardFormatError(shard_id, f"missing {SHARD_PREAMBLE!r} preamble")
        body = body[len(SHARD_PREAMBLE):].strip()
        if body.endswith(";"):
            body = body[:-1]
        try:
            data = ast.literal_eval(body)
        except (ValueError, SyntaxError, TypeError, MemoryError, RecursionError) as e:
            raise ShardFormatError(shard_id, f"unparsable payload ({e.__class__.__name__})") from e
        if not isinstance(data, (list, tuple)):
            raise ShardFormatError(shard_id, "payload is not a sequence of records")

        entries: List[Entry] = []
        prev: Optional[str] = None
        for pos, rec in enumerate(data):
            entry = _decode_entry(rec, shard_id, pos)
            if shard_for_key(entry.key) != shard_id:
                raise ShardFormatError(shard_id, f"key {entry.key!r} belongs to another shard")
            if prev is not None:
                if entry.key == prev:
                    raise ShardFormatError(shard_id, f"duplicate key {entry.key!r}")
                if entry.key < prev:
                    raise ShardFormatError(shard_id, f"keys out of order at record {pos}")
            prev = entry.key
            entries.append(entry)
        return Shard(shard_id=shard_id, entries=tuple(entries))


def encode_shard(shard: Shard) -> str:
    return ShardFormat.encode(shard)


def decode_shard(text: str, shard_id: str) -> Shard:
    return ShardFormat.decode(text, shard_id)


# ---------- helpers ----------

def _escape_char(ch: str) -> str:
    if ch in _ESCAPES:
        return _ESCAPES[ch]
    if ch < " " or ch == "\x7f":
        return f"\\x{ord(ch):02x}"
    return _LINE_SEPARATORS.get(ch, ch)


def _js_str(s: str) -> str:
    return "'" + "".join(_escape_char(ch) for ch in s) + "'"


def _encode_ref(ref: Reference, text: str) -> str:
    return f"[{_js_str(ref.url_with_anchor)},{ref.link_flag},{_js_str(text)}]"


def _encode_entry(entry: Entry) -> str:
    refs = entry.references
    if len(refs) == 1:
        parts = [_encode_ref(refs[0], refs[0].scope or "")]
    else:
        parts = [_encode_ref(r, r.label) for r in refs]
    return f"[{_js_str(entry.key)},[{_js_str(entry.display_name)},{','.join(parts)}]]"


def _split_url(url_with_anchor: str) -> Tuple[str, Optional[str]]:
    url, _, anchor = url_with_anchor.partition("#")
    return url, (anchor or None)


def scope_from_label(label: str, key: Optional[str] = None) -> Optional[str]:
    """
    'ConfigNode::NextChild(const std::string &amp;name) const ' -> 'ConfigNode'

    With `key`, the scope is the shortest '::' prefix whose remainder normalizes
    to the key, so a qualified name such as 'std::swap' under key 'stdswap' has
    no scope. Without a key (or when no split matches) the last '::' wins.
    """
    head = label.split("(", 1)[0]
    parts = head.split("::")
    if key is not None:
        for i in range(len(parts)):
            if normalize("::".join(parts[i:])) == key:
                return "::".join(parts[:i]) or None
    scope, _, _ = head.rpartition("::")
    return scope or None


def _is_ref_triple(obj: Any) -> bool:
    return (
        isinstance(obj, (list, tuple)) and len(obj) == 3
        and isinstance(obj[0], str) and isinstance(obj[1], int) and isinstance(obj[2], str)
    )


def _single_ref(display: str, url_with_anchor: str, flag: int, scope_text: str) -> Reference:
    url, anchor = _split_url(url_with_anchor)
    scope = scope_text or None
    label = f"{scope}::{display}" if scope else display
    return Reference(label=label, url=url, anchor=anchor, scope=scope, link_flag=flag)


def _decode_refs(key: str, display: str, items: Sequence[Any], shard_id: str, pos: int) -> Tuple[Reference, ...]:
    # flattened single: [url, flag, scope]
    if items and isinstance(items[0], str):
        if not _is_ref_triple(tuple(items)):
            raise ShardFormatError(shard_id, f"record {pos}: malformed flattened reference")
        return (_single_ref(display, *items),)

    if not items:
        raise ShardFormatError(shard_id, f"record {pos}: no references")
    for it in items:
        if not _is_ref_triple(it):
            raise ShardFormatError(shard_id, f"record {pos}: malformed reference {it!r}")

    if len(items) == 1:
        return (_single_ref(display, *items[0]),)

    refs = []
    for url_with_anchor, flag, label in items:
        url, anchor = _split_url(url_with_anchor)
        refs.append(Reference(
            label=label, url=url, anchor=anchor,
            scope=scope_from_label(label, key), link_flag=flag,
        ))
    return tuple(refs)


def _decode_entry(rec: Any, shard_id: str, pos: int) -> Entry:
    if not (isinstance(rec, (list, tuple)) and len(rec) == 2):
        raise ShardFormatError(shard_id, f"record {pos}: expected [key, payload]")
    key, payload = rec
    if not isinstance(key, str) or normalize(key) != key:
        raise ShardFormatError(shard_id, f"record {pos}: key {key!r} is not normalized")
    if not (isinstance(payload, (list, tuple)) and len(payload) >= 2 and isinstance(payload[0], str)):
        raise ShardFormatError(shard_id, f"record {pos}: expected [displayName, references...]")
    display = payload[0]
    refs = _decode_refs(key, display, payload[1:], shard_id, pos)
    return Entry(key=key, display_name=display, references=refs)
