from __future__ import annotations
import json
import logging
import os
from typing import Iterable, Iterator, List

from .models import SymbolRecord

log = logging.getLogger(__name__)

_SUFFIXES = (".jsonl", ".tsv")
PROGRESS_EVERY_RECORDS = 50_000


def _iter_table_files(paths: Iterable[str]) -> Iterator[str]:
    """Yield symbol table files; directories are walked recursively in sorted order."""
    for p in paths:
        if os.path.isdir(p):
            for dirpath, dirnames, filenames in os.walk(p):
                dirnames.sort()
                for fn in sorted(filenames):
                    if fn.lower().endswith(_SUFFIXES):
                        yield os.path.join(dirpath, fn)
        elif os.path.isfile(p):
            yield p
        else:
            raise FileNotFoundError(p)


def _opt(value) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return value or None


def _parse_jsonl_line(line: str) -> SymbolRecord:
    obj = json.loads(line)
    if not isinstance(obj, dict):
        raise ValueError("expected a JSON object")
    name, url = obj.get("name"), obj.get("url")
    if not isinstance(name, str) or not isinstance(url, str) or not url:
        raise ValueError("'name' and 'url' must be strings")
    return SymbolRecord(name=name, url=url, scope=_opt(obj.get("scope")), anchor=_opt(obj.get("anchor")))


def _parse_tsv_line(line: str) -> SymbolRecord:
    cols = line.split("\t")
    if len(cols) not in (3, 4):
        raise ValueError(f"expected 3 or 4 tab-separated columns, got {len(cols)}")
    name, scope, url = cols[0], cols[1], cols[2]
    anchor = cols[3] if len(cols) == 4 else ""
    if not url:
        raise ValueError("empty url")
    return SymbolRecord(name=name, url=url, scope=scope or None, anchor=anchor or None)


def iter_symbol_file(path: str) -> Iterator[SymbolRecord]:
    """
    Read one extraction output file.
      *.jsonl : {"name": ..., "url": ..., "scope": ..., "anchor": ...} per line
      *.tsv   : name<TAB>scope<TAB>url[<TAB>anchor]
    Blank lines and lines starting with '#' are skipped.
    """
    parse = _parse_tsv_line if path.lower().endswith(".tsv") else _parse_jsonl_line
    with open(path, "r", encoding="utf-8") as f:
        for line_no, raw in enumerate(f, start=1):
            line = raw.rstrip("\r\n")
            if not line.strip() or line.lstrip().startswith("#"):
                continue
            try:
                yield parse(line)
            except (ValueError, TypeError) as e:
                raise ValueError(f"{path}:{line_no}: {e}") from e


def load_symbol_table(paths: Iterable[str]) -> List[SymbolRecord]:
    """Load every record from the given files/directories, in discovery order."""
    records: List[SymbolRecord] = []
    file_count = 0
    for path in _iter_table_files(paths):
        for rec in iter_symbol_file(path):
            records.append(rec)
            if len(records) % PROGRESS_EVERY_RECORDS == 0:
                log.info("[loaded] records=%s", f"{len(records):,}")
        file_count += 1
    log.info("[done] files=%d records=%d", file_count, len(records))
    return records
