from __future__ import annotations
import argparse, json, os

from . import config as CFG
from .engine import Engine
from .models import SearchResult


def _print_result(res: SearchResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps(res.to_dict(), ensure_ascii=False, indent=2))
        return
    if res.degraded:
        print("(results may be incomplete: index shard unavailable)")
    if not res.groups:
        print("(no matches)"); return
    for g in res.groups:
        mark = "*" if g.exact else " "
        print(f"{mark} {g.display_name}  [{g.key}]")
        for r in g.references:
            print(f"    {r.label:<48} {r.url_with_anchor}")
    if res.truncated:
        print(f"(showing first {res.reference_count} references)")


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Documentation symbol search (build shards / query them)")
    g = p.add_mutually_exclusive_group(required=True)
    g.add_argument("--build", action="store_true", help="Build shards from --symbols into --out")
    g.add_argument("--load", action="store_true", help="Query an existing index (--index)")

    p.add_argument("--symbols", nargs="+", default=[], help="Symbol table files/folders (*.jsonl, *.tsv)")
    p.add_argument("--out", default=None, help="Output folder for shard files")
    p.add_argument("--index", default=None, help="Index folder or DSN (dir:///path)")
    p.add_argument("-k", "--max-results", type=int, default=CFG.MAX_RESULTS, help="Reference cap per query")
    p.add_argument("--timeout", type=float, default=CFG.LOAD_TIMEOUT_SECONDS, help="Shard load timeout (s)")
    p.add_argument("--q", default=None, help="Single query to run once")
    p.add_argument("--repl", action="store_true", help="Interactive loop after init")
    p.add_argument("--json", action="store_true", help="Emit JSON")
    p.add_argument("--verbose", action="store_true")

    args = p.parse_args(argv)
    verbose = args.verbose or os.environ.get(CFG.VERBOSE_ENV) == "1"

    eng = Engine()
    try:
        if args.build:
            if not args.symbols or not args.out:
                p.error("--build requires --symbols and --out")
            manifest = eng.build(args.symbols, args.out, verbose=verbose)
            total = sum(manifest["shards"].values())
            print(f"wrote {len(manifest['shards'])} shards ({total} entries) to {args.out}")
            return 0

        if not args.index:
            p.error("--load requires --index")
        eng.load(args.index, max_results=args.max_results, timeout=args.timeout, verbose=verbose)

        if args.q is not None:
            _print_result(eng.complete(args.q), args.json)

        if args.repl:
            print("Type a symbol name (empty line to exit).")
            while True:
                try:
                    q = input("> ").strip()
                except (EOFError, KeyboardInterrupt):
                    break
                if not q:
                    break
                _print_result(eng.complete(q), args.json)
        return 0
    finally:
        eng.shutdown()


if __name__ == "__main__":
    raise SystemExit(main())
