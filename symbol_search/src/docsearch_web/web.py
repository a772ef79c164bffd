from __future__ import annotations
import argparse
import asyncio
import logging
import threading
from typing import Optional

from flask import Flask, Response, jsonify, request

from docsearch import config as CFG
from docsearch.engine import Engine

log = logging.getLogger(__name__)

app = Flask(__name__)
_engine: Engine | None = None


class LoopThread:
    """
    One event loop on a daemon thread. The shard cache and its in-flight loads
    belong to this loop; Flask worker threads only submit coroutines to it.
    """

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self.loop.run_forever, name="docsearch-loop", daemon=True)
        self._thread.start()

    def run(self, coro, timeout: Optional[float] = None):
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
        self.loop.close()


_loop: LoopThread | None = None
_loop_lock = threading.Lock()


def _runner() -> LoopThread:
    global _loop
    with _loop_lock:
        if _loop is None:
            _loop = LoopThread()
        return _loop


async def _cached_ids(store) -> list:
    return store.cached_ids()


# ---------- API ----------
@app.get("/api/search")
def api_search():
    q = request.args.get("q", "", type=str)
    k = request.args.get("k", None, type=int)
    if _engine is None or _engine.query_engine is None:
        return jsonify({"error": "index not loaded"}), 503
    cap = max(1, k) if k is not None else None
    res = _runner().run(_engine.query_engine.search(q, max_results=cap))
    return jsonify(res.to_dict())


@app.get("/health")
def health():
    ready = _engine is not None and _engine.store is not None
    cached = _runner().run(_cached_ids(_engine.store)) if ready else []
    return jsonify({"ok": ready, "cached_shards": cached})


# ---------- UI ----------
_PAGE = r"""
<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width,initial-scale=1" />
<title>Symbol search</title>
<style>
:root{ --bg:#0b0f14; --panel:#0f141b; --ink:#cfd8e3; --muted:#8a94a6; --accent:#6ee7ff; --border:#1c2530; }
*{box-sizing:border-box}
body{ margin:0; background:var(--bg); color:var(--ink); font:15px/1.45 system-ui,-apple-system,Segoe UI,Roboto,Arial; }
.container{ max-width:900px; margin:24px auto; padding:0 16px; }
.card{ background:var(--panel); border:1px solid var(--border); border-radius:14px; padding:18px; }
input{ width:100%; padding:12px 14px; border-radius:10px; border:1px solid var(--border);
       background:#0b1117; color:var(--ink); outline:none; font-size:16px; }
input:focus{ border-color:var(--accent) }
.meta{ color:var(--muted); font-size:13px; margin-top:8px; }
.warn{ display:none; margin-top:10px; padding:8px 12px; border-radius:8px;
       background:rgba(255,193,7,.1); border:1px solid rgba(255,193,7,.35); color:#ffd27a; }
.group{ margin-top:14px; }
.group h3{ margin:0 0 4px 0; font-size:15px; }
.group .exact{ color:var(--accent) }
.ref{ padding:2px 0 2px 16px; font-family:ui-monospace,Menlo,Consolas,monospace; font-size:13px; }
a{ color:var(--accent); text-decoration:none } a:hover{ text-decoration:underline }
</style>
</head>
<body>
<div class="container"><div class="card">
  <input id="q" type="text" placeholder="Search symbols..." autocomplete="off" autofocus />
  <div id="meta" class="meta">Ready.</div>
  <div id="warn" class="warn">Results may be incomplete.</div>
  <div id="out"></div>
</div></div>
<script>
const $ = (s) => document.querySelector(s);
const q = $("#q"), out = $("#out"), meta = $("#meta"), warn = $("#warn");
let timer, seq = 0;
function esc(s){ return String(s).replace(/[&<>"]/g, c => ({"&":"&amp;","<":"&lt;",">":"&gt;",'"':"&quot;"}[c])); }
async function search(){
  const mine = ++seq;
  const query = q.value;
  const resp = await fetch(`/api/search?q=${encodeURIComponent(query)}`);
  const data = await resp.json();
  if(mine !== seq) return;            // a newer keystroke owns the page
  warn.style.display = data.degraded ? "block" : "none";
  if(data.idle){ out.innerHTML = ""; meta.textContent = "Ready."; return; }
  meta.textContent = `${data.groups.length} symbols` + (data.truncated ? " (truncated)" : "");
  out.innerHTML = data.groups.map(g => `
    <div class="group"><h3 class="${g.exact ? "exact" : ""}">${esc(g.display_name)}</h3>
      ${g.references.map(r => `<div class="ref"><a href="${esc(r.href)}">${esc(r.text)}</a></div>`).join("")}
    </div>`).join("") || "<div class='meta'>No matches.</div>";
}
q.addEventListener("input", () => { clearTimeout(timer); timer = setTimeout(search, 150); });
</script>
</body>
</html>
"""


@app.get("/")
def home():
    return Response(_PAGE, mimetype="text/html")


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Serve the symbol search UI on top of Engine")
    ap.add_argument("--index", required=True, help="Index folder or DSN (dir:///path)")
    ap.add_argument("-k", "--max-results", type=int, default=CFG.MAX_RESULTS)
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8000)
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args(argv)

    global _engine
    _engine = Engine()
    _engine.load(args.index, max_results=args.max_results, verbose=args.verbose)
    _runner()  # before request threads exist

    try:
        app.run(host=args.host, port=args.port, debug=args.verbose)
    finally:
        if _loop is not None:
            if _engine.store is not None:
                _loop.run(_engine.store.aclose())
            _loop.stop()
        _engine.shutdown()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
