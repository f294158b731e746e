from __future__ import annotations

import argparse
import asyncio
import json
import logging
import time
from pathlib import Path

import websockets

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


async def record(ws_url: str, out_path: Path, *, echo: bool, skip_types: frozenset[str] = frozenset()) -> int:
    """Append every message the server sends us to `out_path` as JSONL; returns the count."""
    out_path.parent.mkdir(parents=True, exist_ok=True)
    n = 0
    with out_path.open("a", encoding="utf-8") as f:
        async with websockets.connect(ws_url, max_size=2**22) as ws:
            async for raw in ws:
                if isinstance(raw, bytes):
                    raw = raw.decode("utf-8", errors="replace")
                msg = json.loads(raw)
                t = msg.get("type") if isinstance(msg, dict) else None
                if t in skip_types:
                    continue
                if t == "ping":
                    # stay alive for the server's liveness probe
                    await ws.send(json.dumps({"type": "pong"}))
                if echo:
                    logger.info("[record] type=%s msg=%s", t, msg)
                f.write(json.dumps({"ts": _now_ms(), "msg": msg}, ensure_ascii=False) + "\n")
                f.flush()
                n += 1
    return n


def main() -> None:
    ap = argparse.ArgumentParser(description="Record LightTrails WS traffic to a JSONL file.")
    ap.add_argument("--ws", required=True, help="WebSocket URL, e.g. ws://127.0.0.1:3000/ws")
    ap.add_argument("--out", required=True, help="Output JSONL path")
    ap.add_argument("--print", action="store_true", help="Log received messages")
    ap.add_argument("--skip", action="append", default=[], help="Message type to leave out (repeatable)")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    asyncio.run(record(args.ws, Path(args.out), echo=args.print, skip_types=frozenset(args.skip)))


if __name__ == "__main__":
    main()
