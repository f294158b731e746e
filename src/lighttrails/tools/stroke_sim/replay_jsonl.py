from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

import websockets

# Server -> client types that make no sense to send back.
_SERVER_ONLY = frozenset(
    {"welcome", "clientJoined", "clientLeft", "userSettings", "settingsAck", "pong", "error", "meteorShower"}
)


def load_events(jsonl_path: Path) -> list[tuple[int | None, dict]]:
    """
    Expected JSONL format:
      - record_jsonl.py output: {"ts": <ms>, "msg": {...}}
      - or raw messages per line: {...}
    """
    events: list[tuple[int | None, dict]] = []
    for line in jsonl_path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        obj = json.loads(line)
        if isinstance(obj, dict) and "msg" in obj and isinstance(obj["msg"], dict):
            ts = obj.get("ts")
            events.append((int(ts) if isinstance(ts, (int, float)) else None, obj["msg"]))
        elif isinstance(obj, dict):
            events.append((None, obj))
    return events


async def replay(
    ws_url: str,
    jsonl_path: Path,
    *,
    speed: float = 1.0,
    default_dt_ms: int = 0,
    only_type: str | None = None,
) -> int:
    """Replay previously-recorded JSONL into a websocket; returns messages sent."""
    events = load_events(jsonl_path)
    sent = 0

    async with websockets.connect(ws_url, max_size=2**22) as ws:
        prev_ts: int | None = None
        for ts, msg in events:
            t = msg.get("type")
            if not isinstance(t, str) or t in _SERVER_ONLY:
                continue
            if only_type and t != only_type:
                continue

            if ts is not None and prev_ts is not None:
                dt_ms = max(0, ts - prev_ts)
            else:
                dt_ms = default_dt_ms

            prev_ts = ts if ts is not None else prev_ts
            if dt_ms:
                await asyncio.sleep((dt_ms / 1000.0) / max(0.01, speed))

            await ws.send(json.dumps(msg, ensure_ascii=False, separators=(",", ":")))
            sent += 1
    return sent


def main() -> None:
    ap = argparse.ArgumentParser(description="Replay LightTrails JSONL into the server websocket.")
    ap.add_argument("--ws", required=True, help="WebSocket URL, e.g. ws://127.0.0.1:3000/ws")
    ap.add_argument("--in", dest="inp", required=True, help="Input JSONL path")
    ap.add_argument("--speed", type=float, default=1.0, help="Speed multiplier (2.0 = 2x faster)")
    ap.add_argument("--default-dt-ms", type=int, default=0, help="Delay between messages if no timestamps")
    ap.add_argument("--only-type", default=None, help="If set, only replay messages of this type (e.g. 'lightTrail').")
    args = ap.parse_args()

    asyncio.run(
        replay(
            args.ws,
            Path(args.inp),
            speed=args.speed,
            default_dt_ms=args.default_dt_ms,
            only_type=args.only_type,
        )
    )


if __name__ == "__main__":
    main()
