"""Tests for the JSONL record/replay tools."""
import json

import pytest

from lighttrails.tools.stroke_sim import record_jsonl, replay_jsonl


class ScriptedSocket:
    def __init__(self, incoming=()):
        self.incoming = list(incoming)
        self.sent: list[dict] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self._messages()

    async def _messages(self):
        for m in self.incoming:
            yield m

    async def send(self, data):
        self.sent.append(json.loads(data))


def use_socket(monkeypatch, module, sock):
    urls = []

    def connect(url, **kwargs):
        urls.append(url)
        return sock

    monkeypatch.setattr(module.websockets, "connect", connect)
    return urls


def write_jsonl(path, lines):
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_load_events_reads_wrapped_and_raw_lines(tmp_path):
    path = write_jsonl(
        tmp_path / "in.jsonl",
        [
            json.dumps({"ts": 100, "msg": {"type": "lightTrail", "trail": {"x": 1, "y": 2}}}),
            "",
            json.dumps({"type": "clear"}),
            json.dumps({"ts": "soon", "msg": {"type": "mousePosition", "x": 0, "y": 0}}),
            json.dumps([1, 2, 3]),
        ],
    )
    events = replay_jsonl.load_events(path)
    assert events == [
        (100, {"type": "lightTrail", "trail": {"x": 1, "y": 2}}),
        (None, {"type": "clear"}),
        (None, {"type": "mousePosition", "x": 0, "y": 0}),
    ]


@pytest.mark.asyncio
async def test_replay_skips_server_only_types(tmp_path, monkeypatch):
    path = write_jsonl(
        tmp_path / "in.jsonl",
        [
            json.dumps({"ts": 1, "msg": {"type": "welcome", "clientId": "c"}}),
            json.dumps({"ts": 2, "msg": {"type": "lightTrail", "trail": {"x": 1, "y": 1}}}),
            json.dumps({"ts": 3, "msg": {"type": "settingsAck", "settings": {}}}),
            json.dumps({"ts": 4, "msg": {"type": "clear"}}),
            json.dumps({"msg": {"no": "type"}}),
        ],
    )
    sock = ScriptedSocket()
    urls = use_socket(monkeypatch, replay_jsonl, sock)
    sent = await replay_jsonl.replay("ws://x/ws", path, speed=1000.0)
    assert urls == ["ws://x/ws"]
    assert sent == 2
    assert [m["type"] for m in sock.sent] == ["lightTrail", "clear"]


@pytest.mark.asyncio
async def test_replay_only_type(tmp_path, monkeypatch):
    path = write_jsonl(
        tmp_path / "in.jsonl",
        [
            json.dumps({"type": "mousePosition", "x": 1, "y": 1}),
            json.dumps({"type": "lightTrail", "trail": {"x": 1, "y": 1}}),
            json.dumps({"type": "mousePosition", "x": 2, "y": 2}),
        ],
    )
    sock = ScriptedSocket()
    use_socket(monkeypatch, replay_jsonl, sock)
    sent = await replay_jsonl.replay("ws://x/ws", path, only_type="mousePosition")
    assert sent == 2
    assert [m["x"] for m in sock.sent] == [1, 2]


@pytest.mark.asyncio
async def test_record_writes_jsonl_and_answers_ping(tmp_path, monkeypatch):
    sock = ScriptedSocket(
        incoming=[
            json.dumps({"type": "welcome", "clientId": "c", "clientCount": 1}),
            json.dumps({"type": "ping", "timestamp": 5}),
            json.dumps({"type": "meteorShower", "streakCount": 12}),
            b'{"type": "clear", "clientId": "d"}',
        ]
    )
    use_socket(monkeypatch, record_jsonl, sock)
    out = tmp_path / "nested" / "out.jsonl"
    n = await record_jsonl.record("ws://x/ws", out, echo=False, skip_types=frozenset({"meteorShower"}))

    assert n == 3
    assert sock.sent == [{"type": "pong"}]
    lines = [json.loads(line) for line in out.read_text(encoding="utf-8").splitlines()]
    assert [entry["msg"]["type"] for entry in lines] == ["welcome", "ping", "clear"]
    assert all(isinstance(entry["ts"], int) for entry in lines)

    # the recording replays cleanly: only client-sendable types go back out
    replayed = ScriptedSocket()
    use_socket(monkeypatch, replay_jsonl, replayed)
    assert await replay_jsonl.replay("ws://x/ws", out, speed=1000.0) == 2
    assert [m["type"] for m in replayed.sent] == ["ping", "clear"]
