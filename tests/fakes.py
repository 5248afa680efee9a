import json
import asyncio
from typing import Optional
from acme_remote.errors import TransportError


def entry(entry_id: str, title: str = "Track", duration=180) -> dict:
    return {
        "id": entry_id,
        "title": f"{title} {entry_id}",
        "uploader": "Uploader",
        "duration": duration,
        "duration_string": "3:00",
        "webpage_url": f"https://example.com/watch?v={entry_id}",
        "uploader_url": None,
        "thumbnail": None,
        "extractor": "youtube"
    }


def snapshot(volume: int = 30, state: str = "playing", queue=("a", "b", "c"), loop: bool = False,
             position: int = 0, current="a", **overrides) -> dict:
    data = {
        "loop": loop,
        "volume": volume,
        "state": state,
        "queue": [entry(i) for i in queue],
        "position": position,
        "current": entry(current) if current else None
    }
    data.update(overrides)
    return data


def snapshot_json(**kwargs) -> str:
    return json.dumps(snapshot(**kwargs))


class FakeConnection:
    def __init__(self, inbound=(), fail_connect=None):
        self.inbound: asyncio.Queue = asyncio.Queue()
        for item in inbound:
            self.inbound.put_nowait(item)
        self.fail_connect = fail_connect
        self.fail_send = None
        self.send_gate: Optional[asyncio.Event] = None
        self.sent = []
        self.connected = False
        self.closed = False

    async def connect(self):
        if self.fail_connect:
            raise self.fail_connect
        self.connected = True

    async def receive(self) -> str:
        item = await self.inbound.get()
        if isinstance(item, Exception):
            raise item
        return item

    def push(self, item):
        self.inbound.put_nowait(item)

    def drop(self, reason: str = "connection reset"):
        self.inbound.put_nowait(TransportError(reason))

    async def send(self, body: str):
        if self.send_gate is not None:
            await self.send_gate.wait()
        if self.fail_send:
            raise self.fail_send
        self.sent.append(json.loads(body))

    async def close(self):
        if not self.closed:
            self.closed = True
            self.inbound.put_nowait(TransportError("closed"))


class FakeFactory:
    """Отдает заранее заготовленные соединения по очереди, потом - соединения, которые не подключаются."""

    def __init__(self, *connections):
        self.connections = list(connections)
        self.created = []

    def __call__(self):
        if self.connections:
            conn = self.connections.pop(0)
        else:
            conn = FakeConnection(fail_connect=TransportError("connection refused"))
        self.created.append(conn)
        return conn


async def wait_for(predicate, timeout: float = 1.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition was not met in time")
        await asyncio.sleep(0.005)
