import time
import asyncio
import unittest
from fastapi.testclient import TestClient
from acme_remote.bridge import create_app
from acme_remote.engine import SyncEngine
from acme_remote.config import RemoteSettings
from tests.fakes import FakeConnection, FakeFactory, snapshot_json


def settle(predicate, timeout: float = 1.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition was not met in time")
        time.sleep(0.01)


class TestBridgeOffline(unittest.TestCase):
    """Движок не запущен: команды копятся в очереди."""

    def setUp(self):
        self.engine = SyncEngine(settings=RemoteSettings(max_retries=0), connection_factory=FakeFactory())
        self.client = TestClient(create_app(self.engine, manage_engine=False))

    def test_state_starts_disconnected(self):
        data = self.client.get("/state").json()
        self.assertEqual(data["status"], "disconnected")
        self.assertEqual(data["protocol"], "A")
        self.assertEqual(data["state"]["state"], "disconnected")
        self.assertEqual(data["state"]["queue"], [])
        self.assertIsNone(data["state"]["current"])

    def test_control_queues_command(self):
        resp = self.client.post("/control/volume", json={"value": 40})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"code": 1, "status": "disconnected"})

        resp = self.client.post("/control/skip")
        self.assertEqual(resp.json()["code"], 2)
        self.assertEqual(self.client.get("/state").json()["pending"], [1, 2])

    def test_invalid_commands_are_422(self):
        self.assertEqual(self.client.post("/control/volume", json={"value": 400}).status_code, 422)
        self.assertEqual(self.client.post("/control/stop").status_code, 422)
        self.assertEqual(self.client.post("/control/skip", json={"code": 9}).status_code, 422)
        self.assertEqual(self.client.post("/control/remove", json={"id": "ghost"}).status_code, 422)
        self.assertEqual(self.engine.pending, [])

    def test_closed_engine_is_503(self):
        asyncio.run(self.engine.close())
        resp = self.client.post("/control/pause")
        self.assertEqual(resp.status_code, 503)


class TestBridgeLive(unittest.TestCase):
    def setUp(self):
        self.conn = FakeConnection()
        self.conn.push(snapshot_json(volume=20))
        self.engine = SyncEngine(settings=RemoteSettings(max_retries=0), connection_factory=FakeFactory(self.conn))

    def test_lifespan_runs_engine_and_previews_commands(self):
        with TestClient(create_app(self.engine)) as client:
            settle(lambda: self.engine.session.is_live)
            self.assertEqual(client.get("/state").json()["status"], "live")

            code = client.post("/control/volume", json={"value": 55}).json()["code"]
            data = client.get("/state").json()
            self.assertEqual(data["state"]["volume"], 55)
            self.assertEqual(data["outstanding"], [code])

            settle(lambda: len(self.conn.sent) == 1)
            self.assertEqual(self.conn.sent[0], {"op": "volume", "code": code, "value": 55})

        self.assertEqual(self.engine.status.value, "disconnected")

    def test_websocket_receives_initial_state_and_updates(self):
        with TestClient(create_app(self.engine)) as client:
            settle(lambda: self.engine.session.is_live)
            with client.websocket_connect("/ws") as ws:
                first = ws.receive_json()
                self.assertEqual(first["state"]["volume"], 20)

                self.conn.push(snapshot_json(volume=25))
                update = ws.receive_json()
                self.assertEqual(update["state"]["volume"], 25)
                self.assertEqual(update["status"], "live")


if __name__ == '__main__':
    unittest.main()
