import asyncio
import unittest
import aiohttp
from types import SimpleNamespace
from acme_remote.client import StompWebSocket
from acme_remote.config import RemoteSettings
from acme_remote.stomp import StompUrl, parse_frames
from acme_remote.utils.auth import RemoteCredentials
from acme_remote.errors import ProtocolVersionError, TransportError


CONNECTED = "CONNECTED\nversion:1.2\nheart-beat:10000,0\nserver:broker/1.0\n\n\x00"


def text(data: str):
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data)


def message(body: str, destination: str = "/exchange/acme_bot_remote_update/r1.42") -> str:
    return f"MESSAGE\ndestination:{destination}\nsubscription:sub-0\n\n{body}\x00"


class StubWebSocket:
    """Минимальная замена aiohttp.ClientWebSocketResponse: входящие сообщения из очереди."""

    def __init__(self, *inbound):
        self.inbound: asyncio.Queue = asyncio.Queue()
        for msg in inbound:
            self.inbound.put_nowait(msg)
        self.sent = []
        self.closed = False
        self.close_code = None

    async def send_str(self, data: str):
        self.sent.append(data)

    async def receive(self, timeout=None):
        return await asyncio.wait_for(self.inbound.get(), timeout)

    def exception(self):
        return ConnectionResetError("reset by peer")

    async def close(self):
        self.closed = True
        self.close_code = 1000


class StubSession:
    def __init__(self, ws: StubWebSocket = None, error: Exception = None):
        self.ws = ws
        self.error = error
        self.calls = []
        self.closed = False

    async def ws_connect(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.ws

    async def close(self):
        self.closed = True


class TestStompWebSocket(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.credentials = RemoteCredentials(
            url=StompUrl("wss://mq.example.com/ws"),
            login="bot",
            password="secret",
            remote_id="r1",
            access_code="42"
        )
        self.settings = RemoteSettings(vhost="/", connect_timeout=0.5, heartbeat_ms=25, heartbeat_grace=2.0)

    def make_client(self, *inbound, error=None):
        self.ws = StubWebSocket(*inbound)
        self.session = StubSession(self.ws, error)
        client = StompWebSocket(self.credentials, self.settings)
        client._session = self.session
        return client

    async def test_handshake_subscribes_and_requests_snapshot(self):
        client = self.make_client(text(CONNECTED))
        await client.connect()
        self.assertTrue(client.is_connected)

        url, kwargs = self.session.calls[0]
        self.assertEqual(str(url), "wss://mq.example.com/ws")
        self.assertEqual(kwargs["protocols"], ("v12.stomp",))
        self.assertEqual(kwargs["heartbeat"], 0.05)

        connect, subscribe, request = [parse_frames(raw)[0] for raw in self.ws.sent]
        self.assertEqual(connect.command, "CONNECT")
        self.assertEqual(connect.headers["login"], "bot")
        self.assertEqual(connect.headers["passcode"], "secret")
        self.assertEqual(connect.headers["heart-beat"], "0,25")
        self.assertEqual(subscribe.command, "SUBSCRIBE")
        self.assertEqual(subscribe.headers["destination"], "/exchange/acme_bot_remote_update/r1.42")
        self.assertEqual(request.command, "SEND")
        self.assertEqual(request.headers["destination"], "/exchange/acme_bot_remote_update/r1.42")
        self.assertEqual(request.body, "")

    async def test_broker_error_frame_fails_handshake(self):
        client = self.make_client(text("ERROR\nmessage:access refused\n\n\x00"))
        with self.assertRaises(TransportError) as ctx:
            await client.connect()
        self.assertIn("access refused", str(ctx.exception))

    async def test_unexpected_frame_fails_handshake(self):
        client = self.make_client(text(message("{}")))
        with self.assertRaises(TransportError):
            await client.connect()

    async def test_wrong_stomp_version_is_protocol_error(self):
        client = self.make_client(text("CONNECTED\nversion:1.1\n\n\x00"))
        with self.assertRaises(ProtocolVersionError):
            await client.connect()

    async def test_connect_failure_is_transport_error(self):
        client = self.make_client(error=aiohttp.ClientConnectionError("refused"))
        with self.assertRaises(TransportError):
            await client.connect()

    async def test_receive_skips_heartbeats_and_empty_messages(self):
        client = self.make_client(
            text(CONNECTED),
            text("\n"),
            text(message("")),
            text("RECEIPT\nreceipt-id:1\n\n\x00" + message('{"volume": 1}'))
        )
        await client.connect()
        self.assertEqual(await client.receive(), '{"volume": 1}')

    async def test_malformed_frame_is_dropped(self):
        client = self.make_client(text(CONNECTED), text("MESSAGE\nbad:\\t\n\n\x00"), text(message("ok")))
        await client.connect()
        self.assertEqual(await client.receive(), "ok")

    async def test_missed_heartbeat_is_transport_error(self):
        client = self.make_client(text(CONNECTED))
        await client.connect()
        with self.assertRaises(TransportError) as ctx:
            await client.receive()
        self.assertIn("heartbeat", str(ctx.exception))

    async def test_error_frame_while_receiving(self):
        client = self.make_client(text(CONNECTED), text("ERROR\nmessage:queue deleted\n\n\x00"))
        await client.connect()
        with self.assertRaises(TransportError):
            await client.receive()

    async def test_socket_close_and_error_messages(self):
        for msg_type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
            with self.subTest(msg_type=msg_type):
                client = self.make_client(text(CONNECTED), SimpleNamespace(type=msg_type, data=None))
                await client.connect()
                with self.assertRaises(TransportError):
                    await client.receive()

    async def test_send_and_close(self):
        client = self.make_client(text(CONNECTED))
        await client.connect()
        await client.send('{"op": "skip", "code": 1}')

        frame = parse_frames(self.ws.sent[-1])[0]
        self.assertEqual(frame.headers["destination"], "/exchange/acme_bot_remote/r1")
        self.assertEqual(frame.headers["content-type"], "application/json")
        self.assertEqual(frame.body, '{"op": "skip", "code": 1}')

        await client.close()
        self.assertEqual(parse_frames(self.ws.sent[-1])[0].command, "DISCONNECT")
        self.assertTrue(self.ws.closed)
        self.assertTrue(self.session.closed)
        self.assertFalse(client.is_connected)
        with self.assertRaises(TransportError):
            await client.send("{}")


if __name__ == '__main__':
    unittest.main()
