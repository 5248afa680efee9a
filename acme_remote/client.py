import asyncio
import logging
import aiohttp
from typing import List, Optional
from acme_remote.config import RemoteSettings
from acme_remote.utils.auth import RemoteCredentials
from acme_remote.errors import ProtocolVersionError, TransportError
from acme_remote.stomp import (
    STOMP_VERSION,
    Frame,
    connect_frame,
    disconnect_frame,
    encode_frame,
    parse_frames,
    send_frame,
    subscribe_frame,
)


logger = logging.getLogger(__name__)


class StompWebSocket:
    """
    Одно STOMP-over-WebSocket соединение с брокером пульта.
    Любая сетевая ошибка наружу выходит как TransportError.
    """

    def __init__(self, credentials: RemoteCredentials, settings: Optional[RemoteSettings] = None):
        self.credentials = credentials
        self.settings = settings or RemoteSettings()
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._session: Optional[aiohttp.ClientSession] = None
        self._pending: List[Frame] = []

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self):
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=self.settings.connect_timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)

        url = self.credentials.url.url
        try:
            self._ws = await self._session.ws_connect(
                url,
                protocols=("v12.stomp",),
                autoping=True,
                heartbeat=self.settings.heartbeat_timeout,
                timeout=aiohttp.ClientWSTimeout(ws_close=self.settings.connect_timeout)
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise TransportError(f"failed to connect to {url.host}: {e}") from e

        await self._write(connect_frame(
            self.settings.vhost,
            self.credentials.login,
            self.credentials.password,
            self.settings.heartbeat_ms
        ))

        try:
            frame = await asyncio.wait_for(self._next_frame(), timeout=self.settings.connect_timeout)
        except asyncio.TimeoutError as e:
            raise TransportError("timed out waiting for CONNECTED frame") from e

        if frame.command == "ERROR":
            raise TransportError(f"broker refused connection: {frame.headers.get('message', frame.body)}")
        if frame.command != "CONNECTED":
            raise TransportError(f"expected CONNECTED frame, got {frame.command}")

        version = frame.headers.get("version", "1.0")
        if version != STOMP_VERSION:
            raise ProtocolVersionError(f"broker negotiated STOMP {version}, need {STOMP_VERSION}")

        logger.info(f"✅ Connected to {url.host} (server: {frame.headers.get('server', 'unknown')})")

        await self._write(subscribe_frame(self.credentials.update_destination))
        await self._write(send_frame(self.credentials.update_destination, "", content_type=None))

    async def _write(self, frame: Frame):
        if not self.is_connected:
            raise TransportError("websocket is not connected")
        try:
            await self._ws.send_str(encode_frame(frame))
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            raise TransportError(f"write failed: {e}") from e

    async def _next_frame(self) -> Frame:
        while not self._pending:
            if self._ws is None:
                raise TransportError("websocket is not connected")

            try:
                msg = await self._ws.receive(timeout=self.settings.heartbeat_timeout)
            except asyncio.TimeoutError as e:
                raise TransportError("missed heartbeat") from e

            match msg.type:
                case aiohttp.WSMsgType.TEXT | aiohttp.WSMsgType.BINARY:
                    try:
                        self._pending.extend(parse_frames(msg.data))
                    except (ValueError, UnicodeDecodeError) as e:
                        logger.warning(f"Dropping malformed STOMP frame: {e}")
                case aiohttp.WSMsgType.ERROR:
                    raise TransportError(f"websocket error: {self._ws.exception()}")
                case aiohttp.WSMsgType.CLOSE | aiohttp.WSMsgType.CLOSING | aiohttp.WSMsgType.CLOSED:
                    raise TransportError(f"websocket closed (code {self._ws.close_code})")
                case _:
                    pass

        return self._pending.pop(0)

    async def receive(self) -> str:
        """Ждет следующее непустое MESSAGE и возвращает его тело."""
        while True:
            frame = await self._next_frame()
            match frame.command:
                case "MESSAGE":
                    if frame.body.strip():
                        return frame.body
                    logger.debug("Skipping empty MESSAGE (snapshot request echo)")
                case "ERROR":
                    raise TransportError(f"broker error: {frame.headers.get('message', frame.body)}")
                case "RECEIPT":
                    pass
                case _:
                    logger.debug(f"Ignoring unexpected {frame.command} frame")

    async def send(self, body: str):
        await self._write(send_frame(self.credentials.command_destination, body))

    async def close(self):
        self._pending.clear()
        if self.is_connected:
            try:
                await self._ws.send_str(encode_frame(disconnect_frame()))
            except (aiohttp.ClientError, ConnectionError, RuntimeError):
                pass
        if self._ws:
            await self._ws.close()
        if self._session:
            await self._session.close()
        self._ws = None
        self._session = None
