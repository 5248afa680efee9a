import random
import asyncio
import logging
from enum import Enum
from acme_remote.config import RemoteSettings
from acme_remote.tasks import BackgroundTaskMixin
from acme_remote.client import StompWebSocket
from acme_remote.utils.auth import RemoteCredentials
from typing import Any, Awaitable, Callable, Optional
from acme_remote.errors import ProtocolVersionError, TransportError


logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    LIVE = "live"
    RECONNECTING = "reconnecting"


class TransportSession(BackgroundTaskMixin):
    """
    Жизненный цикл постоянного соединения с пультом.

    Disconnected -> Connecting -> Live, при сбое Live/Connecting -> Reconnecting -> Connecting
    после паузы с экспоненциальным ростом и джиттером. Сессия становится Live только после
    первого принятого снимка. Ошибка версии протокола и исчерпание попыток переводят сессию
    в Disconnected без повторов.
    """

    def __init__(self, credentials: Optional[RemoteCredentials], settings: Optional[RemoteSettings] = None,
                 connection_factory: Optional[Callable[[], Any]] = None, rng: Optional[random.Random] = None):
        self.credentials = credentials
        self.settings = settings or RemoteSettings()
        self.connection_factory = connection_factory or (lambda: StompWebSocket(self.credentials, self.settings))
        self.rng = rng or random.Random()

        self.state = SessionState.DISCONNECTED
        self.reason: Optional[str] = None
        self.attempt = 0
        self._connection = None
        self._live = asyncio.Event()

        self.on_message: Optional[Callable[[str], Awaitable[bool]]] = None
        self.on_state_change: Optional[Callable[[SessionState, Optional[str]], Awaitable[None]]] = None

    @property
    def is_live(self) -> bool:
        return self.state is SessionState.LIVE

    async def wait_live(self):
        await self._live.wait()

    def backoff_delay(self, attempt: int) -> float:
        """Первый повтор почти сразу, дальше экспонента с джиттером и потолком."""
        if attempt <= 0:
            return self.settings.first_retry_delay
        delay = min(self.settings.backoff_cap, self.settings.backoff_base * (2 ** (attempt - 1)))
        return delay * self.rng.uniform(0.5, 1.0)

    async def _set_state(self, state: SessionState, reason: Optional[str] = None):
        if state is self.state and reason == self.reason:
            return
        logger.info(f"Session {self.state.value} -> {state.value}" + (f" ({reason})" if reason else ""))
        self.state = state
        self.reason = reason
        if state is SessionState.LIVE:
            self._live.set()
        else:
            self._live.clear()
        if self.on_state_change:
            await self.on_state_change(state, reason)

    async def start(self):
        if self.has_task("session"):
            return
        self.attempt = 0
        self.start_task("session", self.run_loop())

    async def stop(self, reason: str = "closed by user"):
        await self.wait_cancelled("session")
        await self._drop_connection()
        await self._set_state(SessionState.DISCONNECTED, reason)

    async def reconnect(self):
        """Явный запрос на переподключение: текущее соединение рвется, отсчет попыток с нуля."""
        await self.wait_cancelled("session")
        await self._drop_connection()
        self.attempt = 0
        self.start_task("session", self.run_loop())

    async def _drop_connection(self):
        connection, self._connection = self._connection, None
        if connection is not None:
            await connection.close()

    async def send_command(self, body: str):
        connection = self._connection
        if not self.is_live or connection is None:
            raise TransportError(f"cannot send while {self.state.value}")
        try:
            await connection.send(body)
        except TransportError:
            await self._close_quietly(connection)
            raise

    async def run_loop(self):
        while True:
            await self._set_state(SessionState.CONNECTING)
            connection = self.connection_factory()
            self._connection = connection
            reason = None

            try:
                await connection.connect()
                while True:
                    body = await connection.receive()
                    accepted = await self.on_message(body) if self.on_message else False
                    if accepted and self.state is SessionState.CONNECTING:
                        self.attempt = 0
                        await self._set_state(SessionState.LIVE)
            except ProtocolVersionError as e:
                logger.error(f"❌ Protocol mismatch, giving up: {e}")
                await self._close_quietly(connection)
                await self._set_state(SessionState.DISCONNECTED, str(e))
                return
            except TransportError as e:
                reason = str(e)
                logger.warning(f"Transport failure while {self.state.value}: {e}")
            except Exception as e:
                reason = f"unexpected error: {e}"
                logger.error(f"Session loop error: {e}", exc_info=True)

            await self._close_quietly(connection)

            if self.settings.max_retries is not None and self.attempt >= self.settings.max_retries:
                await self._set_state(SessionState.DISCONNECTED, f"retries exhausted: {reason}")
                return

            delay = self.backoff_delay(self.attempt)
            self.attempt += 1
            await self._set_state(SessionState.RECONNECTING, reason)
            logger.info(f"Reconnecting in {delay:.2f}s (attempt {self.attempt})")
            await asyncio.sleep(delay)

    async def _close_quietly(self, connection):
        if self._connection is connection:
            self._connection = None
        try:
            await connection.close()
        except Exception as e:
            logger.debug(f"Error while closing connection: {e}")
