import random
import asyncio
import logging
from acme_remote import codec
from acme_remote.config import RemoteSettings
from acme_remote.previews import preview_for
from acme_remote.tasks import BackgroundTaskMixin
from acme_remote.models.player import PlayerModel
from acme_remote.models.common import PlayerState
from acme_remote.utils.auth import RemoteCredentials
from acme_remote.models.commands import BaseCommand, Op
from acme_remote.session import SessionState, TransportSession
from typing import Any, Awaitable, Callable, List, Optional, Set, Union
from acme_remote.ledger import CorrelationLedger, LedgerEntry, Outcome
from acme_remote.errors import (
    DecodeError,
    ProtocolVersionError,
    SessionClosedError,
    TransportError,
    ValidationError,
)


logger = logging.getLogger(__name__)


class SyncEngine(BackgroundTaskMixin):
    """
    Единственный владелец зеркала состояния плеера и журнала команд.

    Команда получает code, оптимистично применяется к зеркалу и уходит в транспорт.
    Каждый принятый снимок сервера целиком заменяет зеркало. Все мутации идут в одном
    event loop, а читатели всегда видят целый неизменяемый PlayerModel.
    """

    def __init__(self, credentials: Optional[RemoteCredentials] = None, settings: Optional[RemoteSettings] = None,
                 connection_factory: Optional[Callable[[], Any]] = None, rng: Optional[random.Random] = None):
        self.settings = settings or RemoteSettings()
        self.session = TransportSession(credentials, self.settings, connection_factory=connection_factory, rng=rng)
        self.session.on_message = self._handle_message
        self.session.on_state_change = self._handle_session_state

        self.ledger = CorrelationLedger()
        self._state = PlayerModel.disconnected()
        self._outbox: List[BaseCommand] = []
        self._outbox_ready = asyncio.Event()
        self._unrecorded: Set[int] = set()
        self._state_changed = asyncio.Event()
        self._decode_failures = 0
        self._closed = False

        self.on_receive: Optional[Callable[[PlayerModel], Awaitable[None]]] = None
        self.on_outcome: Optional[Callable[[int, Outcome], Awaitable[None]]] = None

    def current_state(self) -> PlayerModel:
        return self._state

    @property
    def status(self) -> SessionState:
        return self.session.state

    @property
    def status_reason(self) -> Optional[str]:
        return self.session.reason

    @property
    def pending(self) -> List[int]:
        return [command.code for command in self._outbox]

    async def start(self):
        if self._closed:
            raise SessionClosedError("engine was closed")
        self.start_task("sender", self._drain_outbox())
        self.start_task("notifier", self._emit_states())
        await self.session.start()

    async def close(self):
        if self._closed:
            return
        self._closed = True
        await self.wait_cancelled("sender", "notifier")
        await self.session.stop()
        for command in self._outbox:
            self._report(command.code, Outcome.ABANDONED)
        self._outbox.clear()
        self._unrecorded.clear()

    def issue_command(self, op: Union[Op, str], **fields: Any) -> int:
        """
        Ставит команду в очередь и сразу возвращает ее code, не дожидаясь отправки.
        Нарушение ограничений поднимает ValidationError, и команда никуда не уходит.
        """
        if self._closed:
            raise SessionClosedError("engine was closed")

        try:
            op = Op(op)
        except ValueError as e:
            raise ValidationError(f"unknown operation {op!r}") from e
        if "code" in fields or "op" in fields:
            raise ValidationError("'op' and 'code' are assigned by the engine")

        if op in (Op.REMOVE, Op.MOVE) and fields.get("id") is not None:
            idx = self._state.index_of(fields["id"])
            if idx is not None:
                fields["offset"] = idx
            elif fields.get("offset") is None:
                raise ValidationError(f"entry {fields['id']!r} is not in the queue, an offset hint is required")

        command = codec.build_command(op, self.ledger.peek_code(), **fields)
        self.ledger.allocate()

        if self.session.is_live:
            self._record(command)
        else:
            self._unrecorded.add(command.code)
        self._enqueue(command)
        return command.code

    def pause(self) -> int:
        return self.issue_command(Op.PAUSE)

    def resume(self) -> int:
        return self.issue_command(Op.RESUME)

    def toggle_play_pause(self) -> int:
        if self._state.state is PlayerState.PLAYING:
            return self.pause()
        return self.resume()

    def skip(self) -> int:
        return self.issue_command(Op.SKIP)

    def prev(self) -> int:
        return self.issue_command(Op.PREV)

    def clear(self) -> int:
        return self.issue_command(Op.CLEAR)

    def set_loop(self, enabled: bool) -> int:
        return self.issue_command(Op.LOOP, enabled=enabled)

    def set_volume(self, value: int) -> int:
        return self.issue_command(Op.VOLUME, value=value)

    def remove(self, entry_id: str, offset: Optional[int] = None) -> int:
        return self.issue_command(Op.REMOVE, id=entry_id, offset=offset)

    def move_to(self, entry_id: str, offset: Optional[int] = None) -> int:
        return self.issue_command(Op.MOVE, id=entry_id, offset=offset)

    def _enqueue(self, command: BaseCommand):
        for queued in list(self._outbox):
            if command.coalesces and queued.intent == command.intent:
                self._outbox.remove(queued)
                self._unrecorded.discard(queued.code)
                self.ledger.retire(queued.code)
                logger.debug(f"Command {queued.code} ({queued.op}) coalesced into {command.code}")
                self._report(queued.code, Outcome.COALESCED)
        self._outbox.append(command)
        self._outbox_ready.set()

    def _record(self, command: BaseCommand) -> LedgerEntry:
        preview = preview_for(command, self._state)
        entry = self.ledger.record(command, preview)
        if preview is not None:
            self._state = preview.apply(self._state)
            self._notify()
        else:
            logger.debug(f"No local preview for command {command.code} ({command.op})")
        return entry

    async def _drain_outbox(self):
        while True:
            await self.session.wait_live()
            if not self._outbox:
                self._outbox_ready.clear()
                await self._outbox_ready.wait()
                continue

            command = self._outbox.pop(0)
            if command.code in self._unrecorded:
                self._unrecorded.discard(command.code)
                self._record(command)

            try:
                await self.session.send_command(codec.encode(command).decode("utf-8"))
                logger.debug(f"Sent command {command.code} ({command.op})")
            except TransportError as e:
                logger.warning(f"Command {command.code} ({command.op}) was not delivered: {e}")

    async def _handle_message(self, body: str) -> bool:
        try:
            snapshot = codec.parse_snapshot(body)
        except DecodeError as e:
            self._decode_failures += 1
            logger.warning(f"Discarding malformed snapshot ({self._decode_failures} in a row): {e}")
            if self._decode_failures >= self.settings.max_decode_failures:
                raise ProtocolVersionError(f"{self._decode_failures} consecutive undecodable snapshots") from e
            return False

        self._decode_failures = 0
        self.apply_snapshot(snapshot)
        return True

    def apply_snapshot(self, snapshot: PlayerModel):
        """Снимок всегда побеждает: зеркало заменяется целиком, журнал закрывается."""
        outcomes = self.ledger.reconcile(snapshot)
        self._state = snapshot
        for entry, outcome in outcomes:
            if outcome is Outcome.OVERRIDDEN:
                logger.info(f"Command {entry.code} ({entry.op}) overridden by server state")
            self._report(entry.code, outcome)
        self._notify()

    async def _handle_session_state(self, state: SessionState, reason: Optional[str]):
        if state is not SessionState.LIVE:
            self._decode_failures = 0
            for entry, outcome in self.ledger.abandon_all():
                self._report(entry.code, outcome)
            dropped = [c.code for c in self._outbox if c.code not in self._unrecorded]
            if dropped:
                logger.info(f"Dropping {len(dropped)} queued command(s) issued in the lost session")
                self._outbox = [c for c in self._outbox if c.code in self._unrecorded]
            if self._state.state.is_live:
                self._state = self._state.as_disconnected()
                self._notify()

    def _notify(self):
        if not self._closed:
            self._state_changed.set()

    async def _emit_states(self):
        """Отдает слушателю последнее состояние. Медленный слушатель пропускает промежуточные, но не прерывается."""
        while True:
            await self._state_changed.wait()
            self._state_changed.clear()
            if self.on_receive is None:
                continue
            try:
                await self.on_receive(self._state)
            except Exception as e:
                logger.error(f"State listener failed: {e}", exc_info=True)

    def _report(self, code: int, outcome: Outcome):
        if self.on_outcome:
            self.start_task(f"outcome:{code}", self.on_outcome(code, outcome))
