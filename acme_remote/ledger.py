import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from acme_remote.previews import Preview
from acme_remote.models.player import PlayerModel
from acme_remote.models.commands import BaseCommand


logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    CONFIRMED = "confirmed"
    OVERRIDDEN = "overridden"
    SETTLED = "settled"
    ABANDONED = "abandoned"
    COALESCED = "coalesced"


@dataclass(slots=True)
class LedgerEntry:
    code: int
    op: str
    preview: Optional[Preview] = None
    issued_at: float = field(default_factory=time.monotonic)


class CorrelationLedger:
    """
    Журнал команд, отправленных в текущей сессии транспорта.

    code - монотонный счетчик, а не ключ запрос/ответ: отдельного подтверждения на команду
    сервер не присылает. Любой принятый снимок гасит все записи журнала, а переподключение
    помечает их брошенными.
    """

    def __init__(self, last_issued_code: int = 0):
        self._last_issued_code = last_issued_code
        self._entries: Dict[int, LedgerEntry] = {}

    @property
    def last_issued_code(self) -> int:
        return self._last_issued_code

    def peek_code(self) -> int:
        return self._last_issued_code + 1

    def allocate(self) -> int:
        self._last_issued_code += 1
        return self._last_issued_code

    def record(self, command: BaseCommand, preview: Optional[Preview]) -> LedgerEntry:
        if command.code > self._last_issued_code:
            raise ValueError(f"code {command.code} was never allocated")
        if command.code in self._entries:
            raise ValueError(f"code {command.code} is already outstanding")

        entry = LedgerEntry(code=command.code, op=command.op, preview=preview)
        self._entries[command.code] = entry
        return entry

    def retire(self, code: int) -> Optional[LedgerEntry]:
        return self._entries.pop(code, None)

    def reconcile(self, snapshot: PlayerModel) -> List[Tuple[LedgerEntry, Outcome]]:
        """Снимок всегда побеждает: все записи закрываются, превью лишь определяет исход."""
        results = []
        for code in sorted(self._entries):
            entry = self._entries[code]
            if entry.preview is None:
                outcome = Outcome.SETTLED
            elif entry.preview.matches(snapshot):
                outcome = Outcome.CONFIRMED
            else:
                outcome = Outcome.OVERRIDDEN
            results.append((entry, outcome))
        self._entries.clear()
        return results

    def abandon_all(self) -> List[Tuple[LedgerEntry, Outcome]]:
        results = [(self._entries[code], Outcome.ABANDONED) for code in sorted(self._entries)]
        if results:
            logger.info(f"Abandoning {len(results)} outstanding command(s)")
        self._entries.clear()
        return results

    @property
    def outstanding(self) -> List[int]:
        return sorted(self._entries)

    def __contains__(self, code: int) -> bool:
        return code in self._entries

    def __len__(self) -> int:
        return len(self._entries)
