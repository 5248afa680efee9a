from pydantic import Field, model_validator
from typing import Optional, Tuple
from .base import RemoteModel
from .common import PlayerState, QueueEntry


class PlayerModel(RemoteModel):
    """
    Полный снимок состояния плеера (ревизия протокола A).
    Снимок всегда заменяет состояние целиком, частичных патчей нет.
    """
    loop: bool
    volume: int = Field(ge=0, le=100)
    state: PlayerState
    queue: Tuple[QueueEntry, ...] = ()
    position: int = Field(ge=0)
    current: Optional[QueueEntry]

    @model_validator(mode="after")
    def _check_invariants(self):
        seen = set()
        for entry in self.queue:
            if entry.id in seen:
                raise ValueError(f"duplicate queue entry id {entry.id!r}")
            seen.add(entry.id)

        if self.state in (PlayerState.PLAYING, PlayerState.PAUSED) and self.current is None:
            raise ValueError(f"player is {self.state.value} but has no current entry")
        return self

    @classmethod
    def default(cls) -> "PlayerModel":
        return cls(loop=True, volume=100, state=PlayerState.IDLE, queue=(), position=0, current=None)

    @classmethod
    def disconnected(cls) -> "PlayerModel":
        return cls.default().as_disconnected()

    def as_disconnected(self) -> "PlayerModel":
        """Копия снимка, за состояние которого клиент больше не ручается."""
        return self.model_copy(update={"state": PlayerState.DISCONNECTED})

    def index_of(self, entry_id: str) -> Optional[int]:
        for idx, entry in enumerate(self.queue):
            if entry.id == entry_id:
                return idx
        return None

    def find(self, entry_id: str) -> Optional[QueueEntry]:
        idx = self.index_of(entry_id)
        return self.queue[idx] if idx is not None else None
