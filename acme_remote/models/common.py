from enum import Enum
from pydantic import Field
from .base import RemoteModel
from typing import Optional, Union


PROTOCOL_REVISION = "A"


class PlayerState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    DISCONNECTED = "disconnected"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value == value.lower():
                    return member
        return None

    @property
    def is_live(self) -> bool:
        return self is not PlayerState.DISCONNECTED


class QueueEntry(RemoteModel):
    """
    Трек в очереди плеера. Создается только сервером, клиент никогда не придумывает id.
    duration и duration_string передаются как есть, одно из другого не вычисляется.
    """
    id: str
    title: str
    uploader: str
    duration: Union[int, float] = Field(ge=0)
    duration_string: str
    webpage_url: str
    uploader_url: Optional[str] = None
    thumbnail: Optional[str] = None
    extractor: str
