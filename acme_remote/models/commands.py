from enum import Enum
from pydantic import Field, ConfigDict
from .base import RemoteModel
from typing import Annotated, ClassVar, Literal, Optional, Union


class Op(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    CLEAR = "clear"
    LOOP = "loop"
    VOLUME = "volume"
    REMOVE = "remove"
    MOVE = "move"
    SKIP = "skip"
    PREV = "prev"

    def __str__(self):
        return self.value


class BaseCommand(RemoteModel):
    coalesces: ClassVar[bool] = True

    code: int = Field(ge=0)

    @property
    def intent(self) -> str:
        """Ключ намерения: неотправленная команда вытесняется более новой с тем же ключом."""
        return self.op


class PauseCommand(BaseCommand):
    op: Literal["pause"] = "pause"

    @property
    def intent(self) -> str:
        return "playback"


class ResumeCommand(BaseCommand):
    op: Literal["resume"] = "resume"

    @property
    def intent(self) -> str:
        return "playback"


class ClearCommand(BaseCommand):
    op: Literal["clear"] = "clear"


class LoopCommand(BaseCommand):
    op: Literal["loop"] = "loop"
    enabled: bool


class VolumeCommand(BaseCommand):
    op: Literal["volume"] = "volume"
    value: int = Field(ge=0, le=100)


class RemoveCommand(BaseCommand):
    op: Literal["remove"] = "remove"
    offset: int = Field(ge=0)
    id: str

    @property
    def intent(self) -> str:
        return f"remove:{self.id}"


class MoveCommand(BaseCommand):
    op: Literal["move"] = "move"
    offset: int = Field(ge=0)
    id: str


class SkipCommand(BaseCommand):
    coalesces: ClassVar[bool] = False

    op: Literal["skip"] = "skip"


class PrevCommand(BaseCommand):
    coalesces: ClassVar[bool] = False

    op: Literal["prev"] = "prev"


class UnknownCommand(RemoteModel):
    """Команда с незнакомым op. Только для входящих сообщений, наружу не кодируется."""
    model_config = ConfigDict(frozen=True, extra='allow')

    op: str
    code: Optional[int] = None


Command = Annotated[
    Union[
        PauseCommand,
        ResumeCommand,
        ClearCommand,
        LoopCommand,
        VolumeCommand,
        RemoveCommand,
        MoveCommand,
        SkipCommand,
        PrevCommand,
    ],
    Field(discriminator="op"),
]

COMMAND_TYPES = {
    Op.PAUSE: PauseCommand,
    Op.RESUME: ResumeCommand,
    Op.CLEAR: ClearCommand,
    Op.LOOP: LoopCommand,
    Op.VOLUME: VolumeCommand,
    Op.REMOVE: RemoveCommand,
    Op.MOVE: MoveCommand,
    Op.SKIP: SkipCommand,
    Op.PREV: PrevCommand,
}
