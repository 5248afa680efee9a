from .common import PROTOCOL_REVISION, PlayerState, QueueEntry
from .player import PlayerModel
from .commands import (
    COMMAND_TYPES,
    BaseCommand,
    Command,
    LoopCommand,
    MoveCommand,
    Op,
    RemoveCommand,
    UnknownCommand,
    VolumeCommand,
)
