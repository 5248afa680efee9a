import json
import logging
from typing import Any, Union
from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError
from acme_remote.models.player import PlayerModel
from acme_remote.errors import DecodeError, ProtocolVersionError, ValidationError
from acme_remote.models.commands import COMMAND_TYPES, BaseCommand, Command, Op, UnknownCommand


logger = logging.getLogger(__name__)

KNOWN_OPS = frozenset(op.value for op in Op)

_command_adapter = TypeAdapter(Command)


def _load_object(payload: Union[bytes, str]) -> dict:
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"payload is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError(f"expected a JSON object, got {type(data).__name__}")
    return data


def build_command(op: Union[Op, str], code: int, **fields: Any) -> BaseCommand:
    """
    Собирает исходящую команду и проверяет ее поля.
    Значения вне допустимого диапазона отклоняются, а не обрезаются.
    """
    try:
        op = Op(op)
    except ValueError as e:
        raise ValidationError(f"unknown operation {op!r}") from e

    try:
        return COMMAND_TYPES[op](code=code, **fields)
    except SchemaError as e:
        raise ValidationError(f"invalid {op} command: {e}") from e


def encode(command: BaseCommand) -> bytes:
    if isinstance(command, UnknownCommand) or not isinstance(command, BaseCommand):
        raise ValidationError(f"refusing to encode {type(command).__name__}")
    return command.model_dump_json().encode("utf-8")


def decode(payload: Union[bytes, str]) -> Union[BaseCommand, UnknownCommand]:
    data = _load_object(payload)

    op = data.get("op")
    if not isinstance(op, str):
        raise DecodeError("command has no string 'op' discriminant")

    try:
        if op not in KNOWN_OPS:
            logger.debug(f"Unknown command op {op!r}, keeping it as UnknownCommand")
            return UnknownCommand.model_validate(data)
        return _command_adapter.validate_python(data)
    except SchemaError as e:
        raise DecodeError(f"invalid {op} command: {e}") from e


def parse_snapshot(payload: Union[bytes, str]) -> PlayerModel:
    """
    Разбирает снимок состояния плеера.
    Снимок ревизии B (без position и current) считается несовместимой версией протокола.
    """
    data = _load_object(payload)

    if "position" not in data and "current" not in data and {"state", "queue"} <= data.keys():
        raise ProtocolVersionError("snapshot has no position/current fields (protocol revision B?)")

    try:
        return PlayerModel.model_validate(data)
    except SchemaError as e:
        raise DecodeError(f"invalid snapshot: {e}") from e
