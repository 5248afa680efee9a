from dataclasses import dataclass
from typing import Callable, Optional
from acme_remote.models.player import PlayerModel
from acme_remote.models.common import PlayerState
from acme_remote.models.commands import BaseCommand, Op


@dataclass(frozen=True, slots=True)
class Preview:
    """
    Оптимистичное изменение локального зеркала.
    apply строит новое состояние, matches проверяет, отражено ли изменение в снимке сервера.
    """
    apply: Callable[[PlayerModel], PlayerModel]
    matches: Callable[[PlayerModel], bool]


def _field_preview(field: str, value) -> Preview:
    return Preview(
        apply=lambda model: model.model_copy(update={field: value}),
        matches=lambda snapshot: getattr(snapshot, field) == value
    )


def preview_for(command: BaseCommand, model: PlayerModel) -> Optional[Preview]:
    """
    Возвращает превью команды относительно текущего зеркала или None,
    если клиент не может предсказать результат (skip, prev, незнакомый id).
    """
    match Op(command.op):
        case Op.PAUSE:
            if model.state is PlayerState.PLAYING:
                return _field_preview("state", PlayerState.PAUSED)
        case Op.RESUME:
            if model.state is PlayerState.PAUSED:
                return _field_preview("state", PlayerState.PLAYING)
        case Op.LOOP:
            return _field_preview("loop", command.enabled)
        case Op.VOLUME:
            return _field_preview("volume", command.value)
        case Op.CLEAR:
            return Preview(
                apply=lambda m: m.model_copy(update={"queue": ()}),
                matches=lambda s: len(s.queue) == 0
            )
        case Op.REMOVE:
            entry_id = command.id
            if model.index_of(entry_id) is None:
                return None
            return Preview(
                apply=lambda m: m.model_copy(update={"queue": tuple(e for e in m.queue if e.id != entry_id)}),
                matches=lambda s: s.index_of(entry_id) is None
            )
        case Op.MOVE:
            entry = model.find(command.id)
            if entry is None:
                return None
            return Preview(
                apply=lambda m: m.model_copy(update={"current": entry, "state": PlayerState.PLAYING, "position": 0}),
                matches=lambda s: s.current is not None and s.current.id == entry.id
            )
    return None
