class RemoteError(Exception):
    """Базовая ошибка клиента удаленного плеера."""


class DecodeError(RemoteError):
    """Входящее сообщение битое или не проходит схему. Сообщение отбрасывается, соединение живет."""


class ValidationError(RemoteError):
    """Локально собранная команда нарушает ограничения. Наружу не отправляется."""


class TransportError(RemoteError):
    """Потеря соединения, ошибка записи или рукопожатия. Лечится переподключением."""


class ProtocolVersionError(RemoteError):
    """Сервер говорит на другой версии протокола. Сессия завершается без повторов."""


class SessionClosedError(RemoteError):
    pass
