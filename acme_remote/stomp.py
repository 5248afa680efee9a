import re
from yarl import URL
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union


STOMP_VERSION = "1.2"

_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r", ":": "\\c"}
_UNESCAPES = {"\\": "\\", "n": "\n", "r": "\r", "c": ":"}
_RAW_HEADER_COMMANDS = ("CONNECT", "CONNECTED")
_HEADER_END = re.compile(rb"\r?\n\r?\n")


class StompUrlError(ValueError):
    pass


class StompUrl:
    """URL брокера для защищенного STOMP-over-WebSocket соединения."""

    def __init__(self, url: Union[str, URL]):
        try:
            parsed = URL(url) if isinstance(url, str) else url
        except (TypeError, ValueError) as e:
            raise StompUrlError(f"invalid URL: {e}") from e

        if not parsed.is_absolute():
            raise StompUrlError(f"invalid URL: {url!r} is not absolute")
        if parsed.scheme != "wss":
            raise StompUrlError("URL must use the WSS scheme")
        if parsed.raw_fragment:
            raise StompUrlError("URL cannot contain a fragment")
        self.url = parsed

    def __str__(self):
        return str(self.url)

    def __repr__(self):
        return f"StompUrl({str(self.url)!r})"


@dataclass(slots=True)
class Frame:
    command: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""


def _escape(value: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def _unescape(value: str) -> str:
    out = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, "")
        if nxt not in _UNESCAPES:
            raise ValueError(f"undefined escape sequence \\{nxt}")
        out.append(_UNESCAPES[nxt])
    return "".join(out)


def encode_frame(frame: Frame) -> str:
    raw = frame.command in _RAW_HEADER_COMMANDS
    lines = [frame.command]
    headers = dict(frame.headers)
    if frame.body and "content-length" not in headers:
        headers["content-length"] = str(len(frame.body.encode("utf-8")))
    for key, value in headers.items():
        if raw:
            lines.append(f"{key}:{value}")
        else:
            lines.append(f"{_escape(key)}:{_escape(str(value))}")
    return "\n".join(lines) + "\n\n" + frame.body + "\x00"


def parse_frames(data: Union[str, bytes]) -> List[Frame]:
    """
    Разбирает один WebSocket-пакет в список фреймов.
    Пустые строки между фреймами - это heart-beat, они пропускаются.
    """
    buf = data.encode("utf-8") if isinstance(data, str) else data
    frames = []
    pos = 0

    while pos < len(buf):
        while pos < len(buf) and buf[pos:pos + 1] in (b"\n", b"\r"):
            pos += 1
        if pos >= len(buf):
            break

        match = _HEADER_END.search(buf, pos)
        if match is None:
            raise ValueError("incomplete STOMP frame header")
        head_end = match.start()

        head = buf[pos:head_end].decode("utf-8").replace("\r\n", "\n").split("\n")
        command = head[0].strip()
        raw = command in _RAW_HEADER_COMMANDS

        headers: Dict[str, str] = {}
        for line in head[1:]:
            if not line:
                continue
            key, sep, value = line.partition(":")
            if not sep:
                raise ValueError(f"malformed STOMP header line {line!r}")
            if not raw:
                key, value = _unescape(key), _unescape(value)
            headers.setdefault(key, value)

        body_start = match.end()
        length: Optional[int] = None
        if "content-length" in headers:
            try:
                length = int(headers["content-length"])
            except ValueError:
                raise ValueError(f"bad content-length {headers['content-length']!r}") from None

        if length is not None:
            body_end = body_start + length
            if buf[body_end:body_end + 1] != b"\x00":
                raise ValueError("STOMP frame body is not NUL-terminated")
        else:
            body_end = buf.find(b"\x00", body_start)
            if body_end == -1:
                raise ValueError("STOMP frame body is not NUL-terminated")

        frames.append(Frame(command, headers, buf[body_start:body_end].decode("utf-8")))
        pos = body_end + 1

    return frames


def connect_frame(host: str, login: str, passcode: str, heartbeat_ms: int) -> Frame:
    return Frame("CONNECT", {
        "accept-version": STOMP_VERSION,
        "host": host,
        "login": login,
        "passcode": passcode,
        "heart-beat": f"0,{heartbeat_ms}"
    })


def subscribe_frame(destination: str, sub_id: str = "sub-0") -> Frame:
    return Frame("SUBSCRIBE", {"id": sub_id, "destination": destination, "ack": "auto"})


def send_frame(destination: str, body: str, content_type: Optional[str] = "application/json") -> Frame:
    headers = {"destination": destination}
    if content_type:
        headers["content-type"] = content_type
    return Frame("SEND", headers, body)


def disconnect_frame() -> Frame:
    return Frame("DISCONNECT")
