import os
from typing import Optional
from dataclasses import dataclass, asdict, fields


ENV_PREFIX = "ACME_REMOTE_"


@dataclass(slots=True)
class RemoteSettings:
    link: str = ""
    vhost: str = "/"
    connect_timeout: float = 20.0
    heartbeat_ms: int = 10000
    heartbeat_grace: float = 2.0
    first_retry_delay: float = 0.05
    backoff_base: float = 0.5
    backoff_cap: float = 30.0
    max_retries: Optional[int] = 20
    max_decode_failures: int = 5
    log_level: str = "INFO"
    log_file: Optional[str] = None
    host: str = "127.0.0.1"
    port: int = 8000

    @property
    def heartbeat_timeout(self) -> float:
        return self.heartbeat_ms / 1000 * self.heartbeat_grace

    @classmethod
    def from_dict(cls, data: dict):
        if not data: return cls()
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_env(cls, environ=None):
        """Читает ACME_REMOTE_* переменные окружения. Пустое значение max_retries - без ограничений."""
        environ = os.environ if environ is None else environ
        data = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.type == Optional[int]:
                data[f.name] = int(raw) if raw.strip() else None
            elif f.type == Optional[str]:
                data[f.name] = raw or None
            elif f.type is int:
                data[f.name] = int(raw)
            elif f.type is float:
                data[f.name] = float(raw)
            else:
                data[f.name] = raw
        return cls.from_dict(data)

    def to_dict(self):
        return asdict(self)
