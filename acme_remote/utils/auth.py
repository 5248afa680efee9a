import base64
import binascii
from yarl import URL
from dataclasses import dataclass
from acme_remote.stomp import StompUrl


@dataclass
class RemoteCredentials:
    url: StompUrl
    login: str
    password: str
    remote_id: str
    access_code: str

    @property
    def command_destination(self) -> str:
        return f"/exchange/acme_bot_remote/{self.remote_id}"

    @property
    def update_destination(self) -> str:
        return f"/exchange/acme_bot_remote_update/{self.remote_id}.{self.access_code}"

    @classmethod
    def from_link(cls, link: str) -> "RemoteCredentials":
        """
        Разбирает ссылку на пульт: rid, ac и rcs (URL брокера с логином и паролем, base64url без паддинга).
        """
        query = URL(link).query
        missing = [key for key in ("rid", "ac", "rcs") if not query.get(key)]
        if missing:
            raise ValueError(f"remote link is missing parameter(s): {', '.join(missing)}")

        rcs = query["rcs"]
        try:
            server = base64.urlsafe_b64decode(rcs + "=" * (-len(rcs) % 4)).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ValueError(f"remote link has a malformed rcs parameter: {e}") from e

        server_url = URL(server)
        if server_url.user is None or server_url.password is None:
            raise ValueError("remote server URL must carry login and password")

        return cls(
            url=StompUrl(server_url.with_user(None)),
            login=server_url.user,
            password=server_url.password,
            remote_id=query["rid"],
            access_code=query["ac"]
        )
