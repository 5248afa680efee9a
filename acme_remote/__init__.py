from acme_remote.engine import SyncEngine
from acme_remote.config import RemoteSettings
from acme_remote.models.player import PlayerModel
from acme_remote.utils.auth import RemoteCredentials
from acme_remote.session import SessionState, TransportSession
from acme_remote.models.common import PROTOCOL_REVISION, PlayerState, QueueEntry


__version__ = "0.1.0"
