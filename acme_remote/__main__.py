import sys
import argparse
import uvicorn
from acme_remote.logger import Logger
from acme_remote.bridge import create_app
from acme_remote.engine import SyncEngine
from acme_remote.config import RemoteSettings
from acme_remote.utils.auth import RemoteCredentials


def main(argv=None):
    settings = RemoteSettings.from_env()

    parser = argparse.ArgumentParser(description='Remote control bridge for an acme-bot music player')
    parser.add_argument('--link', type=str, default=settings.link, help='Remote link with rid, ac and rcs parameters')
    parser.add_argument('--host', type=str, default=settings.host, help='Bridge listen address')
    parser.add_argument('--port', type=int, default=settings.port, help='Bridge listen port')
    parser.add_argument('--log-level', type=str, default=settings.log_level, help='Logging level')
    parser.add_argument('--log-file', type=str, default=settings.log_file, help='Optional rotating log file')
    args = parser.parse_args(argv)

    settings.link = args.link
    settings.host = args.host
    settings.port = args.port
    settings.log_level = args.log_level
    settings.log_file = args.log_file

    logger = Logger.setup(settings.log_level, settings.log_file)

    if not settings.link:
        parser.error("a remote link is required (--link or ACME_REMOTE_LINK)")

    try:
        credentials = RemoteCredentials.from_link(settings.link)
    except ValueError as e:
        logger.error(f"Invalid remote link: {e}")
        return 2

    logger.info(f"Remote {credentials.remote_id} via {credentials.url}")
    engine = SyncEngine(credentials, settings)
    uvicorn.run(create_app(engine), host=settings.host, port=settings.port, log_config=None)
    return 0


if __name__ == '__main__':
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        pass
