import sys
import logging
from typing import Optional
from logging.handlers import RotatingFileHandler


FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class Logger:
    """Настройка логгера пакета. Модули пишут в logging.getLogger(__name__)."""

    @classmethod
    def setup(cls, level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
        logger = logging.getLogger('acme_remote')
        logger.setLevel(level.upper())

        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        if log_file:
            try:
                handler = RotatingFileHandler(log_file, maxBytes=2*1024*1024, backupCount=3, encoding='utf-8')
                handler.setFormatter(logging.Formatter(FORMAT))
                logger.addHandler(handler)
            except OSError as e:
                print(f"Failed to setup file handler: {e}", file=sys.stderr)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(FORMAT))
        logger.addHandler(console_handler)

        return logger
