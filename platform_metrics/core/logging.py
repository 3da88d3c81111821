"""
Logging estruturado.
Os campos extras de cada chamada saem como pares key=value na mesma linha.
"""

import logging
import sys
from typing import Optional

from platform_metrics.core.config import settings

# atributos próprios do LogRecord; tudo fora daqui veio de `extra`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "timestamp"}


class StructuredLogger:
    """Fachada sobre `logging.Logger` que aceita campos como kwargs."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def debug(self, message: str, **fields):
        self.logger.debug(message, extra=fields)

    def info(self, message: str, **fields):
        self.logger.info(message, extra=fields)

    def warning(self, message: str, **fields):
        self.logger.warning(message, extra=fields)

    def error(self, message: str, exc: Optional[BaseException] = None, **fields):
        """Loga o erro; com `exc`, inclui o traceback."""
        self.logger.error(message, exc_info=exc, extra=fields)


class StructuredFormatter(logging.Formatter):
    """`[quando] NIVEL logger: mensagem | k=v | k=v`"""

    def format(self, record: logging.LogRecord) -> str:
        record.timestamp = self.formatTime(record, self.default_time_format)
        line = f"[{record.timestamp}] {record.levelname} {record.name}: {record.getMessage()}"

        fields = [f"{k}={v}" for k, v in record.__dict__.items() if k not in _RECORD_ATTRS]
        if fields:
            line = f"{line} | {' | '.join(fields)}"

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configura o root logger com o formatter estruturado.

    Args:
        level: nível mínimo (DEBUG, INFO, WARNING, ERROR)
        log_file: se informado, também grava neste arquivo
    """
    root = logging.getLogger()
    root.handlers.clear()
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric_level)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)

    # bibliotecas barulhentas
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


app_logger = get_logger("platform_metrics")
db_logger = get_logger("platform_metrics.db")
api_logger = get_logger("platform_metrics.api")
fanout_logger = get_logger("platform_metrics.fanout")
cache_logger = get_logger("platform_metrics.cache")


def init_app_logging():
    """Aplica LOG_LEVEL / LOG_TO_FILE / LOG_FILE_PATH das settings."""
    log_file = settings.LOG_FILE_PATH if settings.LOG_TO_FILE else None
    configure_logging(settings.LOG_LEVEL, log_file)
    app_logger.info("Application logging initialized", level=settings.LOG_LEVEL, log_file=log_file)
