"""Единая схема логирования движка.

- Все логгеры живут под общим префиксом LOG_NAME
- init_logging() настраивает консольный вывод (plain или JSON)
- get_logger() возвращает дочерний логгер модуля
"""

import json
import logging
import sys
import threading
from typing import Optional, Union

LOG_NAME = "coop_engine"
PLAIN_FORMAT = "%(asctime)s [%(levelname)s] - (%(name)s).%(funcName)s(%(lineno)d) - %(message)s"

_lock = threading.Lock()

# Стандартные атрибуты LogRecord, которые не попадают в extra-поля JSON
_RESERVED_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


class JsonFormatter(logging.Formatter):
    """Форматирует записи логов в плоский JSON (extra-поля включаются)."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, datefmt="%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "func": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED_ATTRS or key in payload:
                continue
            try:
                json.dumps(value)
                payload[key] = value
            except (TypeError, ValueError):
                payload[key] = str(value)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _to_level(value: Union[str, int], default: int) -> int:
    if isinstance(value, int):
        return value
    return getattr(logging, str(value).upper(), default)


def init_logging(
    *,
    level: Union[str, int] = "INFO",
    json_mode: bool = False,
    fmt: Optional[str] = None,
) -> logging.Logger:
    """Инициализация корневого логгера движка.

    Повторный вызов заменяет ранее установленный handler (идемпотентно).

    Args:
        level: уровень логирования
        json_mode: JSON-формат вместо plain
        fmt: шаблон plain-формата (default: PLAIN_FORMAT)

    Returns:
        Корневой логгер LOG_NAME
    """
    with _lock:
        root_logger = logging.getLogger(LOG_NAME)
        root_logger.setLevel(_to_level(level, logging.INFO))

        for handler in list(root_logger.handlers):
            if getattr(handler, "_coop_engine_handler", False):
                root_logger.removeHandler(handler)

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter() if json_mode else logging.Formatter(fmt or PLAIN_FORMAT))
        handler._coop_engine_handler = True
        root_logger.addHandler(handler)

        root_logger.debug("Logging initialized | level=%s json=%s", level, json_mode)
        return root_logger


def get_logger(suffix: Optional[str] = None) -> logging.Logger:
    """Дочерний логгер с префиксом LOG_NAME.

    Args:
        suffix: суффикс через точку (например, "payments.aggregator")
    """
    logger_name = LOG_NAME if not suffix else f"{LOG_NAME}.{suffix}"
    return logging.getLogger(logger_name)
