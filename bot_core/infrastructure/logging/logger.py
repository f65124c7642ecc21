import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from bot_core.config.settings import settings


# 这些字段里是用户原话，开启脱敏时只保留前缀
_USER_TEXT_FIELDS = ("text", "utterance", "command")
_REDACT_PREFIX = 64


def _redact(value: Any) -> Any:
    if isinstance(value, str) and len(value) > _REDACT_PREFIX:
        return value[:_REDACT_PREFIX] + "…"
    return value


class JsonFormatter(logging.Formatter):
    """一行一个 JSON 对象；extra={"extra": {...}} 中的字段并入顶层。"""

    def __init__(self, redact: bool = False):
        super().__init__()
        self.redact = redact

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": _redact(msg) if self.redact else msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            for key, value in extra.items():
                payload[key] = _redact(value) if self.redact and key in _USER_TEXT_FIELDS else value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(name: str = "bot_core") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(settings.log_level.upper())
    if logger.handlers:
        return logger
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "bot.log", encoding="utf-8")
    fh.setFormatter(JsonFormatter(redact=settings.log_redact_content))
    logger.addHandler(fh)
    return logger


logger = setup_logger()
