import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from chat_widget.config.settings import settings


class JsonFormatter(logging.Formatter):
    def __init__(self, redact_content: bool = False):
        super().__init__()
        self.redact_content = redact_content

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self.redact_content:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(cfg=settings, name: str = "chat_widget") -> logging.Logger:
    level = logging.getLevelName(cfg.log_level)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for h in logger.handlers:
        if isinstance(h, logging.FileHandler):
            h.setLevel(level)
            return logger
    log_dir = Path(cfg.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / f"{name}.log", encoding="utf-8")
    fh.setLevel(level)
    fh.setFormatter(JsonFormatter(redact_content=cfg.log_redact_content))
    logger.addHandler(fh)
    return logger


logger = setup_logger()
