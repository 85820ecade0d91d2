import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

# level for loggers created after configure_logging runs
_level = logging.INFO


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "ts": _utc_timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = JSONFormatter()
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(_level)
        logger.propagate = False
    return logger


def configure_logging(level: str) -> None:
    """Apply LOG_LEVEL to every logger handed out by get_logger, now or later."""
    global _level
    resolved = getattr(logging, level.upper(), logging.INFO)
    _level = resolved
    for logger in list(logging.root.manager.loggerDict.values()):
        if not isinstance(logger, logging.Logger):
            continue
        if any(isinstance(h.formatter, JSONFormatter) for h in logger.handlers):
            logger.setLevel(resolved)


def log_request(request_id: str, method: str, path: str, status: int, latency_ms: float, level: str = "INFO", extra: Optional[dict] = None) -> None:
    logger = get_logger("request")
    log_data = {
        "request_id": request_id,
        "method": method,
        "path": path,
        "status": status,
        "latency_ms": round(latency_ms, 2),
    }
    if extra:
        log_data.update(extra)
    logger.log(getattr(logging, level.upper(), logging.INFO), json.dumps(log_data))
