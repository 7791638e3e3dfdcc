# app/core/logger.py
from __future__ import annotations

"""
StreamVault — Logging (Loguru)
------------------------------
- Pretty console logs by default; JSON lines with `LOG_JSON=1`
- `request_id` (RequestIDMiddleware) and `artifact_id` (pipeline) are carried
  in the loguru `extra` context and rendered on every line
- stdlib / uvicorn / fastapi / starlette / app loggers are routed into Loguru
- Optional rotating file sink

Env
---
LOG_LEVEL=INFO|DEBUG|WARNING|ERROR (default: INFO)
LOG_JSON=1          structured output
LOG_TO_FILE=1       write LOG_DIR/LOG_FILE with rotation (default: 0)
LOG_DIR=logs
LOG_FILE=streamvault.log
LOG_ROTATION=10 MB
APP_DEBUG=1         backtrace/diagnose on the console sink
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv
from loguru import logger

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_JSON = os.getenv("LOG_JSON", "0").lower() in {"1", "true", "yes"}
APP_DEBUG = os.getenv("APP_DEBUG", "0").lower() in {"1", "true", "yes"}

LOG_TO_FILE = os.getenv("LOG_TO_FILE", "0").lower() in {"1", "true", "yes"}
LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_FILE = os.getenv("LOG_FILE", "streamvault.log")
LOG_ROTATION = os.getenv("LOG_ROTATION", "10 MB")

_STDLIB_LOGGERS = ("uvicorn", "uvicorn.error", "fastapi", "starlette", "app", "auth", "security", "redis", "streamvault")

logger.remove()


# ─────────────────────────────────────────────────────────────
# 🧾 Formatters
# ─────────────────────────────────────────────────────────────
def _fmt_pretty(record) -> str:
    extra = record["extra"]
    extra.setdefault("request_id", "N/A")
    suffix = f" | request_id={extra['request_id']}"
    if extra.get("artifact_id"):
        suffix += f" artifact_id={extra['artifact_id']}"
    safe_name = record["name"].replace("<", "[").replace(">", "]")
    safe_func = record["function"].replace("<", "[").replace(">", "]")
    return (
        f"<green>{record['time']:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        f"<level>{record['level']:<8}</level> | "
        f"<cyan>{safe_name}</cyan>:<cyan>{safe_func}</cyan>:<cyan>{record['line']}</cyan> - "
        "<level>{message}</level>" + suffix.replace("{", "{{").replace("}", "}}") + "\n{exception}"
    )


def _fmt_json(record) -> str:
    payload: Dict[str, Any] = {
        "ts": record["time"].timestamp(),
        "level": record["level"].name,
        "logger": record["name"],
        "func": record["function"],
        "line": record["line"],
        "message": record["message"],
        "request_id": record["extra"].get("request_id", "N/A"),
    }
    for k, v in record["extra"].items():
        if k not in payload:
            payload[k] = v if isinstance(v, (str, int, float, bool, type(None))) else str(v)
    record["extra"]["_json"] = json.dumps(payload, ensure_ascii=False)
    return "{extra[_json]}\n"


_FORMAT = _fmt_json if LOG_JSON else _fmt_pretty

# ─────────────────────────────────────────────────────────────
# 📤 Sinks
# ─────────────────────────────────────────────────────────────
logger.add(
    sys.stdout,
    level=LOG_LEVEL,
    format=_FORMAT,
    enqueue=True,
    backtrace=APP_DEBUG,
    diagnose=APP_DEBUG,
)

if LOG_TO_FILE:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logger.add(
        str(LOG_DIR / LOG_FILE),
        rotation=LOG_ROTATION,
        level=LOG_LEVEL,
        format=_FORMAT,
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )


# ─────────────────────────────────────────────────────────────
# 🔁 Intercept stdlib logging → Loguru
# ─────────────────────────────────────────────────────────────
class InterceptHandler(logging.Handler):
    """Route standard logging records into Loguru, keeping `extra=` fields."""

    _RESERVED = set(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        extras = {k: v for k, v in record.__dict__.items() if k not in self._RESERVED}
        logger.bind(**extras).opt(depth=6, exception=record.exc_info).log(level, record.getMessage())


for _name in _STDLIB_LOGGERS:
    _std = logging.getLogger(_name)
    _std.handlers = [InterceptHandler()]
    _std.setLevel(LOG_LEVEL)
    _std.propagate = False
