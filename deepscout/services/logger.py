"""Centralized logging service using loguru.

Structured helpers write one ``PREFIX: {json}`` line per record so log files can be
grepped by prefix and parsed line by line.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from deepscout.config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

# Framework/network loggers that go through stdlib logging
NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "sse_starlette.sse",
    "httpx",
    "httpcore",
    "hpack",
    "openai._base_client",
    "trafilatura",
    "asyncio",
)

logger.remove()
logger.add(
    sys.stderr,
    format=CONSOLE_FORMAT,
    level=settings.app_log_level.upper(),
    colorize=True,
)

if settings.log_to_file:
    LOG_DIR = Path(settings.log_dir)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logger.add(
        LOG_DIR / "deepscout_{time:YYYY-MM-DD}.log",
        format=FILE_FORMAT,
        level="DEBUG",
        rotation="00:00",  # New file at midnight
        retention="7 days",
        compression="zip",
    )

for logger_name in NOISY_LOGGERS:
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def _emit(prefix: str, payload: dict[str, Any], *, failed: bool = False) -> None:
    record = {"timestamp": datetime.now(timezone.utc).isoformat(), **payload}
    line = json.dumps(record, default=str, ensure_ascii=False)
    if failed:
        logger.error(f"{prefix}_FAILED: {line}")
    else:
        logger.info(f"{prefix}: {line}")


def log_llm_call(
    model: str,
    caller: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log an LLM API call."""
    _emit(
        "LLM_CALL",
        {
            "model": model,
            "caller": caller,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
            "duration_ms": duration_ms,
            "status": status,
            "error": error,
        },
        failed=bool(error),
    )


def log_search_call(
    provider: str,
    query: str,
    k: int,
    result_count: int = 0,
    duration_ms: int = 0,
    fallback_from: Optional[str] = None,
    error: Optional[str] = None,
) -> None:
    """Log one uncached web search, including a provider fallback if one happened."""
    _emit(
        "SEARCH_CALL",
        {
            "provider": provider,
            "query": query[:120],
            "k": k,
            "result_count": result_count,
            "duration_ms": duration_ms,
            "fallback_from": fallback_from,
            "error": error,
        },
        failed=bool(error),
    )


def log_research_step(
    run_id: str,
    step_type: str,
    status: str,
    data: Optional[dict[str, Any]] = None,
) -> None:
    """Log a research state transition."""
    _emit(
        "RESEARCH_STEP",
        {"run_id": run_id, "step_type": step_type, "status": status, "data": data},
    )


def log_event(event_type: str, message: str, **kwargs: Any) -> None:
    _emit("EVENT", {"event_type": event_type, "message": message, **kwargs})
