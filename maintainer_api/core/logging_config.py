# maintainer_api/core/logging_config.py
"""Logging configuration - stdlib handlers as the sink, structlog for structured entries"""

import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

# Security-relevant mutation entries. Ranked above WARNING so a quiet
# LOG_LEVEL never drops them while ordinary traffic is filtered.
AUDIT = "audit"
AUDIT_LEVEL = 35
logging.addLevelName(AUDIT_LEVEL, AUDIT.upper())


class AuditLogger(logging.LoggerAdapter):
    """Stdlib logger with an ``audit`` method at AUDIT_LEVEL"""

    def __init__(self, logger: logging.Logger):
        super().__init__(logger, {})

    def audit(self, msg, *args, **kwargs):
        self.log(AUDIT_LEVEL, msg, *args, **kwargs)


class AuditLoggerFactory(structlog.stdlib.LoggerFactory):
    def __call__(self, *args: Any) -> AuditLogger:
        return AuditLogger(super().__call__(*args))


class AuditBoundLogger(structlog.stdlib.BoundLogger):
    """structlog stdlib wrapper that also knows the AUDIT level"""

    def audit(self, event: Optional[str] = None, *args: Any, **kw: Any) -> Any:
        return self._proxy_to_logger(AUDIT, event, *args, **kw)


def _filter_by_level(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """``structlog.stdlib.filter_by_level`` that also resolves custom level names"""
    level = logging.getLevelName(method_name.upper())
    if isinstance(level, int) and not logger.isEnabledFor(level):
        raise structlog.DropEvent
    return event_dict


def setup_logging(
    log_level: Optional[str] = None,
    log_dir: Optional[str] = None,
    json_output: Optional[bool] = None,
):
    """Configure the process-wide log sink. Call once at startup."""
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_dir = Path(log_dir if log_dir is not None else os.getenv("LOG_DIR", "logs"))
    if json_output is None:
        json_output = os.getenv("LOG_JSON", "true").lower() in {"1", "true", "yes", "on"}

    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # structlog renders the full line; handlers only pass it through
    formatter = logging.Formatter('%(message)s')

    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)
               for h in root_logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # Rotating file, 5 MB per file, 5 backups
    log_file = log_dir / 'maintainer.log'
    if not any(isinstance(h, RotatingFileHandler) and h.baseFilename == str(log_file.resolve())
               for h in root_logger.handlers):
        file_handler = RotatingFileHandler(
            filename=str(log_file),
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            _filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        logger_factory=AuditLoggerFactory(),
        wrapper_class=AuditBoundLogger,
        context_class=dict,
        # capture_logs() in tests needs uncached loggers
        cache_logger_on_first_use=False,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str):
    """Structured logger; bind request context onto it with ``.bind()``"""
    return structlog.get_logger(name)


def audit(log, event: str, **fields: Any) -> None:
    """Emit a security-relevant entry at the AUDIT level"""
    log.audit(event, audit=True, **fields)
