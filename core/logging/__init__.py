# Structured logging built on structlog over the stdlib logging tree
import sys
import logging
import structlog
from typing import Optional, Dict, Any, Iterable

from core.config.settings import Settings

# Global flag to prevent duplicate logging configuration
_logging_configured = False

_DEFAULT_REDACT_KEYS = (
    "authorization", "token", "api_key", "apikey", "password", "secret"
)


def _make_redactor(keys: Iterable[str]):
    keys_to_redact = {k.lower() for k in keys}

    def redact_sensitive(logger, name, event_dict):
        """Redact sensitive fields from event dict recursively."""
        def _redact(obj):
            if isinstance(obj, dict):
                out = {}
                for k, v in obj.items():
                    if isinstance(k, str) and k.lower() in keys_to_redact:
                        out[k] = "[REDACTED]"
                    else:
                        out[k] = _redact(v)
                return out
            if isinstance(obj, list):
                return [_redact(v) for v in obj]
            return obj

        return _redact(event_dict)

    return redact_sensitive


def _shared_processors(redact_keys: Iterable[str]) -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _make_redactor(redact_keys),
    ]


def configure_logging(settings: Settings) -> None:
    """Configure structlog and the root handler once per process."""
    global _logging_configured

    # Prevent duplicate configuration
    if _logging_configured:
        return

    level = settings.logging.level.upper()
    shared = _shared_processors(settings.logging.redact_keys or _DEFAULT_REDACT_KEYS)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.logging.json_format
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    # Replace stdout handlers installed by earlier basicConfig calls
    for existing in list(root_logger.handlers):
        if isinstance(existing, logging.StreamHandler) and getattr(existing, "stream", None) is sys.stdout:
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Keep third-party chatter at WARNING unless we run at DEBUG
    if level != "DEBUG":
        for noisy in ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    _logging_configured = True


def get_logger(name: str, component: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger instance, optionally bound to a component."""
    logger = structlog.get_logger(name)
    if component:
        return logger.bind(component=component)
    return logger


def bind_broker_context(logger: structlog.BoundLogger, broker: str, account_id: Optional[int] = None) -> structlog.BoundLogger:
    """Bind broker context consistently to a logger.

    Adds the `broker` field and, when known, `account_id`.
    """
    ctx: Dict[str, Any] = {"broker": broker}
    if account_id is not None:
        ctx["account_id"] = account_id
    return logger.bind(**ctx)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_broker_context",
]
