"""
Logging setup for the outing service.

Standard library handlers format through python-json-logger, structlog
carries the same redaction rules for anything logged through it, and
``bind_log_context`` attaches values such as the expiry sweep id
to every record emitted inside a block.

OTP codes and gateway credentials must never reach a log sink, so both
paths mask any key that looks like a secret.
"""

import sys
import logging
import logging.handlers
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import structlog
from pythonjsonlogger import jsonlogger

from .config import settings

SERVICE_NAME = 'hostel-outing'

_bound_context: ContextVar[Dict[str, Any]] = ContextVar('outing_log_context', default={})

SENSITIVE_KEYS = (
    'password', 'token', 'secret', 'api_key', 'credentials',
    'authorization', 'otp', 'code',
)
REDACTED = '[REDACTED]'

# Words in an event name that mark it as security relevant
SECURITY_KEYWORDS = ('auth', 'permission', 'otp', 'scope')


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    # error_code / status_code are diagnostics
    if lowered.endswith('_code') and lowered != 'otp_code':
        return False
    return any(word in lowered for word in SENSITIVE_KEYS)


@contextmanager
def bind_log_context(**values: Any) -> Iterator[Dict[str, Any]]:
    """Attach ``values`` to every log record emitted inside the block."""
    merged = {**_bound_context.get(), **values}
    token = _bound_context.set(merged)
    try:
        yield merged
    finally:
        _bound_context.reset(token)


# ----------------------------------------------------------------------
# structlog processors
# ----------------------------------------------------------------------

def add_service_context(logger, method_name, event_dict):
    for key, value in _bound_context.get().items():
        event_dict.setdefault(key, value)
    event_dict['service'] = SERVICE_NAME
    event_dict['environment'] = settings.ENVIRONMENT
    return event_dict


class SecurityLogProcessor:
    """Flag OTP and authorization events and mask secrets, nested dicts included."""

    def __call__(self, logger, method_name, event_dict):
        event = str(event_dict.get('event', '')).lower()
        if any(keyword in event for keyword in SECURITY_KEYWORDS):
            event_dict['security_event'] = True
        self._mask(event_dict)
        return event_dict

    def _mask(self, values: Dict[str, Any]) -> None:
        for key, value in values.items():
            if key == 'event':
                continue
            if _is_sensitive(key):
                values[key] = REDACTED
            elif isinstance(value, dict):
                self._mask(value)


# ----------------------------------------------------------------------
# stdlib handlers
# ----------------------------------------------------------------------

class SensitiveDataFilter(logging.Filter):
    """Mask secret-looking attributes that arrived through ``extra=``."""

    _RESERVED = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}

    def filter(self, record: logging.LogRecord) -> bool:
        for key in list(vars(record)):
            if key not in self._RESERVED and _is_sensitive(key):
                setattr(record, key, REDACTED)
        return True


class OutingJsonFormatter(jsonlogger.JsonFormatter):

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['service'] = SERVICE_NAME
        log_record['location'] = f"{record.module}.{record.funcName}:{record.lineno}"
        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)


def _configure_structlog() -> None:
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.logging.LOG_FORMAT == "json"
        else structlog.processors.KeyValueRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            add_service_context,
            SecurityLogProcessor(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def _build_handlers(level: int) -> List[logging.Handler]:
    if settings.logging.LOG_FORMAT == "json":
        formatter: logging.Formatter = OutingJsonFormatter('%(asctime)s %(name)s %(levelname)s %(message)s')
    else:
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if settings.logging.LOG_FILE:
        log_path = Path(settings.logging.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.TimedRotatingFileHandler(
                log_path,
                when='midnight',
                backupCount=settings.logging.LOG_RETENTION,
            )
        )

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(SensitiveDataFilter())
    return handlers


class OutingLoggerAdapter(logging.LoggerAdapter):
    """
    Logger that merges instance context and ``bind_log_context`` values
    into each record's ``extra``. Values passed explicitly win.
    """

    def __init__(self, logger: logging.Logger):
        super().__init__(logger, {})

    def add_context(self, **kwargs) -> "OutingLoggerAdapter":
        self.extra.update(kwargs)
        return self

    def process(self, msg, kwargs):
        kwargs['extra'] = {**_bound_context.get(), **self.extra, **(kwargs.get('extra') or {})}
        return msg, kwargs


def get_logger(name: Optional[str] = None) -> OutingLoggerAdapter:
    return OutingLoggerAdapter(logging.getLogger(name or 'hostel_outing'))


def setup_logging() -> None:
    """Install handlers on the root logger. Call once from entry points."""
    level = getattr(logging, settings.logging.LOG_LEVEL)

    if settings.logging.ENABLE_STRUCTURED_LOGGING:
        _configure_structlog()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    for handler in _build_handlers(level):
        root.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.logging.LOG_SQL_QUERIES else logging.WARNING
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    get_logger(__name__).info("Logging system initialized", extra={
        'log_level': settings.logging.LOG_LEVEL,
        'log_format': settings.logging.LOG_FORMAT,
        'structured_logging': settings.logging.ENABLE_STRUCTURED_LOGGING,
    })


__all__ = [
    'bind_log_context',
    'get_logger',
    'setup_logging',
    'OutingLoggerAdapter',
    'OutingJsonFormatter',
    'SecurityLogProcessor',
    'SensitiveDataFilter',
]
