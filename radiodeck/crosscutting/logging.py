import json
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Dict, Any, Optional
from contextvars import ContextVar

# Context variables for correlation
session_id_var: ContextVar[Optional[str]] = ContextVar('session_id', default=None)
query_var: ContextVar[Optional[str]] = ContextVar('query', default=None)
station_id_var: ContextVar[Optional[str]] = ContextVar('station_id', default=None)
stage_var: ContextVar[Optional[str]] = ContextVar('stage', default=None)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'ts': datetime.utcnow().isoformat() + 'Z',
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        session_id = session_id_var.get()
        query = query_var.get()
        station_id = station_id_var.get()
        stage = stage_var.get()

        if session_id:
            log_entry['sessionId'] = session_id
        if query is not None:
            log_entry['query'] = query
        if station_id:
            log_entry['stationId'] = station_id
        if stage:
            log_entry['stage'] = stage

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        if hasattr(record, 'fields') and record.fields:
            log_entry['fields'] = record.fields

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class CorrelationContext:
    """Context manager for correlation data."""

    _VARS = {
        'session_id': session_id_var,
        'query': query_var,
        'station_id': station_id_var,
        'stage': stage_var,
    }

    def __init__(self, session_id: Optional[str] = None,
                 query: Optional[str] = None,
                 station_id: Optional[str] = None,
                 stage: Optional[str] = None):
        """Initialize correlation context."""
        self._values = {
            'session_id': session_id,
            'query': query,
            'station_id': station_id,
            'stage': stage,
        }
        self._tokens = {}

    def __enter__(self):
        """Set correlation context."""
        for name, value in self._values.items():
            if value is not None:
                self._tokens[name] = self._VARS[name].set(value)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Restore correlation context."""
        for name, token in self._tokens.items():
            self._VARS[name].reset(token)
        self._tokens.clear()


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None,
                  structured: bool = True,
                  session_id: Optional[str] = None) -> logging.Logger:
    """Setup logging for the radiodeck logger hierarchy."""
    logger = logging.getLogger('radiodeck')
    logger.setLevel(getattr(logging, level.upper()))

    logger.handlers.clear()

    if structured:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Rotate at ~10MB with up to 5 backups
    if log_file:
        file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if session_id:
        session_id_var.set(session_id)

    return logger


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, **kwargs):
    """Log message with additional fields."""
    levelno = getattr(logging, level.upper())
    if not logger.isEnabledFor(levelno):
        return

    record = logger.makeRecord(
        logger.name, levelno,
        '', 0, message, (), None
    )

    record.fields = dict(fields or {})
    record.fields.update(kwargs)

    logger.handle(record)


def log_fetch_complete(logger: logging.Logger, query: str, offset: int,
                       count: int, duration_ms: int, **kwargs):
    """Log a completed directory page fetch."""
    with CorrelationContext(query=query, stage='fetch_complete'):
        log_with_fields(logger, 'INFO', 'Directory page fetched', {
            'offset': offset,
            'count': count,
            'duration_ms': duration_ms,
            **kwargs
        })


def log_status_change(logger: logging.Logger, old_status: str, new_status: str,
                      station_id: Optional[str] = None, **kwargs):
    """Log a playback status transition."""
    with CorrelationContext(station_id=station_id, stage='status_change'):
        log_with_fields(logger, 'INFO', 'Playback status changed', {
            'from': old_status,
            'to': new_status,
            **kwargs
        })


def log_error(logger: logging.Logger, message: str, error: Exception, **kwargs):
    """Log error with exception details."""
    log_with_fields(logger, 'ERROR', message, {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    })
