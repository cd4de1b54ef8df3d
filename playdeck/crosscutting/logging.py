import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Context variables for correlation
command_var: ContextVar[Optional[str]] = ContextVar('command', default=None)
playlist_url_var: ContextVar[Optional[str]] = ContextVar('playlist_url', default=None)

LOGGER_NAME = 'playdeck'
_PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single-line JSON object."""
        log_entry: Dict[str, Any] = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        command = command_var.get()
        playlist_url = playlist_url_var.get()
        if command:
            log_entry['command'] = command
        if playlist_url:
            log_entry['playlistUrl'] = playlist_url

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        fields = getattr(record, 'fields', None)
        if fields:
            log_entry['fields'] = fields

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class CorrelationContext:
    """Context manager binding the running command and playlist to log records."""

    def __init__(self, command: Optional[str] = None, playlist_url: Optional[str] = None):
        self.command = command
        self.playlist_url = playlist_url
        self._tokens = []

    def __enter__(self):
        if self.command is not None:
            self._tokens.append((command_var, command_var.set(self.command)))
        if self.playlist_url is not None:
            self._tokens.append((playlist_url_var, playlist_url_var.set(self.playlist_url)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None,
                  structured: bool = True) -> logging.Logger:
    """Configure the ``playdeck`` logger hierarchy."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()
    logger.propagate = False

    formatter = StructuredFormatter() if structured else logging.Formatter(_PLAIN_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None,
                    exc_info: Any = False, **kwargs) -> None:
    """Log message with additional structured fields."""
    merged = dict(fields or {})
    merged.update(kwargs)
    logger.log(getattr(logging, level.upper()), message,
               extra={'fields': merged}, exc_info=exc_info)


def log_error(logger: logging.Logger, message: str, error: Exception, **kwargs) -> None:
    """Log error with exception details."""
    log_with_fields(logger, 'ERROR', message, {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    }, exc_info=(type(error), error, error.__traceback__))
