"""Logging configuration with session correlation IDs and secret redaction.

Every record is stamped with the id of the scanning session that produced it,
so the interleaved output of camera, recognition and CRM calls can be read
back per session. Log files rotate; CRM credentials never reach a handler.
"""
import json
import logging
import logging.handlers
import re
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

# Context variable for the active scanning session
correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)


class CorrelationIDFilter(logging.Filter):
    """Filter to add correlation IDs to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get() or 'no-session'
        return True


class RedactingFormatter(logging.Formatter):
    """Formatter that masks credentials and personal data in log messages."""

    SENSITIVE_PATTERNS = [
        (re.compile(r'(?i)(Zoho-oauthtoken\s+)[^\s"\']+'), r'\1[REDACTED]'),
        (re.compile(r'(?i)(authorization["\s]*[:=]["\s]*)[^\s"\',}]+'), r'\1[REDACTED]'),
        (re.compile(r'(?i)((?:api[_-]?)?token["\s]*[:=]["\s]*)[a-zA-Z0-9._-]+'), r'\1[REDACTED]'),
        (re.compile(r'(?i)(password["\s]*[:=]["\s]*)[^\s"]+'), r'\1[REDACTED]'),
        (re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}'), '[EMAIL_REDACTED]'),
    ]

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        return self.redact(formatted)

    @classmethod
    def redact(cls, text: str) -> str:
        for pattern, replacement in cls.SENSITIVE_PATTERNS:
            text = pattern.sub(replacement, text)
        return text


class StructuredFormatter(RedactingFormatter):
    """JSON-lines formatter for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'session': getattr(record, 'correlation_id', 'no-session'),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': self.formatException(record.exc_info),
            }

        return self.redact(json.dumps(log_entry, default=str))


class HumanReadableFormatter(RedactingFormatter):
    """Console formatter for development."""

    def __init__(self, include_correlation_id: bool = True):
        format_string = (
            '%(asctime)s - %(name)s - %(levelname)s'
            + (' - %(correlation_id)s' if include_correlation_id else '')
            + ' - %(message)s'
        )
        super().__init__(format_string)


class LoggingManager:
    """Central logging manager for the scanner."""

    def __init__(self):
        self._configured = False
        self._log_dir: Optional[Path] = None
        self._handlers: Dict[str, logging.Handler] = {}

    @property
    def is_configured(self) -> bool:
        return self._configured

    def configure(
        self,
        log_level: str = 'INFO',
        log_dir: Optional[Union[str, Path]] = None,
        enable_file_logging: bool = True,
        enable_console_logging: bool = True,
        structured_logging: bool = False,
        max_file_size: int = 5 * 1024 * 1024,
        backup_count: int = 3,
        application_name: str = 'serial-scanner'
    ) -> None:
        """Configure logging for the application.

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (defaults to ./logs)
            enable_file_logging: Enable rotating log files
            enable_console_logging: Enable console logging
            structured_logging: Use JSON-lines output instead of plain text
            max_file_size: Maximum size of a log file before rotation
            backup_count: Number of rotated files to keep
            application_name: Base name of the log files
        """
        if self._configured:
            return

        level = getattr(logging, log_level.upper(), logging.INFO)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        correlation_filter = CorrelationIDFilter()
        formatter = StructuredFormatter() if structured_logging else HumanReadableFormatter()

        if enable_console_logging:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            console_handler.addFilter(correlation_filter)
            root_logger.addHandler(console_handler)
            self._handlers['console'] = console_handler

        if enable_file_logging:
            self._log_dir = Path(log_dir) if log_dir else Path('logs')
            self._log_dir.mkdir(parents=True, exist_ok=True)

            app_handler = logging.handlers.RotatingFileHandler(
                self._log_dir / f'{application_name}.log',
                maxBytes=max_file_size,
                backupCount=backup_count,
                encoding='utf-8'
            )
            app_handler.setLevel(level)
            app_handler.setFormatter(formatter)
            app_handler.addFilter(correlation_filter)
            root_logger.addHandler(app_handler)
            self._handlers['application'] = app_handler

            # ERROR and CRITICAL only
            error_handler = logging.handlers.RotatingFileHandler(
                self._log_dir / f'{application_name}-errors.log',
                maxBytes=max_file_size,
                backupCount=backup_count,
                encoding='utf-8'
            )
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(formatter)
            error_handler.addFilter(correlation_filter)
            root_logger.addHandler(error_handler)
            self._handlers['errors'] = error_handler

        self._configure_specific_loggers()

        self._configured = True
        logging.info(f"Logging configured - Level: {log_level}, File: {enable_file_logging}, Console: {enable_console_logging}")

    def _configure_specific_loggers(self) -> None:
        """Quieten chatty third-party loggers."""
        logging.getLogger('PIL').setLevel(logging.WARNING)
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('requests').setLevel(logging.WARNING)
        logging.getLogger('asyncio').setLevel(logging.WARNING)

    def set_correlation_id(self, corr_id: Optional[str] = None) -> str:
        """Set correlation ID for the current context."""
        if corr_id is None:
            corr_id = uuid.uuid4().hex[:12]
        correlation_id.set(corr_id)
        return corr_id

    def clear_correlation_id(self) -> None:
        correlation_id.set(None)

    def shutdown(self) -> None:
        """Close all handlers."""
        root_logger = logging.getLogger()
        for handler in self._handlers.values():
            root_logger.removeHandler(handler)
            handler.close()
        self._handlers.clear()
        self._configured = False


# Global logging manager instance
logging_manager = LoggingManager()


def configure_logging(**kwargs) -> None:
    """Configure application logging."""
    logging_manager.configure(**kwargs)


def set_correlation_id(corr_id: Optional[str] = None) -> str:
    """Set correlation ID for current context."""
    return logging_manager.set_correlation_id(corr_id)


def clear_correlation_id() -> None:
    logging_manager.clear_correlation_id()


class CorrelationContext:
    """Context manager scoping log records to one session id."""

    def __init__(self, corr_id: Optional[str] = None):
        self.corr_id = corr_id
        self._token = None

    def __enter__(self) -> str:
        corr_id = self.corr_id or uuid.uuid4().hex[:12]
        self._token = correlation_id.set(corr_id)
        return corr_id

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        correlation_id.reset(self._token)
