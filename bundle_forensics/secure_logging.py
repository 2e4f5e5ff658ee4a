"""
Secure logging configuration for Bundle Forensics.

Wallet addresses end up in almost every log line the clustering engine
emits. They are public on-chain, but full addresses in shared logs make it
trivial to link an analysis request to whoever ran it, so address-like
fields are partially redacted and credentials (RPC keys, API tokens) are
never written at all.
"""

import logging
import re
import sys
from typing import Any, Dict

import structlog
from structlog.types import EventDict, WrappedLogger


# Sensitive data patterns to redact from free-form strings
SENSITIVE_PATTERNS = {
    # Private keys (Ethereum format)
    'private_key': re.compile(r'0x[a-fA-F0-9]{64}'),

    # RPC / API URLs carrying a key in the query string
    'api_key_url': re.compile(r'https?://[^\s]*[?&](?:api[-_]?key|token)=[^\s&]+'),

    # URLs with auth credentials
    'auth_url': re.compile(r'https?://[^/\s]*:[^@\s]*@[^\s]+'),

    # JWT tokens
    'jwt': re.compile(r'eyJ[A-Za-z0-9_-]*\.eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*'),
}

# Field names that commonly contain sensitive data
SENSITIVE_FIELD_NAMES = {
    'password', 'secret', 'credential', 'private_key', 'api_key',
    'rpc_url', 'auth_header', 'authorization', 'bearer',
}

# Field names for partial redaction (show first/last few characters)
PARTIALLY_REDACTED_FIELDS = {
    'wallet', 'address', 'funder', 'counterparty'
}


def sanitize_string(text: str) -> str:
    """
    Sanitize a string by redacting sensitive patterns.

    Args:
        text: Input string to sanitize

    Returns:
        Sanitized string with sensitive data redacted
    """
    if not isinstance(text, str):
        return text

    sanitized = text
    for pattern_name, pattern in SENSITIVE_PATTERNS.items():
        sanitized = pattern.sub(f'[REDACTED_{pattern_name.upper()}]', sanitized)

    return sanitized


def partially_redact(value: str, show_chars: int = 4) -> str:
    """
    Partially redact a string, showing only first and last few characters.

    Args:
        value: String to partially redact
        show_chars: Number of characters to show at start and end

    Returns:
        Partially redacted string
    """
    if not isinstance(value, str) or len(value) <= show_chars * 2:
        return value

    return f"{value[:show_chars]}***{value[-show_chars:]}"


def sanitize_value(key: str, value: Any, depth: int = 0) -> Any:
    """Sanitize a single keyword value according to its field name."""
    key_lower = key.lower()

    if any(sensitive in key_lower for sensitive in SENSITIVE_FIELD_NAMES):
        return '[REDACTED_SENSITIVE_FIELD]'

    if any(partial in key_lower for partial in PARTIALLY_REDACTED_FIELDS):
        if isinstance(value, str):
            return partially_redact(value)
        if isinstance(value, (list, tuple, set, frozenset)):
            return [partially_redact(v) if isinstance(v, str) else v for v in value]
        return value

    if isinstance(value, dict):
        return sanitize_dict(value, depth + 1)

    if isinstance(value, str):
        return sanitize_string(value)

    return value


def sanitize_dict(data: Dict[str, Any], depth: int = 0) -> Dict[str, Any]:
    """
    Recursively sanitize a dictionary.

    Args:
        data: Dictionary to sanitize
        depth: Current recursion depth (prevents infinite loops)

    Returns:
        Sanitized dictionary
    """
    if depth > 10:
        return {"[DEEP_RECURSION]": "..."}

    if not isinstance(data, dict):
        return data

    return {key: sanitize_value(str(key), value, depth) for key, value in data.items()}


def secure_log_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Structlog processor that sanitizes log events.

    Catches values bound through structlog directly (bind(), contextvars)
    that never went through SecureLogger.
    """
    event = event_dict.get('event')
    sanitized = sanitize_dict({k: v for k, v in event_dict.items() if k != 'event'})
    if event is not None:
        sanitized['event'] = sanitize_string(str(event))
    return sanitized


def add_component_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag events with the pipeline component that produced them."""
    logger_name = str(event_dict.get('logger_name', ''))
    if 'clustering' in logger_name:
        event_dict['component'] = 'analysis'
    elif 'schemas' in logger_name:
        event_dict['component'] = 'ingest'
    elif 'main' in logger_name:
        event_dict['component'] = 'report'
    return event_dict


def configure_secure_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure secure logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: Whether to use JSON format for logs
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_component_context,
        secure_log_processor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=False,
    )


class SecureLogger:
    """
    Wrapper around structlog that sanitizes keyword arguments.
    """

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name, logger_name=name)
        self.name = name

    def debug(self, event: str, **kwargs):
        """Log debug message with sanitization."""
        self.logger.debug(event, **self._sanitize_kwargs(kwargs))

    def info(self, event: str, **kwargs):
        """Log info message with sanitization."""
        self.logger.info(event, **self._sanitize_kwargs(kwargs))

    def warning(self, event: str, **kwargs):
        """Log warning message with sanitization."""
        self.logger.warning(event, **self._sanitize_kwargs(kwargs))

    def error(self, event: str, **kwargs):
        """Log error message with sanitization."""
        self.logger.error(event, **self._sanitize_kwargs(kwargs))

    def _sanitize_kwargs(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        """Sanitize keyword arguments."""
        return sanitize_dict(kwargs)


def get_secure_logger(name: str) -> SecureLogger:
    """Get a secure logger instance."""
    return SecureLogger(name)
