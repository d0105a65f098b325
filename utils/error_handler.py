"""
Error handling utilities for the Imagen server.

Every failure is logged here with its context before being turned into
whatever the caller shows: tool-result text, an RPC error object or an
HTTP status.
"""

import logging
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from ai.exceptions.imagen_exceptions import (
    GenerationError,
    NoImagesGenerated,
    RpcError,
    StartupError,
    StorageError,
    ValidationError,
)
from utils.logging_config import get_logger

logger = get_logger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories."""
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    PROVIDER = "provider"
    CONTENT_POLICY = "content_policy"
    STORAGE = "storage"
    PROTOCOL = "protocol"
    UNKNOWN = "unknown"


class HandledError:
    """Logged error together with the message shown to the caller."""

    def __init__(
        self,
        user_message: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        error_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        self.user_message = user_message
        self.category = category
        self.severity = severity
        self.error_id = error_id or f"ERR_{datetime.now().strftime('%H%M%S')}"
        self.context = context or {}
        self.original_error = original_error
        self.timestamp = datetime.now()


def redact_secrets(message: str, secrets: Iterable[str] = ()) -> str:
    """
    Remove credentials from a message before it is logged.

    Args:
        message: Raw message
        secrets: Literal values to mask (e.g. the configured API key)

    Returns:
        Message with query-string keys and the given secrets replaced by [KEY]
    """
    if not message:
        return message

    redacted = re.sub(r'([?&]key=)[^&\s"\']+', r'\1[KEY]', message)
    for secret in secrets:
        if secret:
            redacted = redacted.replace(secret, "[KEY]")
    return redacted


def categorize_error(error: Exception) -> ErrorCategory:
    """
    Categorize an error based on its type.

    Args:
        error: The exception to categorize

    Returns:
        ErrorCategory
    """
    if isinstance(error, StartupError):
        return ErrorCategory.CONFIGURATION
    if isinstance(error, ValidationError):
        return ErrorCategory.VALIDATION
    if isinstance(error, NoImagesGenerated):
        return ErrorCategory.CONTENT_POLICY
    if isinstance(error, GenerationError):
        return ErrorCategory.PROVIDER
    if isinstance(error, (StorageError, OSError)):
        return ErrorCategory.STORAGE
    if isinstance(error, RpcError):
        return ErrorCategory.PROTOCOL
    return ErrorCategory.UNKNOWN


def determine_severity(error: Exception, category: ErrorCategory) -> ErrorSeverity:
    """
    Determine error severity.

    Args:
        error: The exception
        category: Error category

    Returns:
        ErrorSeverity
    """
    if category == ErrorCategory.CONFIGURATION:
        return ErrorSeverity.CRITICAL

    if category in [ErrorCategory.STORAGE, ErrorCategory.UNKNOWN]:
        return ErrorSeverity.HIGH

    if category in [ErrorCategory.PROVIDER, ErrorCategory.CONTENT_POLICY]:
        return ErrorSeverity.MEDIUM

    # Bad input from the host: validation and protocol errors
    return ErrorSeverity.LOW


def handle_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    user_message: Optional[str] = None,
    secrets: Iterable[str] = (),
    log: logging.Logger = logger,
) -> HandledError:
    """
    Log an error with its context and return the caller-facing representation.

    Args:
        error: The exception to handle
        context: Contextual fields (method, request id, prompt length, status...)
        user_message: Message to show instead of the error's own text
        secrets: Values to redact from logged text
        log: Logger to write to

    Returns:
        HandledError instance
    """
    category = categorize_error(error)
    severity = determine_severity(error, category)

    handled = HandledError(
        user_message=user_message if user_message is not None else str(error),
        category=category,
        severity=severity,
        context=context,
        original_error=error
    )

    log_level = {
        ErrorSeverity.LOW: logging.INFO,
        ErrorSeverity.MEDIUM: logging.WARNING,
        ErrorSeverity.HIGH: logging.ERROR,
        ErrorSeverity.CRITICAL: logging.CRITICAL
    }.get(severity, logging.WARNING)

    log.log(
        log_level,
        f"Error {handled.error_id} [{category.value}]: "
        f"{type(error).__name__}: {redact_secrets(str(error), secrets)} | "
        f"Context: {context or {}}",
        # Unexpected failures keep their traceback
        exc_info=error if category == ErrorCategory.UNKNOWN else None,
    )

    return handled
