# utils package initialization

from .error_handler import handle_error, redact_secrets, ErrorCategory, ErrorSeverity, HandledError

__all__ = ['handle_error', 'redact_secrets', 'ErrorCategory', 'ErrorSeverity', 'HandledError']
