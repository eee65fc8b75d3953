"""Input sanitization helpers."""

from authz_provision.security.validation import sanitize_console_text, sanitize_log_input

__all__ = ["sanitize_console_text", "sanitize_log_input"]
