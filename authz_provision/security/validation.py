"""Sanitization of model-derived values before they reach logs or the terminal."""

import re
from typing import Any

from rich.markup import escape

ANSI_ESCAPE = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')
MAX_LOG_LENGTH = 1000


def sanitize_log_input(data: Any) -> Any:
    """Sanitize data before logging to prevent log injection.

    Args:
        data: String, dict, list, or other value to be logged

    Returns:
        Sanitized data safe for logging
    """
    if isinstance(data, str):
        sanitized = data.replace('\n', '\\n').replace('\r', '\\r').replace('\t', '\\t')
        sanitized = ANSI_ESCAPE.sub('', sanitized)

        if len(sanitized) > MAX_LOG_LENGTH:
            sanitized = sanitized[:MAX_LOG_LENGTH - 3] + "..."
        return sanitized

    if isinstance(data, dict):
        return {key: sanitize_log_input(value) for key, value in data.items()}

    if isinstance(data, list):
        return [sanitize_log_input(item) for item in data]

    if data is None:
        return None

    return sanitize_log_input(str(data))


def sanitize_console_text(data: Any) -> str:
    """Sanitize a value for interpolation into Rich console markup.

    Control characters are neutralized as for logs, then square brackets are
    escaped so names like ``team[/x]`` print literally instead of being
    parsed as markup tags.
    """
    return escape(str(sanitize_log_input(data)))
