# guildcore/utils/log_sanitizer.py
"""
Sanitization for user-controlled values (command names, usernames, argument
values, message content) before they reach a log line.

Newlines are collapsed so an invoker cannot forge extra log entries, and long
values are clipped so a pasted wall of text does not flood the log.
"""

DEFAULT_MAX_LENGTH = 200


def sanitize_for_log(value, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """
    Sanitize a value for safe inclusion in log messages.

    Example:
        >>> sanitize_for_log("ping\\nINFO fake entry")
        'ping INFO fake entry'
    """
    if value is None:
        return ""
    text = str(value).replace("\r\n", " ").replace("\n", " ").replace("\r", " ")
    if max_length and len(text) > max_length:
        return text[:max_length] + "..."
    return text


def sanitize_keys_for_log(mapping) -> list[str]:
    """Return the sanitized keys of a mapping (argument names, never values)."""
    if not mapping:
        return []
    return [sanitize_for_log(key, max_length=64) for key in mapping]
