"""Strip control characters from user-supplied values before logging them."""

import re
from typing import Any

# \r, \n, \t and the rest of the C0 range plus DEL
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_for_log(value: Any, replacement: str = "") -> str:
    """
    Make a value safe to interpolate into a log line.

    Newlines and other control characters would let a user forge extra log
    entries, so they are removed (or replaced).

    Args:
        value: Value to sanitize; None becomes an empty string
        replacement: Text to put where control characters were

    Returns:
        Sanitized string
    """
    if value is None:
        return ""
    return _CONTROL_CHARS.sub(replacement, str(value))
