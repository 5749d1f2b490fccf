"""
Sanitization of user-provided names before they reach logs or responses.
"""
import re

CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f-\x9f]')

UNSAFE_COLUMN_PATTERNS = [
    re.compile(r'\.\.'),  # Path traversal
    # Tabs and newlines are common in spreadsheet headers; other control characters are not
    re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f]'),
    re.compile(r'^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])$', re.IGNORECASE),  # Reserved (Windows)
]


def sanitize_filename(filename: str, max_length: int = 255) -> str:
    """
    Reduce an uploaded file name to a safe base name.

    Path components and control characters are removed, as are leading and
    trailing dots and spaces. Falls back to "unknown".
    """
    if not filename:
        return "unknown"

    filename = filename.split('/')[-1].split('\\')[-1]
    filename = CONTROL_CHARS.sub('', filename)
    filename = filename.strip('. ')
    return filename[:max_length] or "unknown"


def sanitize_for_logging(value: str, max_length: int = 500) -> str:
    """Flatten a value onto one line and cap its length (prevents log injection)."""
    if not value:
        return ""

    value = re.sub(r'[\r\n]', ' ', value)
    value = CONTROL_CHARS.sub('', value)
    if len(value) > max_length:
        value = value[:max_length] + "..."
    return value


def validate_column_name(name: str) -> bool:
    if not name or len(name) > 1000:
        return False
    return not any(pattern.search(name) for pattern in UNSAFE_COLUMN_PATTERNS)
