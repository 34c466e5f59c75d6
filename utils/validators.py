"""
Input validators and file-name helpers.
Value checks return (is_valid, error_message, normalized_value) tuples.
"""

import re
from datetime import date, datetime
from pathlib import Path
from typing import Optional, Tuple

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")
VERSION_PATTERN = re.compile(r"_v(\d+)\.(pdf|json)$")

MAX_CLIENT_NAME_LENGTH = 50


def is_blank(value: Optional[str]) -> bool:
    """True for None or whitespace-only strings."""
    return value is None or str(value).strip() == ""


def validate_email(value: Optional[str]) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Validate an e-mail address.

    Returns:
        Tuple of (is_valid, error_message, normalized_value)
    """
    if is_blank(value):
        return False, "E-mail não informado", None

    normalized = value.strip()
    if not EMAIL_PATTERN.match(normalized):
        return False, f"E-mail inválido: {normalized}", value

    return True, None, normalized


def validate_time(value: Optional[str]) -> Tuple[bool, Optional[str], Optional[str]]:
    """Validate a 24h HH:MM time string."""
    if is_blank(value):
        return True, None, None

    normalized = value.strip()
    if not TIME_PATTERN.match(normalized):
        return False, "formato inválido - use HH:MM", value

    return True, None, normalized


def parse_number(value: Optional[str]) -> Optional[float]:
    """Parse a stored numeric string, accepting a decimal comma."""
    if is_blank(value):
        return None
    try:
        return float(str(value).strip().replace(",", "."))
    except ValueError:
        return None


def sanitize_client_name(name: Optional[str]) -> str:
    """
    Normalize a client name for use in artifact file names.

    Drops everything except letters, digits and spaces, turns runs of spaces
    into underscores and truncates. Case is kept.
    """
    if not name:
        return "cliente"

    cleaned = re.sub(r"[^a-zA-Z0-9\s]", "", name)
    cleaned = re.sub(r"\s+", "_", cleaned.strip())
    cleaned = cleaned[:MAX_CLIENT_NAME_LENGTH]

    return cleaned or "cliente"


def parse_execution_date(value: Optional[str]) -> Optional[date]:
    """Parse ISO (YYYY-MM-DD, optionally with time) or DD/MM/YYYY dates."""
    if is_blank(value):
        return None

    text = value.strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    return None


def format_date_for_filename(value: date) -> str:
    """Compact YYYYMMDD form used in artifact names."""
    return value.strftime("%Y%m%d")


def extract_version_from_filename(filename: str) -> Optional[int]:
    """Return N for names ending in `_v<N>.pdf` or `_v<N>.json`."""
    match = VERSION_PATTERN.search(filename)
    if not match:
        return None
    return int(match.group(1))


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename for safe storage.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename
    """
    filename = Path(filename).name

    sanitized = re.sub(r'[<>:"/\\|?*]', '_', filename)

    name = Path(sanitized).stem[:80]
    ext = Path(sanitized).suffix[:10]

    return f"{name}{ext}"
