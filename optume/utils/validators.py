import re

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def clean_str(val: str | None, max_len: int = 255) -> str | None:
    """Collapse whitespace, trim and cap the length; None when nothing is left."""
    if val is None:
        return None
    s = re.sub(r"\s+", " ", val).strip()
    return s[:max_len] if s else None


def is_valid_email(val: str | None) -> bool:
    return bool(val) and bool(_EMAIL_RE.match(val))


def parse_bool(val) -> bool:
    """Query-string flags: only "true"/"1"/"yes"/"on" (any case) are true."""
    if isinstance(val, bool):
        return val
    return str(val or "").strip().lower() in ("true", "1", "yes", "on")


# Largest value a 32-bit signed INTEGER primary key can hold
MAX_DB_ID = 2**31 - 1


def parse_id(val) -> int | None:
    """Positive integer id within the database key range, else None."""
    if isinstance(val, bool):
        return None
    try:
        n = int(val)
    except (TypeError, ValueError, OverflowError):
        return None
    return n if 0 < n <= MAX_DB_ID else None
