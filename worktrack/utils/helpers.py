"""Input coercion shared by the service layer.

Each parser raises ValueError on bad input; services catch it and turn it
into a ValidationError carrying the offending field name.
"""
from datetime import date, datetime


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Supports: YYYY-MM-DD, YYYY-MM-DDTHH:MM:SS (→ date), DD.MM.YYYY,
    date / datetime objects. Empty input returns None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError(
            "Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY."
        ) from exc


def parse_number(value, *, allow_negative=True):
    """Coerce value to float. Booleans are rejected (True is not 1 hour)."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("Must be a number.")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("Must be a number.") from exc
    if number != number:  # NaN
        raise ValueError("Must be a number.")
    if not allow_negative and number < 0:
        raise ValueError("Must not be negative.")
    return number


def parse_bool(value):
    """Accept real booleans and the usual JSON/form spellings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no"):
        return False
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValueError("Must be a boolean.")


def normalize_tags(value):
    """Return distinct, stripped, non-empty tags in first-seen order."""
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValueError("Must be a list of strings.")
    seen = []
    for tag in value:
        if not isinstance(tag, str):
            raise ValueError("Must be a list of strings.")
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def parse_id(value):
    """Return an id string (stripped), None for empty input.

    Ids are opaque strings; lists, numbers and objects are rejected before
    they reach a query.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("Must be an id string.")
    value = value.strip()
    return value or None
