"""
Conversion helpers shared by the entity transformers.

All functions are pure. Conversions that can fail on malformed input raise
ValueError; the ``safe_*`` variants return None instead.

Example:
    >>> duration_to_days("PT40H")
    5.0
    >>> duration_to_hours_string("P5D")
    '40h'
    >>> map_priority(500)
    'Medium'
"""

import re
from datetime import date

from pydantic import BaseModel, Field

from pomigrate.core.exceptions import ValidationError
from pomigrate.core.target.models import Contact

HOURS_PER_DAY = 8
DAYS_PER_WEEK = 5
MAX_WORKSPACE_NAME_LENGTH = 100

_INVALID_NAME_CHARS = re.compile(r'[/\\:*?"<>|]')
_DATE_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:[T ].*)?$")
_ISO_DURATION = re.compile(
    r"^P(?!$)"
    r"(?:(?P<weeks>\d+(?:\.\d+)?)W)?"
    r"(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?=\d)"
    r"(?:(?P<hours>\d+(?:\.\d+)?)H)?"
    r"(?:(?P<minutes>\d+(?:\.\d+)?)M)?"
    r"(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$",
    re.IGNORECASE,
)
_SIMPLE_DURATION = re.compile(r"^(?P<amount>\d+(?:\.\d+)?)\s*(?P<unit>[wdhm])$", re.IGNORECASE)

# Descending (threshold, label) pairs on the 0-1000 scale
PRIORITY_THRESHOLDS: list[tuple[int, str]] = [
    (1000, "Highest"),
    (800, "Very High"),
    (600, "Higher"),
    (500, "Medium"),
    (400, "Lower"),
    (200, "Very Low"),
    (0, "Lowest"),
]


class ValidationResult(BaseModel):
    """Outcome of validating one source entity."""

    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_if_invalid(self, entity: str) -> None:
        """
        Raises:
            ValidationError: If any errors were recorded
        """
        if self.errors:
            raise ValidationError(entity, self.errors)


def sanitize_workspace_name(name: str) -> str:
    """
    Make a project name safe to use as a workspace name.

    Invalid characters become dashes, runs of dashes collapse, leading and
    trailing spaces and dashes are trimmed, and names over 100 characters
    are cut to 97 plus "...".
    """
    sanitized = _INVALID_NAME_CHARS.sub("-", name)
    sanitized = re.sub(r"-+", "-", sanitized)
    sanitized = sanitized.strip().strip("-").strip()

    if len(sanitized) > MAX_WORKSPACE_NAME_LENGTH:
        sanitized = sanitized[: MAX_WORKSPACE_NAME_LENGTH - 3] + "..."
    return sanitized


def create_sheet_name(workspace_name: str, suffix: str) -> str:
    return f"{workspace_name} - {suffix}"


def convert_date(value: str) -> str:
    """
    Collapse an ISO 8601 date-time to its date part (YYYY-MM-DD).

    The date is taken as written; no timezone conversion is applied.

    Raises:
        ValueError: If the value does not start with a valid date
    """
    match = _DATE_PREFIX.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid date: {value!r}")
    # Rejects impossible dates such as 2024-13-40
    date.fromisoformat(match.group(1))
    return match.group(1)


def safe_convert_date(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return convert_date(value)
    except ValueError:
        return None


def parse_duration_hours(value: str) -> float:
    """
    Parse a duration to working hours.

    Accepts ISO 8601 (``P1W2DT3H30M``) and simple forms (``4d``, ``32h``,
    ``480m``, ``2w``). A day is 8 hours and a week is 5 days.

    Raises:
        ValueError: If the value is not a recognizable duration
    """
    text = value.strip() if isinstance(value, str) else ""

    match = _ISO_DURATION.match(text)
    if match:
        parts = {k: float(v) if v else 0.0 for k, v in match.groupdict().items()}
        return (
            parts["weeks"] * DAYS_PER_WEEK * HOURS_PER_DAY
            + parts["days"] * HOURS_PER_DAY
            + parts["hours"]
            + parts["minutes"] / 60
            + parts["seconds"] / 3600
        )

    match = _SIMPLE_DURATION.match(text)
    if match:
        amount = float(match.group("amount"))
        unit = match.group("unit").lower()
        factor = {
            "w": DAYS_PER_WEEK * HOURS_PER_DAY,
            "d": HOURS_PER_DAY,
            "h": 1,
            "m": 1 / 60,
        }[unit]
        return amount * factor

    raise ValueError(f"Invalid duration: {value!r}")


def duration_to_days(value: str) -> float:
    """Duration in decimal working days, rounded to 2 places."""
    return round(parse_duration_hours(value) / HOURS_PER_DAY, 2)


def safe_duration_to_days(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return duration_to_days(value)
    except ValueError:
        return None


def format_number(value: float) -> str:
    """Whole numbers without a decimal point, others with up to 2 places."""
    rounded = round(value, 2)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.2f}".rstrip("0")


def duration_to_hours_string(value: str) -> str:
    """Duration as an hour string, e.g. ``"40h"``."""
    return f"{format_number(parse_duration_hours(value))}h"


def map_priority(value: int | float) -> str:
    """
    Map a 0-1000 priority to one of the seven priority labels.

    Values outside the range clamp to the nearest end.
    """
    clamped = min(max(value, 0), 1000)
    for threshold, label in PRIORITY_THRESHOLDS:
        if clamped >= threshold:
            return label
    return "Lowest"


def derive_status(percent_complete: float) -> str:
    if percent_complete <= 0:
        return "Not Started"
    if percent_complete >= 100:
        return "Complete"
    return "In Progress"


def create_contact(name: str | None, email: str | None) -> Contact | None:
    """
    Build a contact from whatever is available.

    Returns None, never an empty contact, when both are blank.
    """
    name = name.strip() if name else None
    email = email.strip() if email else None
    if not name and not email:
        return None
    return Contact(name=name or None, email=email or None)


def convert_max_units(max_units: float) -> str:
    """1.0 -> "100%"."""
    return f"{round(max_units * 100)}%"


def format_percent(percent: float) -> str:
    """50 -> "50%", 12.5 -> "12.5%"."""
    return f"{format_number(percent)}%"


def generate_project_prefix(project_name: str) -> str:
    """
    Derive a 2-4 letter uppercase prefix from a project name.

    One word: its first four letters. Two words: initials, padded from the
    first word to three letters. Three or more: up to four initials.
    """
    words = re.sub(r"[^a-zA-Z0-9\s]", " ", project_name).split()
    if not words:
        return "PRJ"

    if len(words) == 1:
        return words[0].upper()[:4]

    if len(words) == 2:
        first, second = words[0].upper(), words[1].upper()
        if len(first) > 1:
            return first[:2] + second[0]
        return first[0] + second[0]

    return "".join(w[0].upper() for w in words)[:4]


__all__ = [
    "HOURS_PER_DAY",
    "DAYS_PER_WEEK",
    "PRIORITY_THRESHOLDS",
    "ValidationResult",
    "sanitize_workspace_name",
    "create_sheet_name",
    "convert_date",
    "safe_convert_date",
    "parse_duration_hours",
    "duration_to_days",
    "safe_duration_to_days",
    "format_number",
    "duration_to_hours_string",
    "map_priority",
    "derive_status",
    "create_contact",
    "convert_max_units",
    "format_percent",
    "generate_project_prefix",
]
