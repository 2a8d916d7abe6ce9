"""Shared request/parse helpers used by the blueprints."""
import logging
from datetime import date, datetime

from atelier.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string to a ``date``.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD/MM/YYYY (Indian format used by the field team)
    """
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d/%m/%Y").date()
    except (ValueError, TypeError):
        return None


def require_fields(data: dict, *names: str) -> None:
    """Raise ValidationError listing every missing/blank field."""
    missing = [n for n in names if data.get(n) in (None, "", [])]
    if missing:
        raise ValidationError(
            f"Missing required field(s): {', '.join(missing)}",
            details={n: "required" for n in missing},
        )


def require_choice(value, choices, field: str):
    if value not in choices:
        raise ValidationError(
            f"{field} must be one of {sorted(choices)}",
            details={field: f"invalid value {value!r}"},
        )
    return value


def parse_amount(value, field: str = "amount") -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", details={field: "not a number"})
    if amount < 0:
        raise ValidationError(f"{field} must not be negative", details={field: "negative"})
    return amount
