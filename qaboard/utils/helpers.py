"""Shared utility functions used by services and blueprints.

get_or_raise:      primary-key lookup raising NotFoundError
parse_date:        lenient parse, None on bad input
parse_date_input:  strict parse, ValueError on bad input
parse_id_list:     list of integer ids, ValidationError on bad input
clean_text:        stripped string, "" for missing or non-string input
"""
import logging
from datetime import date, datetime

from qaboard.core.exceptions import NotFoundError, ValidationError
from qaboard.models import db

logger = logging.getLogger(__name__)


def get_or_raise(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError.

        project = get_or_raise(Project, pid)
    """
    label = label or model.__name__
    obj = db.session.get(model, pk) if pk is not None else None
    if obj is None:
        raise NotFoundError(resource=label, resource_id=pk)
    return obj


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
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
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Same as parse_date() but raises ValueError instead of returning None.

    Supports: YYYY-MM-DD, YYYY-MM-DDTHH:MM:SS, DD.MM.YYYY, date objects.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY.")
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(value, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError(
            "Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY."
        ) from exc


def parse_id_list(values, field="ids"):
    """Coerce a JSON list of ids to ints, raising ValidationError on bad input.

        ids = parse_id_list(data.get("ids"))   # ["3", 4] -> [3, 4]
    """
    if values is None:
        return []
    if not isinstance(values, list) or any(isinstance(v, (bool, float)) for v in values):
        raise ValidationError(f"{field} must be a list of integer ids", details={field: "invalid"})
    try:
        return [int(v) for v in values]
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a list of integer ids", details={field: "invalid"}) from exc


def clean_text(value) -> str:
    """Stripped string input; anything that is not a string reads as empty."""
    return value.strip() if isinstance(value, str) else ""
