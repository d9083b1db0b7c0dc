from datetime import date, datetime
import pytz

from ..config import settings


def get_today() -> date:
    """Today's date in the business timezone"""
    tz = pytz.timezone(settings.timezone)
    return datetime.now(tz).date()


def days_between(earlier: date, later: date) -> int:
    """Whole days from ``earlier`` to ``later`` (negative if reversed)"""
    return (later - earlier).days
