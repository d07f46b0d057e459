"""Date, time and money formatting for order screens"""
from datetime import datetime, timedelta
from typing import Optional

import pytz

from ..config import settings

CAFE_TZ = pytz.timezone(settings.CAFE_TIMEZONE)


def cafe_now() -> datetime:
    return datetime.utcnow().replace(tzinfo=pytz.UTC).astimezone(CAFE_TZ)


def start_of_day(now: Optional[datetime] = None) -> datetime:
    """Midnight of the café's business day, in UTC"""
    local = (now or cafe_now()).astimezone(CAFE_TZ)
    midnight = CAFE_TZ.localize(datetime.combine(local.date(), datetime.min.time()))
    return midnight.astimezone(pytz.UTC)


def to_local(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=pytz.UTC)
    return value.astimezone(CAFE_TZ)


def format_date(value: datetime) -> str:
    """Jan 15, 2024"""
    local = to_local(value)
    return f"{local.strftime('%b')} {local.day}, {local.year}"


def format_time(value: datetime) -> str:
    """2:30 PM"""
    local = to_local(value)
    hour = local.hour % 12 or 12
    return f"{hour}:{local.minute:02d} {'PM' if local.hour >= 12 else 'AM'}"


def format_datetime(value: datetime) -> str:
    return f"{format_date(value)} at {format_time(value)}"


def relative_time(value: datetime, now: Optional[datetime] = None) -> str:
    now = now or cafe_now()
    minutes = int((now - to_local(value)) / timedelta(minutes=1))
    hours = minutes // 60
    days = hours // 24

    if minutes < 1:
        return "just now"
    if minutes == 1:
        return "1 minute ago"
    if minutes < 60:
        return f"{minutes} minutes ago"
    if hours == 1:
        return "1 hour ago"
    if hours < 24:
        return f"{hours} hours ago"
    if days == 1:
        return "yesterday"
    if days < 7:
        return f"{days} days ago"
    return format_date(value)


def format_currency(amount: Optional[int]) -> str:
    """Minor units to a display string, e.g. 1250 -> ₹12.50"""
    if amount is None:
        return ""
    return f"{settings.CURRENCY_SYMBOL}{amount / 100:,.2f}"
