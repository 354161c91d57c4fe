"""
TIME_ET.PY - Single Source of Truth for slate-day timezone handling

RULES:
1. Server clock is UTC; database DateTime columns hold naive UTC
2. A "slate day" is a calendar day in the configured timezone
   (Config.TIMEZONE, default America/New_York)
3. Uses zoneinfo ONLY

CANONICAL SLATE WINDOW:
    Start: 00:00:00 local - inclusive
    End:   00:00:00 local next day - exclusive

Usage:
    from core.time_et import slate_bounds_utc, local_date

    start_utc, end_utc = slate_bounds_utc(date(2026, 1, 28))
    games = db.query(Game).filter(Game.game_date >= start_utc, Game.game_date < end_utc)
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

DEFAULT_TZ = "America/New_York"


def slate_tz() -> ZoneInfo:
    from env_config import Config
    return ZoneInfo(Config.TIMEZONE or DEFAULT_TZ)


def now_et() -> datetime:
    """Current time in the slate timezone."""
    return datetime.now(timezone.utc).astimezone(slate_tz())


def today_et() -> date:
    return now_et().date()


def slate_bounds_utc(day: date) -> Tuple[datetime, datetime]:
    """[start, end) of a slate day as naive UTC datetimes for DB filtering."""
    tz = slate_tz()
    start = datetime.combine(day, time(0, 0, 0), tzinfo=tz)
    end = start + timedelta(days=1)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


def local_date(value: Optional[datetime]) -> Optional[date]:
    """Slate day of a naive-UTC (or aware) datetime."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(slate_tz()).date()


def parse_day(value) -> date:
    """Accept a date or a YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value), "%Y-%m-%d").date()
