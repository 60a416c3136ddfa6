from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from ..config import get_settings
from ..domain.months import month_of


def local_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().app_timezone)


def today_local(now: datetime | None = None) -> date:
    """Calendar date in the configured zone. ``now`` must be timezone-aware when given."""
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return current.astimezone(local_zone()).date()


def current_month(today: date | None = None) -> str:
    return month_of(today or today_local())


def utc_naive_to_local(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(local_zone())
