from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from app.config import settings


APP_TIMEZONE = settings.app_timezone or "Asia/Kolkata"
APP_ZONEINFO = ZoneInfo(APP_TIMEZONE)


class TimeProvider:
    def now(self) -> datetime:
        return datetime.now(APP_ZONEINFO)

    def today(self) -> date:
        return self.now().date()

    def today_iso(self) -> str:
        return self.today().isoformat()

    def utc_now(self) -> datetime:
        return self.now().astimezone(timezone.utc)


class FixedTimeProvider(TimeProvider):
    def __init__(self, today: date) -> None:
        self._today = today

    def now(self) -> datetime:
        return datetime(self._today.year, self._today.month, self._today.day, 9, 0, tzinfo=APP_ZONEINFO)


default_time_provider = TimeProvider()


def utc_now() -> datetime:
    return default_time_provider.utc_now()
