from __future__ import annotations

from enum import Enum

from app.config import settings


ROLE_ADMIN = 'admin'
ROLE_STAFF = 'staff'


class ViewType(str, Enum):
    DASHBOARD = 'DASHBOARD'
    STUDENTS = 'STUDENTS'
    ATTENDANCE = 'ATTENDANCE'
    FEES = 'FEES'
    MAINTENANCE = 'MAINTENANCE'
    DAILY_LOG = 'DAILY_LOG'
    DESTINATIONS = 'DESTINATIONS'


_STAFF_BLOCKED_VIEWS = frozenset({ViewType.MAINTENANCE, ViewType.DAILY_LOG})


def admin_emails(raw: str | None = None) -> set[str]:
    value = settings.admin_emails if raw is None else raw
    return {item.strip().lower() for item in (value or '').split(',') if item.strip()}


def get_user_role(email: str | None, *, admins: set[str] | None = None) -> str:
    allowed = admin_emails() if admins is None else admins
    return ROLE_ADMIN if (email or '').strip().lower() in allowed else ROLE_STAFF


def can_access_view(role: str, view: ViewType) -> bool:
    if role == ROLE_ADMIN:
        return True
    return view not in _STAFF_BLOCKED_VIEWS


def accessible_views(role: str) -> list[str]:
    return [view.value for view in ViewType if can_access_view(role, view)]
