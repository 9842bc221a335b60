from __future__ import annotations

from contextvars import ContextVar


current_endpoint: ContextVar[str] = ContextVar('current_endpoint', default='background')
current_account: ContextVar[str] = ContextVar('current_account', default='')
