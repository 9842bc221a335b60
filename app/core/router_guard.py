from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from fastapi import Depends, HTTPException

from app.app_state import require_session
from app.services.access_control_service import ViewType, can_access_view, get_user_role
from app.services.errors import NotAuthenticatedError, RecordNotFoundError, RecordValidationError
from app.services.session_service import SessionState
from app.store.errors import StoreAccessError, StoreError


@contextmanager
def translate_errors() -> Iterator[None]:
    """Map service and store exceptions onto HTTP errors."""
    try:
        yield
    except RecordValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except NotAuthenticatedError as exc:
        raise HTTPException(status_code=401, detail=str(exc) or 'Unauthorized') from exc
    except StoreAccessError as exc:
        raise HTTPException(status_code=403, detail=str(exc) or 'Forbidden') from exc
    except StoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


def require_view(view: ViewType):
    def _dependency(session: SessionState = Depends(require_session)) -> SessionState:
        if not can_access_view(get_user_role(session.email), view):
            raise HTTPException(status_code=403, detail='Forbidden')
        return session

    return _dependency


def require_fees_unlocked(session: SessionState = Depends(require_view(ViewType.FEES))) -> SessionState:
    if not session.fees_unlocked:
        raise HTTPException(status_code=403, detail='Fees section is locked')
    return session
