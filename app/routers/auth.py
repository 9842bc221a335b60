from fastapi import APIRouter, Depends, HTTPException

from app.app_state import AppContext, get_context, require_session
from app.route_logging import EndpointNameRoute
from app.schemas import SignInRequest
from app.services.access_control_service import accessible_views, get_user_role
from app.services.auth_service import AuthenticationError, AuthProviderUnavailableError, sign_in_with_password
from app.services.session_service import SessionState


router = APIRouter(prefix='/auth', tags=['Auth'], route_class=EndpointNameRoute)


def _account_payload(session: SessionState) -> dict:
    role = get_user_role(session.email)
    return {'uid': session.uid, 'email': session.email, 'role': role, 'views': accessible_views(role)}


@router.post('/sign-in')
def sign_in(payload: SignInRequest, ctx: AppContext = Depends(get_context)):
    try:
        session = sign_in_with_password(payload.email, payload.password)
    except AuthenticationError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except AuthProviderUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    prepared = ctx.start_session(session)
    return {**_account_payload(session), 'sync': prepared}


@router.post('/sign-out')
def sign_out(ctx: AppContext = Depends(get_context)):
    ctx.end_session()
    return {'ok': True}


@router.get('/me')
def me(session: SessionState = Depends(require_session)):
    return {**_account_payload(session), 'fees_unlocked': session.fees_unlocked}
