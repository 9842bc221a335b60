from fastapi import APIRouter, Depends, HTTPException

from app.app_state import AppContext, get_context, require_session
from app.route_logging import EndpointNameRoute
from app.schemas import FeesGateLoginRequest, FeesGateResetRequest, FeesGateSetupRequest
from app.services.fees_gate_service import FeesGateError, FeesGateService
from app.services.session_service import SessionState


router = APIRouter(prefix='/fees-gate', tags=['Fees'], route_class=EndpointNameRoute)


def _gate(ctx: AppContext = Depends(get_context)) -> FeesGateService:
    return FeesGateService(ctx.storage)


@router.get('')
def gate_status(session: SessionState = Depends(require_session), gate: FeesGateService = Depends(_gate)):
    return gate.status(session)


@router.post('/setup')
def setup(payload: FeesGateSetupRequest, _: SessionState = Depends(require_session), gate: FeesGateService = Depends(_gate)):
    try:
        message = gate.setup(payload.username, payload.password, payload.confirm_password, payload.recovery_code)
    except FeesGateError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {'ok': True, 'message': message, 'mode': gate.mode()}


@router.post('/login')
def login(payload: FeesGateLoginRequest, session: SessionState = Depends(require_session), gate: FeesGateService = Depends(_gate)):
    try:
        gate.login(session, payload.username, payload.password)
    except FeesGateError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return gate.status(session)


@router.post('/reset')
def reset(payload: FeesGateResetRequest, _: SessionState = Depends(require_session), gate: FeesGateService = Depends(_gate)):
    try:
        message = gate.reset(payload.recovery_code, payload.username, payload.password, payload.confirm_password)
    except FeesGateError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {'ok': True, 'message': message, 'mode': gate.mode()}


@router.post('/logout')
def logout(session: SessionState = Depends(require_session), gate: FeesGateService = Depends(_gate)):
    gate.logout(session)
    return gate.status(session)
