from __future__ import annotations

import dataclasses
import hashlib
import logging
from typing import Any

import httpx

from app.config import settings
from app.services.session_service import SessionState


logger = logging.getLogger(__name__)

_CREDENTIAL_ERRORS = ('EMAIL_NOT_FOUND', 'INVALID_PASSWORD', 'INVALID_LOGIN_CREDENTIALS', 'USER_DISABLED', 'INVALID_EMAIL')
_REFRESH_ERRORS = ('TOKEN_EXPIRED', 'USER_DISABLED', 'USER_NOT_FOUND', 'INVALID_REFRESH_TOKEN', 'INVALID_GRANT_TYPE')


class AuthenticationError(PermissionError):
    """Credentials were rejected by the authentication provider."""


class AuthProviderUnavailableError(RuntimeError):
    pass


def _mask_email(email: str) -> str:
    name, _, domain = (email or '').partition('@')
    if not domain:
        return '***'
    return f'{name[:1]}***@{domain}'


def _uses_memory_backend() -> bool:
    return (settings.remote_backend or '').strip().lower() == 'memory'


def local_account_id(email: str) -> str:
    digest = hashlib.sha256((email or '').strip().lower().encode('utf-8')).hexdigest()
    return f'local-{digest[:20]}'


def _error_code(response: httpx.Response) -> str:
    try:
        error = response.json().get('error', {})
    except (ValueError, AttributeError):
        return ''
    if isinstance(error, dict):
        return str(error.get('message') or '').split(' ')[0]
    return str(error or '').split(' ')[0]


def _post(url: str, *, client: httpx.Client | None, **kwargs: Any) -> httpx.Response:
    if not settings.firebase_api_key:
        raise AuthProviderUnavailableError('firebase_api_key is not configured')
    owns_client = client is None
    http = client or httpx.Client(timeout=settings.remote_timeout_seconds)
    try:
        return http.post(url, params={'key': settings.firebase_api_key}, **kwargs)
    except httpx.TransportError as exc:
        raise AuthProviderUnavailableError('Authentication service unreachable') from exc
    finally:
        if owns_client:
            http.close()


def sign_in_with_password(email: str, password: str, *, client: httpx.Client | None = None) -> SessionState:
    clean_email = (email or '').strip()
    if not clean_email or not password:
        raise AuthenticationError('Email and password are required.')

    if _uses_memory_backend():
        logger.info('auth_local_sign_in email=%s', _mask_email(clean_email))
        return SessionState(uid=local_account_id(clean_email), email=clean_email.lower())

    url = f'{settings.firebase_auth_base.rstrip("/")}/accounts:signInWithPassword'
    payload = {'email': clean_email, 'password': password, 'returnSecureToken': True}
    response = _post(url, client=client, json=payload)

    if response.status_code >= 400:
        error_code = _error_code(response)
        logger.warning('auth_sign_in_rejected email=%s code=%s', _mask_email(clean_email), error_code or response.status_code)
        if error_code in _CREDENTIAL_ERRORS:
            raise AuthenticationError('Invalid email or password.')
        raise AuthProviderUnavailableError(f'Authentication failed: status={response.status_code}')

    body = response.json()
    logger.info('auth_sign_in_ok email=%s', _mask_email(clean_email))
    return SessionState(
        uid=str(body.get('localId') or ''),
        email=str(body.get('email') or clean_email).lower(),
        id_token=str(body.get('idToken') or ''),
        refresh_token=str(body.get('refreshToken') or ''),
    )


def refresh_id_token(session: SessionState, *, client: httpx.Client | None = None) -> SessionState:
    """Exchange the session's refresh token for a fresh id token.

    Id tokens expire after an hour; the returned session keeps every other field,
    including the fees unlock flag.
    """
    if not session.refresh_token:
        raise AuthenticationError('Session has no refresh token.')

    url = f'{settings.firebase_token_base.rstrip("/")}/token'
    response = _post(url, client=client, data={'grant_type': 'refresh_token', 'refresh_token': session.refresh_token})

    if response.status_code >= 400:
        error_code = _error_code(response)
        logger.warning('auth_refresh_rejected account=%s code=%s', session.uid, error_code or response.status_code)
        if error_code in _REFRESH_ERRORS:
            raise AuthenticationError('Session expired. Please sign in again.')
        raise AuthProviderUnavailableError(f'Token refresh failed: status={response.status_code}')

    body = response.json()
    user_id = str(body.get('user_id') or session.uid)
    if user_id != session.uid:
        raise AuthenticationError('Refreshed token belongs to another account.')
    logger.info('auth_refresh_ok account=%s', session.uid)
    return dataclasses.replace(
        session,
        id_token=str(body.get('id_token') or ''),
        refresh_token=str(body.get('refresh_token') or session.refresh_token),
    )
