from __future__ import annotations

import copy
import json
import logging
import threading
from typing import Any, Callable
from urllib.parse import quote

import httpx

from app.store.errors import StoreAccessError, StoreError, StoreOfflineError


logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Any], None]
TokenProvider = Callable[[], 'str | None']

_OFFLINE_STATUS_CODES = (502, 503, 504)


def split_path(path: str) -> list[str]:
    return [part for part in (path or '').split('/') if part]


def join_path(*parts: str) -> str:
    return '/'.join(part.strip('/') for part in parts if part and part.strip('/'))


def prune(value: Any) -> Any:
    """Drop null leaves and empty branches the way the realtime database does."""
    if isinstance(value, dict):
        cleaned = {}
        for key, child in value.items():
            child_value = prune(child)
            if child_value is not None:
                cleaned[str(key)] = child_value
        return cleaned or None
    return value


def tree_get(tree: dict, parts: list[str]) -> Any:
    node: Any = tree
    for part in parts:
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return copy.deepcopy(node)


def tree_set(tree: dict, parts: list[str], value: Any) -> None:
    cleaned = prune(copy.deepcopy(value))
    if not parts:
        tree.clear()
        if isinstance(cleaned, dict):
            tree.update(cleaned)
        return

    node = tree
    trail: list[tuple[dict, str]] = []
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        trail.append((node, part))
        node = child

    if cleaned is None:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = cleaned

    for parent, key in reversed(trail):
        if parent.get(key) == {}:
            parent.pop(key, None)
        else:
            break


def apply_stream_event(tree: dict, event: str, payload: dict) -> None:
    """Apply one `put`/`patch` server-sent event to a locally mirrored tree."""
    base_parts = split_path(str(payload.get('path') or '/'))
    data = payload.get('data')
    if event == 'put':
        tree_set(tree, base_parts, data)
    elif event == 'patch' and isinstance(data, dict):
        for key, value in data.items():
            tree_set(tree, base_parts + split_path(key), value)


class RemoteStore:
    """Path-scoped access to a hierarchical key-value database."""

    def get(self, path: str) -> Any:
        raise NotImplementedError

    def set(self, path: str, value: Any) -> None:
        raise NotImplementedError

    def update(self, path: str, values: dict[str, Any]) -> None:
        raise NotImplementedError

    def remove(self, path: str) -> None:
        raise NotImplementedError

    def subscribe(self, path: str, callback: SnapshotCallback) -> Callable[[], None]:
        raise NotImplementedError

    def ping(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        return None


class InMemoryRemoteStore(RemoteStore):
    def __init__(self, initial: dict | None = None) -> None:
        self._lock = threading.RLock()
        self._root: dict = prune(copy.deepcopy(initial or {})) or {}
        self._listeners: list[tuple[list[str], SnapshotCallback]] = []
        self.online = True
        self.denied_prefixes: set[str] = set()

    def _check(self, path: str) -> None:
        if not self.online:
            raise StoreOfflineError('remote store unreachable', path=path)
        normalized = join_path(path)
        for prefix in self.denied_prefixes:
            clean_prefix = join_path(prefix)
            if normalized == clean_prefix or normalized.startswith(f'{clean_prefix}/'):
                raise StoreAccessError('permission denied', path=path, status_code=401)

    def snapshot(self) -> dict:
        with self._lock:
            return copy.deepcopy(self._root)

    def get(self, path: str) -> Any:
        self._check(path)
        with self._lock:
            return tree_get(self._root, split_path(path))

    def set(self, path: str, value: Any) -> None:
        self._check(path)
        with self._lock:
            tree_set(self._root, split_path(path), value)
        self._notify([split_path(path)])

    def update(self, path: str, values: dict[str, Any]) -> None:
        targets = [split_path(join_path(path, key)) for key in values]
        for parts in targets:
            self._check('/'.join(parts))
        with self._lock:
            for parts, value in zip(targets, values.values()):
                tree_set(self._root, parts, value)
        self._notify(targets)

    def remove(self, path: str) -> None:
        self.set(path, None)

    def subscribe(self, path: str, callback: SnapshotCallback) -> Callable[[], None]:
        self._check(path)
        entry = (split_path(path), callback)
        with self._lock:
            self._listeners.append(entry)
            current = tree_get(self._root, entry[0])
        callback(current)

        def unsubscribe() -> None:
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    def ping(self) -> None:
        self._check('')

    def _notify(self, changed: list[list[str]]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for parts, callback in listeners:
            overlaps = any(
                changed_parts[: len(parts)] == parts or parts[: len(changed_parts)] == changed_parts
                for changed_parts in changed
            )
            if overlaps:
                with self._lock:
                    current = tree_get(self._root, parts)
                callback(current)


class FirebaseRestStore(RemoteStore):
    """Firebase Realtime Database over its REST API."""

    def __init__(
        self,
        database_url: str,
        *,
        auth_token_provider: TokenProvider | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not database_url:
            raise ValueError('firebase_database_url is required for the firebase backend')
        self._base_url = database_url.rstrip('/')
        self._auth_token_provider = auth_token_provider
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def _url(self, path: str) -> str:
        clean = join_path(path)
        return f'{self._base_url}/{quote(clean, safe="/")}.json' if clean else f'{self._base_url}/.json'

    def _params(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        params: dict[str, str] = dict(extra or {})
        token = self._auth_token_provider() if self._auth_token_provider else None
        if token:
            params['auth'] = token
        return params

    def _request(self, method: str, path: str, *, json_body: Any = None, params: dict[str, str] | None = None) -> httpx.Response:
        try:
            if json_body is None:
                response = self._client.request(method, self._url(path), params=self._params(params))
            else:
                response = self._client.request(method, self._url(path), params=self._params(params), json=json_body)
        except httpx.TransportError as exc:
            raise StoreOfflineError(str(exc) or 'remote store unreachable', path=path) from exc

        if response.status_code in (401, 403):
            raise StoreAccessError(self._error_message(response), path=path, status_code=response.status_code)
        if response.status_code in _OFFLINE_STATUS_CODES:
            raise StoreOfflineError(self._error_message(response), path=path, status_code=response.status_code)
        if response.status_code >= 400:
            raise StoreError(self._error_message(response), path=path, status_code=response.status_code)
        return response

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f'status={response.status_code}'
        if isinstance(body, dict) and body.get('error'):
            return str(body['error'])
        return f'status={response.status_code}'

    def get(self, path: str) -> Any:
        return self._request('GET', path).json()

    def set(self, path: str, value: Any) -> None:
        if value is None:
            self.remove(path)
            return
        self._request('PUT', path, json_body=value, params={'print': 'silent'})

    def update(self, path: str, values: dict[str, Any]) -> None:
        if not values:
            return
        self._request('PATCH', path, json_body=values, params={'print': 'silent'})

    def remove(self, path: str) -> None:
        self._request('DELETE', path, params={'print': 'silent'})

    def ping(self) -> None:
        self._request('GET', '', params={'shallow': 'true'})

    def subscribe(self, path: str, callback: SnapshotCallback) -> Callable[[], None]:
        stop = threading.Event()
        thread = threading.Thread(
            target=self._listen,
            args=(path, callback, stop),
            name=f'rtdb-listen:{path}',
            daemon=True,
        )
        thread.start()
        return stop.set

    def _listen(self, path: str, callback: SnapshotCallback, stop: threading.Event) -> None:
        mirror: dict = {}
        event = ''
        try:
            with self._client.stream(
                'GET',
                self._url(path),
                params=self._params(),
                headers={'Accept': 'text/event-stream'},
                timeout=None,
            ) as response:
                if response.status_code >= 400:
                    logger.warning('remote_listen_rejected path=%s status_code=%s', path, response.status_code)
                    return
                for line in response.iter_lines():
                    if stop.is_set():
                        return
                    if line.startswith('event:'):
                        event = line[len('event:'):].strip()
                        continue
                    if not line.startswith('data:'):
                        continue
                    if event in ('cancel', 'auth_revoked'):
                        logger.warning('remote_listen_closed path=%s event=%s', path, event)
                        return
                    if event not in ('put', 'patch'):
                        continue
                    payload = json.loads(line[len('data:'):].strip() or 'null')
                    if isinstance(payload, dict):
                        apply_stream_event(mirror, event, payload)
                        callback(copy.deepcopy(mirror))
        except httpx.TransportError:
            logger.warning('remote_listen_disconnected path=%s', path)

    def close(self) -> None:
        self._client.close()


def build_remote_store(backend: str, *, database_url: str = '', auth_token_provider: TokenProvider | None = None, timeout: float = 10.0) -> RemoteStore:
    if (backend or '').strip().lower() == 'memory':
        return InMemoryRemoteStore()
    return FirebaseRestStore(database_url, auth_token_provider=auth_token_provider, timeout=timeout)
