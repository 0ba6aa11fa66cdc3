"""Firebase Realtime Database reader using the REST streaming API."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
import json
import logging
from typing import Any, AsyncIterator, Callable, List, Tuple

import aiohttp

from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.aiohttp_client import async_get_clientsession

_LOGGER = logging.getLogger(__name__)

STREAM_READ_TIMEOUT = 90  # server sends keep-alive every 30s
REQUEST_TIMEOUT = 15
BACKOFF_MIN = 2
BACKOFF_MAX = 300


class StoreError(HomeAssistantError):
    """Remote store request failed."""


@dataclass(frozen=True)
class StoreSnapshot:
    exists: bool
    value: Any = None


def _split(path: str) -> List[str]:
    return [p for p in str(path or "").split("/") if p]


def _set_path(node: Any, parts: List[str], value: Any) -> Any:
    """Return a copy of node with value stored at parts; None removes."""
    if not parts:
        return value
    if isinstance(node, dict):
        base = dict(node)
    elif isinstance(node, list):
        base = {str(i): v for i, v in enumerate(node) if v is not None}
    else:
        base = {}
    child = _set_path(base.get(parts[0]), parts[1:], value)
    if child is None:
        base.pop(parts[0], None)
    else:
        base[parts[0]] = child
    # empty nodes do not exist in the database
    return base or None


def apply_event(tree: Any, event: str, payload: Any) -> Any:
    """Apply a streamed put/patch to the local tree and return the new tree."""
    if not isinstance(payload, dict):
        return tree
    parts = _split(payload.get("path", "/"))
    data = payload.get("data")
    if event == "put":
        return _set_path(tree, parts, data)
    if event == "patch":
        if not isinstance(data, dict):
            return tree
        for key, value in data.items():
            tree = _set_path(tree, parts + _split(key), value)
        return tree
    return tree


async def iter_sse(lines: AsyncIterator[bytes]) -> AsyncIterator[Tuple[str, str]]:
    """Yield (event, data) pairs from a text/event-stream body."""
    event = ""
    data: List[str] = []
    async for raw in lines:
        line = raw.decode("utf-8").rstrip("\r\n")
        if not line:
            if event or data:
                yield event, "\n".join(data)
            event, data = "", []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if name == "event":
            event = value
        elif name == "data":
            data.append(value)
    if event or data:
        yield event, "\n".join(data)


class RemoteStoreReader:
    """Subscribes to database paths and pushes whole-node snapshots."""

    def __init__(self, hass: HomeAssistant, database_url: str, auth_token: str | None = None) -> None:
        self.hass = hass
        self._base = database_url.rstrip("/")
        self._auth = (auth_token or "").strip() or None
        self._session = async_get_clientsession(hass)

    def _url(self, path: str) -> str:
        return f"{self._base}/{'/'.join(_split(path))}.json"

    def _params(self) -> dict:
        return {"auth": self._auth} if self._auth else {}

    def subscribe(self, path: str, on_snapshot: Callable[[StoreSnapshot], None]) -> Callable[[], None]:
        """Start streaming path; returns a callable that stops the stream."""
        task = self.hass.async_create_background_task(
            self._async_stream(path, on_snapshot), name=f"caregiver_monitor stream {path}"
        )

        def _unsub() -> None:
            task.cancel()

        return _unsub

    async def _async_stream(self, path: str, on_snapshot: Callable[[StoreSnapshot], None]) -> None:
        backoff = BACKOFF_MIN
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=REQUEST_TIMEOUT, sock_read=STREAM_READ_TIMEOUT)
        while True:
            tree: Any = None
            try:
                async with self._session.get(
                    self._url(path),
                    params=self._params(),
                    headers={"Accept": "text/event-stream"},
                    timeout=timeout,
                ) as resp:
                    resp.raise_for_status()
                    _LOGGER.debug("Streaming %s", path)
                    backoff = BACKOFF_MIN
                    async for event, data in iter_sse(resp.content):
                        if event in ("put", "patch"):
                            tree = apply_event(tree, event, json.loads(data))
                            on_snapshot(StoreSnapshot(exists=tree is not None, value=tree))
                        elif event == "cancel":
                            _LOGGER.warning("Stream for %s cancelled by server: %s", path, data)
                            return
                        elif event == "auth_revoked":
                            _LOGGER.warning("Credentials for %s expired, reconnecting", path)
                            break
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as err:
                _LOGGER.warning("Stream for %s failed: %s", path, err)
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, BACKOFF_MAX)

    async def async_push(self, path: str, value: Any) -> str:
        """Append a child under path and return its generated key."""
        try:
            async with self._session.post(
                self._url(path),
                params=self._params(),
                json=value,
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT),
            ) as resp:
                resp.raise_for_status()
                body = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            raise StoreError(f"Failed to write {path}: {err}") from err
        return str((body or {}).get("name", ""))
