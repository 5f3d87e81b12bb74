"""Fetch-on-mount state holder for a single dashboard endpoint.

A :class:`ResourceFetcher` tracks ``data`` / ``loading`` / ``error`` for
whichever endpoint it currently points at. Pointing it at a new endpoint
cancels the in-flight request and bumps a generation counter; a completion
whose generation no longer matches is dropped, so a slow response for an
old endpoint can never overwrite state for the current one.

There is no retry and no polling. Callers that want fresh data after a
mutation call :meth:`ResourceFetcher.refresh`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import httpx

from trading_dashboard.client.api import DashboardApiClient

logger = logging.getLogger("trading_dashboard.fetcher")

T = TypeVar("T")

Listener = Callable[["FetchState[Any]"], None]


@dataclass(frozen=True)
class FetchState(Generic[T]):
    data: T | None = None
    loading: bool = True
    error: str | None = None


def _error_message(exc: BaseException) -> str:
    if isinstance(exc, httpx.TransportError):
        return f"Network error: {exc}" if str(exc) else f"Network error: {type(exc).__name__}"
    message = str(exc)
    return message or "An error occurred"


class ResourceFetcher(Generic[T]):
    def __init__(
        self,
        client: DashboardApiClient,
        *,
        parse: Callable[[Any], T] | None = None,
    ) -> None:
        self._client = client
        self._parse = parse
        self._endpoint: str | None = None
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._state: FetchState[T] = FetchState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> FetchState[T]:
        return self._state

    @property
    def endpoint(self) -> str | None:
        return self._endpoint

    @property
    def data(self) -> T | None:
        return self._state.data

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> str | None:
        return self._state.error

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for state changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def mount(self, endpoint: str) -> None:
        self.set_endpoint(endpoint)

    def set_endpoint(self, endpoint: str) -> None:
        """Point the fetcher at ``endpoint``; a no-op if it is already there."""
        if endpoint == self._endpoint and self._task is not None:
            return
        self._start(endpoint)

    async def refresh(self, endpoint: str | None = None) -> FetchState[T]:
        target = endpoint if endpoint is not None else self._endpoint
        if target is None:
            raise ValueError("no endpoint to fetch")
        task = self._start(target)
        await self._await_task(task)
        return self._state

    async def wait(self) -> FetchState[T]:
        """Wait for the in-flight request, if any, and return the current state."""
        if self._task is not None:
            await self._await_task(self._task)
        return self._state

    def unmount(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._endpoint = None

    def _start(self, endpoint: str) -> asyncio.Task[None]:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._generation += 1
        self._endpoint = endpoint
        self._set_state(FetchState())
        task = asyncio.create_task(self._run(self._generation, endpoint))
        self._task = task
        return task

    async def _await_task(self, task: asyncio.Task[None]) -> None:
        # A newer request may cancel this one; that is not the caller's error.
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def _run(self, generation: int, endpoint: str) -> None:
        try:
            raw = await self._client.get_json(endpoint)
            data = self._parse(raw) if self._parse is not None else raw
        except asyncio.CancelledError:
            logger.debug(f"Fetch of {endpoint} cancelled", extra={"endpoint": endpoint})
            raise
        except Exception as exc:
            if generation != self._generation:
                return
            logger.error(f"Error fetching {endpoint}: {exc}", extra={"endpoint": endpoint})
            self._set_state(FetchState(data=None, loading=False, error=_error_message(exc)))
            return

        if generation != self._generation:
            logger.debug(
                f"Discarding stale response for {endpoint}",
                extra={"endpoint": endpoint, "generation": generation},
            )
            return
        self._set_state(FetchState(data=data, loading=False, error=None))

    def _set_state(self, state: FetchState[T]) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
