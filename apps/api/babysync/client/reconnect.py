"""Client-side connection ownership with bounded fixed-delay retries."""
from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Protocol, Union

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 3.0
DEFAULT_MAX_RECONNECT_ATTEMPTS = 5


class SyncStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class Transport(Protocol):
    """What the controller needs from a socket; ``websockets`` client connections fit."""

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[Union[str, bytes]]: ...


Opener = Callable[[], Awaitable[Transport]]
MessageHandler = Callable[[Union[str, bytes]], None]
StatusHandler = Callable[[SyncStatus], None]


class ReconnectionController:
    """Owns the one transport a device keeps open to the server.

    After an unexpected close, or a failed attempt, it waits ``delay`` seconds
    and tries again, at most ``max_attempts`` times in a row. Once those are
    used up it stays ``disconnected`` until :meth:`connect` is called again.
    A successful connection resets the count. :meth:`disconnect` cancels any
    pending retry and never triggers one.

    Only one retry can be pending at a time; starting an attempt clears it.
    """

    def __init__(
        self,
        opener: Opener,
        *,
        on_message: Optional[MessageHandler] = None,
        on_status: Optional[StatusHandler] = None,
        delay: float = DEFAULT_RECONNECT_DELAY,
        max_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
    ) -> None:
        self._opener = opener
        self._on_message = on_message
        self._status_handlers: List[StatusHandler] = [on_status] if on_status else []
        self.delay = delay
        self.max_attempts = max_attempts
        self._status = SyncStatus.DISCONNECTED
        self._transport: Optional[Transport] = None
        self._reader: Optional[asyncio.Task] = None
        self._retry: Optional[asyncio.Task] = None
        self._attempts = 0
        self._stopped = True

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def retry_pending(self) -> bool:
        return self._retry is not None and not self._retry.done()

    @property
    def is_connected(self) -> bool:
        return self._status is SyncStatus.CONNECTED and self._transport is not None

    async def connect(self) -> bool:
        """Manually (re)start the connection with a fresh retry budget."""
        if self.is_connected:
            logger.debug("already connected")
            return True
        if self._status is SyncStatus.CONNECTING:
            logger.debug("connection attempt already in flight")
            return False
        self._stopped = False
        self._attempts = 0
        return await self._attempt()

    async def disconnect(self) -> None:
        """User-initiated close: cancel any retry and go straight to ``disconnected``."""
        self._stopped = True
        self._cancel_retry()
        transport, self._transport = self._transport, None
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
        if transport is not None:
            try:
                await transport.close()
            except Exception as exc:
                logger.debug("error while closing transport", extra={"error": repr(exc)})
        self._attempts = 0
        self._set_status(SyncStatus.DISCONNECTED)

    async def send(self, message: Union[str, dict]) -> bool:
        if not self.is_connected:
            return False
        text = message if isinstance(message, str) else json.dumps(message)
        try:
            await self._transport.send(text)
        except Exception as exc:
            logger.warning("send failed", extra={"error": repr(exc)})
            return False
        return True

    async def _attempt(self) -> bool:
        self._cancel_retry()
        self._set_status(SyncStatus.CONNECTING)
        try:
            transport = await self._opener()
        except Exception as exc:
            logger.warning("connection attempt failed", extra={"attempt": self._attempts, "error": repr(exc)})
            self._set_status(SyncStatus.ERROR)
            self._schedule_retry()
            return False

        if self._stopped:
            await transport.close()
            return False

        self._transport = transport
        self._attempts = 0
        self._set_status(SyncStatus.CONNECTED)
        logger.info("connected")
        self._reader = asyncio.create_task(self._read_loop(transport))
        return True

    async def _read_loop(self, transport: Transport) -> None:
        try:
            async for message in transport:
                self._dispatch(message)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("transport failed", extra={"error": repr(exc)})
            if self._transport is transport:
                self._set_status(SyncStatus.ERROR)

        if self._transport is not transport:
            # Replaced or closed on purpose by disconnect().
            return
        self._transport = None
        self._reader = None
        logger.info("disconnected")
        self._set_status(SyncStatus.DISCONNECTED)
        if not self._stopped:
            self._schedule_retry()

    def _dispatch(self, message: Union[str, bytes]) -> None:
        if self._on_message is None:
            return
        try:
            self._on_message(message)
        except Exception:
            logger.exception("message handler failed")

    def _schedule_retry(self) -> None:
        if self._stopped:
            return
        if self._attempts >= self.max_attempts:
            logger.warning("giving up after %s reconnect attempts", self._attempts)
            self._set_status(SyncStatus.DISCONNECTED)
            return
        self._attempts += 1
        self._cancel_retry()
        logger.info("reconnecting in %ss (attempt %s)", self.delay, self._attempts)
        self._retry = asyncio.create_task(self._retry_after(self.delay))

    async def _retry_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._retry = None
        await self._attempt()

    def _cancel_retry(self) -> None:
        retry, self._retry = self._retry, None
        if retry is not None and not retry.done() and retry is not asyncio.current_task():
            retry.cancel()

    def _set_status(self, status: SyncStatus) -> None:
        if status is self._status:
            return
        self._status = status
        for handler in list(self._status_handlers):
            try:
                handler(status)
            except Exception:
                logger.exception("status listener failed")
