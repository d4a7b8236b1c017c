from typing import Any, Callable, Dict, List, Optional
import asyncio
import logging

import socketio

import config
from errors import ConnectivityError, NotReadyError, ServerRejection
from protocol import Command, ErrorNotice, GetLobbyState, HostRejoin, PlayerRejoin, parse_event
from session import Session
from utils import maybe_await

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


class ConnectionManager:
    """Owns the one Socket.IO channel of a page.

    On every (re)connect the manager rebinds the stored identity to the new
    connection id before reporting ready: ``host-rejoin`` or ``player-rejoin``
    when a room code and username are stored, ``get-lobby-state`` when only a
    room code is. The handshake is never retried automatically; pages watch
    for the ``lobby-state`` echo themselves and offer a manual retry.
    """

    def __init__(self, session: Session, url: str = "", client=None):
        self.session = session
        self.url = url or config.SERVER_URL
        self.sio = client if client is not None else socketio.AsyncClient(reconnection=True)
        self._subscribers: Dict[str, List[Handler]] = {}
        self._bound: set = set()
        self._ready = asyncio.Event()
        self._link_up = False
        self._disposed = False
        self._disconnect_listeners: List[Callable[[], Any]] = []
        self.handshakes = 0

        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)
        self.sio.on("connect_error", self._on_connect_error)
        self.subscribe("error", self._log_server_error)

    @property
    def sid(self) -> Optional[str]:
        if not self._link_up:
            return None
        return self.sio.get_sid("/")

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def connect(self):
        try:
            await self.sio.connect(
                self.url,
                socketio_path=config.SOCKETIO_PATH,
                wait_timeout=config.CONNECT_TIMEOUT,
            )
        except socketio.exceptions.ConnectionError as e:
            logger.error("[SOCKET] Connection error: %s", e)
            raise ConnectivityError(f"Failed to connect to {self.url}: {e}") from e
        logger.info("[SOCKET] Connected to %s as %s", self.url, self.sid)

    async def await_ready(self, max_attempts: Optional[int] = None, interval: Optional[float] = None):
        """Wait until connected and rejoined, for at most max_attempts * interval seconds."""
        if max_attempts is None:
            max_attempts = config.READY_MAX_ATTEMPTS
        if interval is None:
            interval = config.READY_INTERVAL
        timeout = max_attempts * interval
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("[SOCKET] Not ready after %.1fs", timeout)
            raise NotReadyError(f"Connection not ready after {timeout:.1f}s")

    async def emit(self, command: Command) -> bool:
        if not self._link_up:
            logger.error("[SOCKET] Not connected, dropping '%s'", command.event)
            return False
        await self.sio.emit(command.event, command.to_payload())
        logger.debug("[SOCKET] -> %s %s", command.event, command.to_payload())
        return True

    def subscribe(self, event: str, handler: Handler):
        self._bind(event)
        self._subscribers.setdefault(event, []).append(handler)

    def unsubscribe(self, event: str, handler: Handler):
        handlers = self._subscribers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def on_disconnect(self, listener: Callable[[], Any]):
        self._disconnect_listeners.append(listener)

    async def request(self, command: Command, reply_event: str, timeout: Optional[float] = None):
        """Send ``command`` and wait for its single correlated reply or an error."""
        if timeout is None:
            timeout = config.CONNECT_TIMEOUT
        future = asyncio.get_running_loop().create_future()

        def on_reply(model):
            if not future.done():
                future.set_result(model)

        def on_error(notice: ErrorNotice):
            if not future.done():
                future.set_exception(ServerRejection(notice.message))

        self.subscribe(reply_event, on_reply)
        self.subscribe("error", on_error)
        try:
            if not await self.emit(command):
                raise NotReadyError(f"Cannot send '{command.event}': not connected")
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            raise NotReadyError(f"No '{reply_event}' reply to '{command.event}' within {timeout}s")
        finally:
            self.unsubscribe(reply_event, on_reply)
            self.unsubscribe("error", on_error)

    async def dispose(self):
        """Tear the page's connection down. Disconnect listeners are not told."""
        self._disposed = True
        self._subscribers.clear()
        self._disconnect_listeners.clear()
        self._ready.clear()
        try:
            await self.sio.disconnect()
        except Exception:
            logger.exception("[SOCKET] Error while disconnecting")
        self._link_up = False

    # --- channel callbacks ---

    async def _on_connect(self):
        self._link_up = True
        self._ready.clear()
        await self._rejoin()
        self._ready.set()

    async def _rejoin(self):
        identity = self.session.identity
        if not identity.room_code:
            logger.info("[SOCKET] No stored room, skipping rejoin")
            return
        if identity.username:
            cls = HostRejoin if identity.is_host else PlayerRejoin
            command = cls(room_code=identity.room_code, username=identity.username)
        else:
            command = GetLobbyState(room_code=identity.room_code)
        logger.info("[SOCKET] %s for room %s as '%s'", command.event, identity.room_code, identity.username)
        await self.emit(command)
        self.handshakes += 1

    async def _on_disconnect(self, reason=None):
        self._link_up = False
        self._ready.clear()
        if self._disposed:
            return
        logger.warning("[SOCKET] Disconnected (%s)", reason or "unknown reason")
        for listener in list(self._disconnect_listeners):
            try:
                await maybe_await(listener)
            except Exception:
                logger.exception("[SOCKET] Disconnect listener failed")

    async def _on_connect_error(self, data=None):
        logger.error("[SOCKET] Connection error: %s", data)

    def _log_server_error(self, notice: ErrorNotice):
        logger.warning("[SOCKET] Server error: %s", notice.message)

    def _bind(self, event: str):
        if event in self._bound:
            return
        self._bound.add(event)

        async def dispatch(*args):
            await self._dispatch(event, args[0] if args else None)

        self.sio.on(event, dispatch)

    async def _dispatch(self, event: str, data: Any):
        model = parse_event(event, data)
        if model is None:
            return
        for handler in list(self._subscribers.get(event, [])):
            try:
                await maybe_await(handler, model)
            except Exception:
                logger.exception("[SOCKET] Handler for '%s' failed", event)
