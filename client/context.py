from dataclasses import dataclass
from typing import Optional
import asyncio
import logging

from connection import ConnectionManager
from errors import ConnectivityError, NotReadyError
from session import Session
from views import View

logger = logging.getLogger(__name__)


class Navigator:
    """Where the current page goes next. The first destination set wins."""

    def __init__(self):
        self._destination: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending: Optional[asyncio.Task] = None

    @property
    def destination(self) -> Optional[str]:
        return self._destination.result() if self._destination.done() else None

    @property
    def leaving(self) -> bool:
        return self._destination.done() or self._pending is not None

    def navigate_to(self, page: Optional[str], delay: float = 0):
        """Leave for ``page`` (None stops the app), optionally after ``delay`` seconds."""
        if self._destination.done():
            return
        self.cancel()
        if delay <= 0:
            self._destination.set_result(page)
            return
        self._pending = asyncio.create_task(self._navigate_later(page, delay))

    def stop(self):
        self.navigate_to(None)

    async def _navigate_later(self, page: Optional[str], delay: float):
        await asyncio.sleep(delay)
        self._pending = None
        if not self._destination.done():
            self._destination.set_result(page)

    async def wait(self) -> Optional[str]:
        return await asyncio.shield(self._destination)

    def cancel(self):
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None


@dataclass
class PageContext:
    """Everything one page load works with. Built fresh for every page."""
    session: Session
    connection: ConnectionManager
    view: View
    navigator: Navigator


class Page:
    name = ""

    def __init__(self, ctx: PageContext):
        self.ctx = ctx
        self.session = ctx.session
        self.connection = ctx.connection
        self.view = ctx.view
        self.navigator = ctx.navigator

    def setup(self):
        """Subscribe to server events. Runs before the channel connects."""

    async def load(self):
        """Runs once the channel is connected and the identity rebound."""

    async def teardown(self):
        pass

    def refresh(self):
        """Reload this page with a fresh connection and a fresh handshake."""
        self.navigator.navigate_to(self.name)

    def exit(self):
        self.navigator.stop()

    async def run(self) -> Optional[str]:
        self.view.bind(self)
        self.setup()
        try:
            try:
                await self.connection.connect()
            except ConnectivityError:
                self.view.show_connection_error("Failed to connect to server. Please refresh the page.")
                raise
            try:
                await self.connection.await_ready()
            except NotReadyError as e:
                logger.warning("[%s] %s, continuing", self.name.upper(), e)
                self.view.show_error("Still connecting to the server... refresh if nothing happens.")
            await self.load()
            self.view.page_loaded(self.name)
            return await self.navigator.wait()
        finally:
            self.navigator.cancel()
            await self.teardown()
            await self.connection.dispose()
