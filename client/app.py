from typing import Callable, Dict, Optional, Type
import logging

from connection import ConnectionManager
from context import Navigator, Page, PageContext
from game import GamePage
from landing import LandingPage
from lobby import LobbyPage
from results import ResultsPage
from session import Session, SessionStore
from views import View

logger = logging.getLogger(__name__)

PAGES: Dict[str, Type[Page]] = {
    LandingPage.name: LandingPage,
    LobbyPage.name: LobbyPage,
    GamePage.name: GamePage,
    ResultsPage.name: ResultsPage,
}


class GameClientApp:
    """Runs pages one after another, like a browser following links.

    Every page load re-reads the stored session and opens a brand new
    connection, so moving between pages exercises the rejoin handshake.
    """

    def __init__(self, view: View, store: SessionStore, url: str = "",
                 client_factory: Optional[Callable[[], object]] = None):
        self.view = view
        self.store = store
        self.url = url
        self.client_factory = client_factory
        self.history = []

    def build_context(self) -> PageContext:
        session = Session(self.store)
        client = self.client_factory() if self.client_factory else None
        connection = ConnectionManager(session, self.url, client=client)
        return PageContext(session=session, connection=connection, view=self.view, navigator=Navigator())

    def initial_page(self) -> str:
        """Resume in the lobby when a room is still stored, otherwise start fresh."""
        return LobbyPage.name if self.store.load_identity().is_returning else LandingPage.name

    async def run(self, start_page: str = ""):
        page_name = start_page or self.initial_page()
        while page_name:
            if page_name not in PAGES:
                logger.error("[APP] Unknown page '%s', going to landing", page_name)
                page_name = LandingPage.name
            logger.info("[APP] Loading page '%s'", page_name)
            self.history.append(page_name)
            page = PAGES[page_name](self.build_context())
            page_name = await page.run()
        logger.info("[APP] Stopped")
