from typing import List, Optional
import asyncio
import logging

import config
from context import Page
from protocol import ErrorNotice, LeaveRoom, LobbyState, PlayAgain, PlayerInfo, ReturnToSetup

logger = logging.getLogger(__name__)


class ResultsPage(Page):
    """Final standings, play-again for the host, and the way home.

    Play-again stays locked until the rejoin handshake is echoed back with a
    ``lobby-state``: before that the server does not know this connection.
    """

    name = "results"

    def __init__(self, ctx):
        super().__init__(ctx)
        self.leaderboard: List[PlayerInfo] = []
        self.winner: Optional[PlayerInfo] = None
        self.rejoin_complete = False
        self.requesting = False
        self._play_again_timeout: Optional[asyncio.Task] = None

    @property
    def is_host(self) -> bool:
        return self.session.identity.is_host

    def setup(self):
        self.connection.subscribe("lobby-state", self.on_lobby_state)
        self.connection.subscribe("return-to-setup", self.on_return_to_setup)
        self.connection.subscribe("error", self.on_error)

    async def load(self):
        identity = self.session.identity
        if not (identity.room_code and identity.username and self.connection.sid):
            logger.warning("[RESULTS] Cannot rejoin: missing room, username or connection")
            self.rejoin_complete = True

        leaderboard, winner = self.session.store.load_final_results()
        self.leaderboard = [PlayerInfo.model_validate(p) for p in leaderboard if isinstance(p, dict)]
        self.winner = PlayerInfo.model_validate(winner) if winner else None
        if not self.leaderboard:
            logger.warning("[RESULTS] No leaderboard data to display")
        self.view.show_final_results(self.winner, self.leaderboard)

        if not self.is_host:
            self.view.set_play_again_enabled(False, "Only the host can start a new game")
        elif self.rejoin_complete:
            self.view.set_play_again_enabled(True, "Play Again")
        else:
            self.view.set_play_again_enabled(False, "Connecting to room...")

    async def teardown(self):
        self._cancel_timeout()

    # --- server events ---

    def on_lobby_state(self, event: LobbyState):
        if self.rejoin_complete:
            return
        logger.info("[RESULTS] Rejoin complete")
        self.rejoin_complete = True
        if self.is_host:
            self.view.set_play_again_enabled(True, "Play Again")

    def on_return_to_setup(self, event: ReturnToSetup):
        logger.info("[RESULTS] Returning to setup")
        self._cancel_timeout()
        self.requesting = False
        self.session.store.clear_final_results()
        self.session.store.clear_used_wagers()
        self.navigator.navigate_to("lobby", delay=config.LEAVE_NAV_DELAY)

    def on_error(self, notice: ErrorNotice):
        self._cancel_timeout()
        self.requesting = False
        self.view.show_error(notice.message)
        if self.is_host:
            self.view.set_play_again_enabled(True, "Play Again")

    # --- player actions ---

    async def play_again(self) -> bool:
        if not self.rejoin_complete:
            self.view.show_error("Still connecting to room... please wait a moment")
            return False
        if not self.is_host:
            self.view.show_error("Only the host can start a new game")
            return False
        if self.requesting:
            return False

        self.requesting = True
        self.view.set_play_again_enabled(False, "Loading...")
        sent = await self.connection.emit(PlayAgain(room_code=self.session.identity.room_code))
        if not sent:
            self.requesting = False
            self.view.show_error("Connection lost. Please refresh the page.")
            self.view.set_play_again_enabled(True, "Play Again")
            return False
        self._play_again_timeout = asyncio.create_task(self._expire_play_again())
        return True

    async def go_home(self):
        room_code = self.session.identity.room_code
        if room_code:
            await self.connection.emit(LeaveRoom(room_code=room_code))
        self.session.forget()
        self.navigator.navigate_to("landing", delay=config.LEAVE_NAV_DELAY)

    async def _expire_play_again(self):
        await asyncio.sleep(config.PLAY_AGAIN_TIMEOUT)
        self._play_again_timeout = None
        self.requesting = False
        logger.error("[RESULTS] Play again timeout - no response from server")
        self.view.set_play_again_enabled(True, "Play Again")
        self.view.show_error("Play again failed. Please try again.")

    def _cancel_timeout(self):
        if self._play_again_timeout is not None:
            self._play_again_timeout.cancel()
            self._play_again_timeout = None
