from typing import List, Optional
import asyncio
import logging

import config
from context import Page
from protocol import (
    ErrorNotice, GameStarted, LeaveRoom, LeftRoom, LobbyState, PlayerInfo,
    PlayerJoined, PlayerLeft, PlayerListUpdated, SettingsUpdated, StartGame,
    UpdateSettings,
)

logger = logging.getLogger(__name__)


class LobbyPage(Page):
    name = "lobby"

    def __init__(self, ctx):
        super().__init__(ctx)
        self.players: List[PlayerInfo] = []
        self.total_rounds: Optional[int] = None
        self.starting = False
        self.stalled = False
        self._state_seen = asyncio.Event()
        self._stall_watch: Optional[asyncio.Task] = None

    @property
    def is_host(self) -> bool:
        return self.session.identity.is_host

    @property
    def room_code(self) -> str:
        return self.session.identity.room_code

    def setup(self):
        self.connection.subscribe("lobby-state", self.on_lobby_state)
        self.connection.subscribe("player-list-updated", self.on_player_list)
        self.connection.subscribe("player-joined", self.on_roster_change)
        self.connection.subscribe("player-left", self.on_roster_change)
        self.connection.subscribe("settings-updated", self.on_settings_updated)
        self.connection.subscribe("game-started", self.on_game_started)
        self.connection.subscribe("left-room", self.on_left_room)
        self.connection.subscribe("error", self.on_error)
        self.connection.on_disconnect(self.on_disconnect)

    async def load(self):
        if not self.room_code:
            self.view.show_error("Room code not found. Please create or join a room.")
            self.navigator.navigate_to("landing")
            return
        self.view.show_room(self.room_code, self.is_host)
        self._stall_watch = asyncio.create_task(self._watch_for_stall())

    async def teardown(self):
        if self._stall_watch is not None:
            self._stall_watch.cancel()

    async def _watch_for_stall(self):
        try:
            await asyncio.wait_for(self._state_seen.wait(), timeout=config.LOBBY_STATE_TIMEOUT)
        except asyncio.TimeoutError:
            self.stalled = True
            logger.warning("[LOBBY] No lobby state within %ss", config.LOBBY_STATE_TIMEOUT)
            self.view.show_error("The room is not responding. Refresh to try again.")

    # --- server events ---

    def on_lobby_state(self, event: LobbyState):
        self._state_seen.set()
        self.stalled = False
        self.players = list(event.players)
        self.total_rounds = event.total_rounds
        self.view.show_room(event.room_code or self.room_code, self.is_host)
        self.view.show_players(self.players)
        self.view.show_settings(self.total_rounds)

    def on_player_list(self, event: PlayerListUpdated):
        self.players = list(event.players)
        self.view.show_players(self.players)

    def on_roster_change(self, event):
        if event.players is not None:
            self.players = list(event.players)
            self.view.show_players(self.players)
        if event.message:
            logger.info("[LOBBY] %s", event.message)
        if event.new_host is not None:
            # Host handover is server-confirmed, so it may touch the stored identity
            self.session.set_host(event.new_host.player_id == self.connection.sid)
            self.view.show_room(self.room_code, self.is_host)

    def on_settings_updated(self, event: SettingsUpdated):
        self.total_rounds = event.total_rounds
        self.view.show_settings(self.total_rounds)

    def on_game_started(self, event: GameStarted):
        logger.info("[LOBBY] Game starting")
        self.starting = False
        # A new game: every wager value is available again
        self.session.store.clear_used_wagers()
        self.navigator.navigate_to("game", delay=config.GAME_START_NAV_DELAY)

    def on_left_room(self, event: LeftRoom):
        self.navigator.navigate_to("landing")

    def on_error(self, notice: ErrorNotice):
        if self.starting:
            logger.info("[LOBBY] Start game error: %s", notice.message)
            self.starting = False
            self.view.set_start_loading(False)
        self.view.show_error(notice.message)

    def on_disconnect(self):
        self.view.show_error("Connection lost. You have been disconnected from the room.")
        self.navigator.navigate_to("landing", delay=config.DISCONNECT_REDIRECT_DELAY)

    # --- player actions ---

    async def update_settings(self, total_rounds: int) -> bool:
        if not self.is_host:
            logger.error("[LOBBY] Only host can update settings")
            return False
        return await self.connection.emit(UpdateSettings(room_code=self.room_code, total_rounds=total_rounds))

    async def start_game(self, category: str = "") -> bool:
        if not self.is_host:
            logger.error("[LOBBY] Only host can start game")
            return False
        if self.starting:
            return False
        self.starting = True
        self.view.set_start_loading(True)
        logger.info("[LOBBY] Starting game with category: %r", category)
        sent = await self.connection.emit(StartGame(room_code=self.room_code, category=category))
        if not sent:
            self.starting = False
            self.view.set_start_loading(False)
        return sent

    async def leave_room(self):
        if self.room_code:
            await self.connection.emit(LeaveRoom(room_code=self.room_code))
        self.session.forget()
        self.navigator.navigate_to("landing", delay=config.LEAVE_NAV_DELAY)
