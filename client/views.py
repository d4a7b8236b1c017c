"""Rendering hooks for the pages.

Pages never draw anything themselves; they call these hooks. ``View`` is the
no-op interface, ``LoggingView`` writes everything to the log, and
``AutoPlayerView`` plays the game headlessly through the bound page.
"""
from typing import List, Optional, Sequence, Set
import asyncio
import logging
import random

import config
from utils import format_number

logger = logging.getLogger(__name__)

MEDALS = {1: "🥇", 2: "🥈", 3: "🥉"}


class View:
    def __init__(self):
        self.page = None

    def bind(self, page):
        self.page = page

    def page_loaded(self, name: str):
        pass

    # --- shared ---
    def show_error(self, message: str):
        pass

    def show_connection_error(self, message: str):
        pass

    def show_status(self, text: str):
        pass

    # --- landing ---
    def show_loading(self, text: str):
        pass

    def hide_loading(self):
        pass

    def show_field_error(self, field: str, message: str):
        pass

    # --- lobby ---
    def show_room(self, room_code: str, is_host: bool):
        pass

    def show_players(self, players: Sequence):
        pass

    def show_settings(self, total_rounds: Optional[int]):
        pass

    def set_start_loading(self, loading: bool):
        pass

    # --- game ---
    def show_question(self, round):
        pass

    def show_wager_choices(self, values: List):
        pass

    def set_wager_visible(self, visible: bool):
        pass

    def set_answers_enabled(self, enabled: bool):
        pass

    def show_timer(self, text: str, warning: bool):
        pass

    def show_score(self, score: int):
        pass

    def show_scoreboard(self, rows: Sequence):
        pass

    def show_result(self, outcome):
        pass

    def hide_result(self):
        pass

    def show_feedback(self, message: str):
        pass

    def hide_feedback(self):
        pass

    # --- results ---
    def show_final_results(self, winner, leaderboard: Sequence):
        pass

    def set_play_again_enabled(self, enabled: bool, label: str = ""):
        pass


class LoggingView(View):
    """Renders every hook as a log line."""

    def page_loaded(self, name):
        logger.info("== %s ==", name.upper())

    def show_error(self, message):
        logger.error("%s", message)

    def show_connection_error(self, message):
        logger.error("Connection Error: %s", message)

    def show_status(self, text):
        logger.info("%s", text)

    def show_field_error(self, field, message):
        logger.error("%s: %s", field, message)

    def show_room(self, room_code, is_host):
        logger.info("Room %s%s", room_code, " (host)" if is_host else "")

    def show_players(self, players):
        names = ", ".join(f"{p.username}{' (Host)' if p.is_host else ''}" for p in players)
        logger.info("Players (%d): %s", len(players), names)

    def show_settings(self, total_rounds):
        logger.info("Rounds: %s", total_rounds)

    def show_question(self, round):
        logger.info("Question %d/%d [%s] %s", round.round_number, round.total_rounds, round.category, round.prompt)
        for i, option in enumerate(round.options):
            logger.info("  %d. %s", i + 1, option)

    def show_score(self, score):
        logger.info("Your score: %s", format_number(score))

    def show_scoreboard(self, rows):
        for row in rows:
            logger.info("  %d. %s%s %s", row.rank, row.username, " (You)" if row.is_me else "", format_number(row.score))

    def show_feedback(self, message):
        logger.warning("%s", message)

    def show_final_results(self, winner, leaderboard):
        if winner is not None:
            logger.info("Winner: %s with %s points", winner.username, format_number(winner.score))
        for rank, player in enumerate(leaderboard, start=1):
            logger.info("  %s %s %s", MEDALS.get(rank, str(rank)), player.username, format_number(player.score))


class AutoPlayerView(LoggingView):
    """A headless player: creates or joins a room, wagers and answers at random.

    A host starts the game once ``min_players`` are in the room and, after the
    final standings, asks for ``games - 1`` more games before going home.
    """

    def __init__(self, username: str, room_code: str = "", create: bool = False,
                 category: str = "", min_players: int = 2, games: int = 1,
                 think_seconds: Optional[float] = None):
        super().__init__()
        self.username = username
        self.room_code = room_code
        self.create = create
        self.category = category
        self.min_players = min_players
        self.games_left = games
        self.think_seconds = think_seconds if think_seconds is not None else config.AUTO_PLAYER_THINK_SECONDS
        self.entered = False
        self._tasks: Set[asyncio.Task] = set()

    def bind(self, page):
        # Pending moves belong to the page that scheduled them
        if page is not self.page:
            for task in list(self._tasks):
                task.cancel()
            self._tasks.clear()
        super().bind(page)

    def _later(self, coro):
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _think(self):
        await asyncio.sleep(random.uniform(0.2, 1.0) * self.think_seconds)

    def page_loaded(self, name):
        super().page_loaded(name)
        if name == "landing":
            if self.entered:
                self.page.exit()
            elif self.create:
                self._later(self.page.create_room(self.username))
            else:
                self._later(self.page.join_room(self.username, self.room_code))
        elif name == "lobby":
            self.entered = True
        elif name == "results":
            self.games_left -= 1
            self._later(self._after_game())

    def show_field_error(self, field, message):
        super().show_field_error(field, message)
        self.page.exit()

    def show_players(self, players):
        super().show_players(players)
        page = self.page
        if getattr(page, "name", "") == "lobby" and page.is_host and len(players) >= self.min_players:
            self._later(self._start(page))

    async def _start(self, page):
        await self._think()
        if not page.starting:
            await page.start_game(self.category)

    def show_wager_choices(self, values):
        super().show_wager_choices(values)
        self._later(self._wager(list(values)))

    async def _wager(self, values: List):
        await self._think()
        if values and self.page.select_wager(random.choice(values)):
            await self.page.confirm_wager()

    def set_answers_enabled(self, enabled):
        if enabled:
            self._later(self._answer())

    async def _answer(self):
        await self._think()
        await self.page.select_answer(random.randrange(config.NUM_OPTIONS))

    async def _after_game(self):
        await asyncio.sleep(self.think_seconds)
        page = self.page
        if self.games_left <= 0:
            await page.go_home()
        elif page.is_host:
            await page.play_again()
