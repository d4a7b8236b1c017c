import logging

import config
from context import Page
from protocol import ErrorNotice
from question_cycle import CycleState, QuestionCycle
from scoreboard import ScoreAggregator
from timer_sync import TimerSync
from wagers import WagerTracker

logger = logging.getLogger(__name__)


class GamePage(Page):
    """Hosts the question cycle for one page load."""

    name = "game"

    def __init__(self, ctx, timer: TimerSync = None):
        super().__init__(ctx)
        self.wagers = WagerTracker(self.session.store)
        self.timer = timer or TimerSync()
        self.scores = ScoreAggregator(own_id=lambda: self.connection.sid)
        self.cycle = QuestionCycle(ctx, self.wagers, self.timer, self.scores, clock=self.timer.clock)

    def setup(self):
        self.cycle.attach()
        self.connection.subscribe("error", self.on_error)
        self.connection.on_disconnect(self.on_disconnect)

    async def load(self):
        identity = self.session.identity
        logger.info("[GAME PAGE] Room code: %s, socket: %s", identity.room_code, self.connection.sid)
        if not identity.room_code:
            self.view.show_error("Room code not found. Please create or join a room.")
            self.navigator.navigate_to("landing")
            return
        self.view.show_score(self.scores.current_score())
        self.view.show_status("Waiting for the next question...")

    async def teardown(self):
        self.cycle.dispose()

    def on_error(self, notice: ErrorNotice):
        self.view.show_error(notice.message)

    def on_disconnect(self):
        if self.cycle.state is CycleState.GAME_ENDED:
            return
        self.timer.cancel()
        self.view.show_error("Connection lost. You have been disconnected from the game.")
        self.navigator.navigate_to("landing", delay=config.DISCONNECT_REDIRECT_DELAY)

    # --- player actions ---

    def select_wager(self, value) -> bool:
        return self.cycle.select_wager(value)

    async def confirm_wager(self) -> bool:
        return await self.cycle.confirm_wager()

    async def select_answer(self, index: int) -> bool:
        return await self.cycle.select_answer(index)
