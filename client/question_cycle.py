"""Per-round controller for the game page.

Each ``new-question`` starts a round: wager first, then exactly one answer,
then the server's results. The answer is sent at most once per round whether
it comes from the player or from the countdown running out; ``has_answered``
is checked and set in the same reaction, with no await in between.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Set, Tuple
import asyncio
import logging

import config
from context import PageContext
from errors import ValidationError
from protocol import (
    AnswerSubmitted, GameEnded, GameStarted, NewQuestion, PlayerLeft, PlayerResult,
    QuestionFeedback, QuestionResults, SelectPoints, SubmitAnswer,
)
from scoreboard import ScoreAggregator
from timer_sync import TimerSync
from utils import format_number, format_remaining, now_ms
from wagers import WagerTracker, WagerValue

logger = logging.getLogger(__name__)


class CycleState(Enum):
    AWAITING_QUESTION = "awaiting_question"
    AWAITING_WAGER = "awaiting_wager"
    AWAITING_ANSWER = "awaiting_answer"
    AWAITING_RESULTS = "awaiting_results"
    SHOWING_RESULTS = "showing_results"
    GAME_ENDED = "game_ended"


@dataclass(frozen=True)
class Round:
    round_number: int
    total_rounds: int
    category: str
    prompt: str
    options: Tuple[str, ...]
    start_timestamp: float  # server epoch ms
    duration_seconds: float

    @classmethod
    def from_event(cls, event: NewQuestion) -> "Round":
        return cls(
            round_number=event.question_number,
            total_rounds=event.total_questions,
            category=event.category,
            prompt=event.question_text,
            options=tuple(event.answers),
            start_timestamp=event.question_start_time,
            duration_seconds=event.time_limit,
        )


@dataclass(frozen=True)
class AnswerSubmission:
    round_number: int
    option_index: int
    elapsed_seconds: float
    auto: bool = False


@dataclass(frozen=True)
class RoundOutcome:
    round_number: Optional[int]
    is_correct: bool
    points: int
    wager_label: str
    answer_index: Optional[int]
    correct_answer_index: int
    correct_answer: str
    auto_submitted: bool
    message: str


def wager_label(result: PlayerResult) -> str:
    """How a wager reads in the result card; the lucky delta only shows on a win."""
    if result.wager == config.LUCKY_WAGER:
        if result.is_correct and result.lucky_value is not None:
            sign = "+" if result.lucky_value > 0 else ""
            return f"{config.LUCKY_WAGER} (lucky: {sign}{result.lucky_value})"
        return config.LUCKY_WAGER
    return str(result.wager) if result.wager is not None else "none"


class QuestionCycle:
    def __init__(self, ctx: PageContext, wagers: WagerTracker, timer: TimerSync,
                 scores: ScoreAggregator, clock: Callable[[], float] = now_ms):
        self.ctx = ctx
        self.connection = ctx.connection
        self.session = ctx.session
        self.view = ctx.view
        self.wagers = wagers
        self.timer = timer
        self.scores = scores
        self.clock = clock

        self.state = CycleState.AWAITING_QUESTION
        self.round: Optional[Round] = None
        self.has_answered = False
        self.wager_confirmed = False
        self.confirmed_wager: Optional[WagerValue] = None
        self.auto_submitted = False
        self.submission: Optional[AnswerSubmission] = None
        self.last_outcome: Optional[RoundOutcome] = None

        self._tasks: Set[asyncio.Task] = set()
        self._results_dismiss: Optional[asyncio.Task] = None
        self._feedback_dismiss: Optional[asyncio.Task] = None
        self._subscriptions = (
            ("game-started", self.on_game_started),
            ("new-question", self.on_new_question),
            ("answer-submitted", self.on_answer_progress),
            ("question-results", self.on_results),
            ("question-feedback", self.on_feedback),
            ("game-ended", self.on_game_ended),
            ("player-left", self.on_player_left),
        )

    @property
    def room_code(self) -> str:
        return self.session.identity.room_code

    def attach(self):
        for event, handler in self._subscriptions:
            self.connection.subscribe(event, handler)

    def dispose(self):
        self.timer.cancel()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        for event, handler in self._subscriptions:
            self.connection.unsubscribe(event, handler)

    # --- server events ---

    def on_game_started(self, event: GameStarted):
        logger.info("[GAME] Game started")
        self.view.show_status("Waiting for first question...")

    def on_new_question(self, event: NewQuestion):
        if self.state is CycleState.GAME_ENDED:
            logger.warning("[GAME] Question %d after game end ignored", event.question_number)
            return

        self.round = Round.from_event(event)
        self.has_answered = False
        self.wager_confirmed = False
        self.confirmed_wager = None
        self.auto_submitted = False
        self.submission = None
        self.wagers.clear_selection()
        self.state = CycleState.AWAITING_WAGER
        logger.info("[GAME] Question %d/%d: %s", self.round.round_number, self.round.total_rounds, self.round.prompt)

        self._cancel(self._results_dismiss)
        self.view.hide_result()
        self.view.show_question(self.round)
        self.view.show_wager_choices(self.wagers.offerable_values())
        self.view.set_wager_visible(True)
        self.view.set_answers_enabled(False)
        self.view.show_status("Select your wager to continue...")

        self.timer.start(self.round.start_timestamp, self.round.duration_seconds,
                         self._on_tick, self._on_timeout)

    def on_answer_progress(self, event: AnswerSubmitted):
        self.view.show_status(f"{event.player_answered}/{event.total_players} players answered")

    def on_results(self, event: QuestionResults):
        if self.state is CycleState.GAME_ENDED:
            return
        self.timer.cancel()
        logger.info("[GAME] Results: correct answer index %d", event.correct_answer_index)

        self.scores.apply_score_snapshot(event.player_scores)
        self.view.show_score(self.scores.current_score())
        self.view.show_scoreboard(self.scores.rows())

        self.state = CycleState.SHOWING_RESULTS
        mine = event.result_for(self.connection.sid)
        if mine is None:
            logger.info("[GAME] No result attributed to this player")
        else:
            if self.submission is None:
                logger.warning("[GAME] Result received for a round with no recorded submission")
            self.last_outcome = self._build_outcome(event, mine)
            self.view.show_status(self.last_outcome.message)
            self.view.show_result(self.last_outcome)

        self._cancel(self._results_dismiss)
        self._results_dismiss = self._spawn(self._dismiss_results())

    def on_feedback(self, event: QuestionFeedback):
        logger.info("[GAME] Feedback: %s", event.message)
        self.view.show_feedback(event.message)
        self._cancel(self._feedback_dismiss)
        self._feedback_dismiss = self._spawn(self._dismiss_feedback())

    def on_game_ended(self, event: GameEnded):
        self.timer.cancel()
        self.state = CycleState.GAME_ENDED
        winner = event.winner.username if event.winner else None
        logger.info("[GAME] Game ended, winner: %s", winner)

        self.session.store.save_final_results(
            [p.model_dump() for p in event.leaderboard],
            event.winner.model_dump() if event.winner else None,
        )
        self.view.show_status("Game over!")
        self.ctx.navigator.navigate_to("results", delay=config.GAME_END_NAV_DELAY)

    def on_player_left(self, event: PlayerLeft):
        if event.message:
            logger.info("[GAME] %s", event.message)
        if event.new_host is not None:
            self.session.set_host(event.new_host.player_id == self.connection.sid)

    # --- player actions ---

    def select_wager(self, value) -> bool:
        if self.state is not CycleState.AWAITING_WAGER:
            return False
        try:
            self.wagers.select(value)
        except ValidationError as e:
            self.view.show_status(str(e))
            return False
        return True

    async def confirm_wager(self) -> bool:
        if self.state is not CycleState.AWAITING_WAGER or self.wager_confirmed:
            return False
        try:
            value = self.wagers.confirm()
        except ValidationError as e:
            self.view.show_status(str(e))
            return False

        self.wager_confirmed = True
        self.confirmed_wager = value
        self.state = CycleState.AWAITING_ANSWER
        self.view.set_wager_visible(False)
        self.view.set_answers_enabled(True)
        self.view.show_status("Answer the question!")
        logger.info("[GAME] Wager confirmed: %s", value)
        await self.connection.emit(SelectPoints(room_code=self.room_code, points=value))
        return True

    async def select_answer(self, index) -> bool:
        # Answer controls stay locked until a wager is confirmed
        if self.state is not CycleState.AWAITING_ANSWER or not self.wager_confirmed or self.has_answered:
            return False
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < config.NUM_OPTIONS:
            self.view.show_status(f"Pick an answer between 1 and {config.NUM_OPTIONS}.")
            return False
        return await self._submit_answer(index, auto=False)

    async def handle_timeout(self):
        """Force a wager (if none) and an answer so the round still gets one submission."""
        if self.has_answered or self.round is None:
            return
        if self.state not in (CycleState.AWAITING_WAGER, CycleState.AWAITING_ANSWER):
            return
        current = self.round

        if not self.wager_confirmed:
            value = self.wagers.force_minimum()
            self.wager_confirmed = True
            self.confirmed_wager = value
            self.state = CycleState.AWAITING_ANSWER
            self.view.set_wager_visible(False)
            logger.info("[GAME] Auto-selected wager %s due to timeout", value)
            await self.connection.emit(SelectPoints(room_code=self.room_code, points=value))

            # Give the server a moment to take the wager before the answer lands
            await asyncio.sleep(config.WAGER_SETTLE_DELAY)
            if self.round is not current:
                return

        await self._submit_answer(config.FORCED_ANSWER_INDEX, auto=True)

    # --- internals ---

    async def _submit_answer(self, index: int, auto: bool) -> bool:
        if self.has_answered or self.round is None:
            return False
        if self.state not in (CycleState.AWAITING_WAGER, CycleState.AWAITING_ANSWER):
            return False
        self.has_answered = True

        elapsed = max(0.0, (self.clock() - self.round.start_timestamp) / 1000)
        self.submission = AnswerSubmission(self.round.round_number, index, elapsed, auto)
        self.auto_submitted = auto
        self.state = CycleState.AWAITING_RESULTS
        self.view.set_answers_enabled(False)
        self.view.show_status("Time's up! Auto-submitted..." if auto else "Waiting for other players...")

        await self.connection.emit(SubmitAnswer(room_code=self.room_code, answer_index=index, time_elapsed=elapsed))
        logger.info("[GAME] Answer submitted: %d, time: %.2fs%s", index, elapsed, " (auto)" if auto else "")
        return True

    def _on_tick(self, remaining: float):
        warning = 0 < remaining < config.TIMER_WARNING_SECONDS
        self.view.show_timer(format_remaining(remaining), warning)

    def _on_timeout(self):
        if not self.has_answered:
            self._spawn(self.handle_timeout())

    def _build_outcome(self, event: QuestionResults, mine: PlayerResult) -> RoundOutcome:
        correct_index = event.correct_answer_index
        if self.round is not None and 0 <= correct_index < len(self.round.options):
            correct_answer = self.round.options[correct_index]
        else:
            correct_answer = f"option {correct_index + 1}"
        label = wager_label(mine)

        if mine.is_correct:
            message = f"Correct! +{format_number(mine.points)} points (wagered {label})"
        else:
            message = f"Incorrect (wagered {label}). Correct answer was option {correct_index + 1}"
        if self.auto_submitted:
            message += " You didn't select a wager or answer!"

        return RoundOutcome(
            round_number=self.round.round_number if self.round else None,
            is_correct=mine.is_correct,
            points=mine.points if mine.is_correct else 0,
            wager_label=label,
            answer_index=mine.answer_index,
            correct_answer_index=correct_index,
            correct_answer=correct_answer,
            auto_submitted=self.auto_submitted,
            message=message,
        )

    async def _dismiss_results(self):
        await asyncio.sleep(config.RESULTS_DISPLAY_SECONDS)
        self.view.hide_result()
        if self.state is CycleState.SHOWING_RESULTS:
            self.state = CycleState.AWAITING_QUESTION

    async def _dismiss_feedback(self):
        await asyncio.sleep(config.FEEDBACK_DISPLAY_SECONDS)
        self.view.hide_feedback()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel(self, task: Optional[asyncio.Task]):
        if task is not None and not task.done():
            task.cancel()
