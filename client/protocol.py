"""Typed wire messages exchanged with the trivia server.

Outbound commands are pydantic models that know their event name and dump
to the camelCase payload the server expects. Inbound events are parsed into
models through ``parse_event``; anything that fails validation is logged and
dropped so a malformed push never takes down a handler.
"""
from typing import Any, ClassVar, Dict, List, Optional, Type, Union
import logging

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PayloadError

import config

logger = logging.getLogger(__name__)

Wager = Union[int, str, None]


# ---------------------------------------------------------------------------
# Outbound commands
# ---------------------------------------------------------------------------

class Command(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event: ClassVar[str] = ""

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class CreateRoom(Command):
    event: ClassVar[str] = "create-room"
    username: str


class JoinRoom(Command):
    event: ClassVar[str] = "join-room"
    username: str
    room_code: str = Field(alias="roomCode")


class LeaveRoom(Command):
    event: ClassVar[str] = "leave-room"
    room_code: str = Field(alias="roomCode")


class HostRejoin(Command):
    event: ClassVar[str] = "host-rejoin"
    room_code: str = Field(alias="roomCode")
    username: str


class PlayerRejoin(Command):
    event: ClassVar[str] = "player-rejoin"
    room_code: str = Field(alias="roomCode")
    username: str


class GetLobbyState(Command):
    event: ClassVar[str] = "get-lobby-state"
    room_code: str = Field(alias="roomCode")


class UpdateSettings(Command):
    event: ClassVar[str] = "update-settings"
    room_code: str = Field(alias="roomCode")
    total_rounds: int = Field(alias="totalRounds")


class StartGame(Command):
    event: ClassVar[str] = "start-game"
    room_code: str = Field(alias="roomCode")
    category: str = ""


class SelectPoints(Command):
    event: ClassVar[str] = "select-points"
    room_code: str = Field(alias="roomCode")
    points: Wager = None


class SubmitAnswer(Command):
    event: ClassVar[str] = "submit-answer"
    room_code: str = Field(alias="roomCode")
    answer_index: int = Field(alias="answerIndex")
    time_elapsed: float = Field(alias="timeElapsed")


class PlayAgain(Command):
    event: ClassVar[str] = "play-again"
    room_code: str = Field(alias="roomCode")


# ---------------------------------------------------------------------------
# Inbound events
# ---------------------------------------------------------------------------

class Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event: ClassVar[str] = ""

    @classmethod
    def from_payload(cls, data: Any):
        return cls.model_validate(data if isinstance(data, dict) else {})


class PlayerInfo(BaseModel):
    """A roster or scoreboard entry. The server keys players by socket id."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    player_id: str = Field("", validation_alias=AliasChoices("socketId", "playerId", "id", "player_id"))
    username: str = ""
    score: int = 0
    is_host: bool = Field(False, validation_alias=AliasChoices("isHost", "is_host"))


class RoomCreated(Event):
    event: ClassVar[str] = "room-created"
    room_code: str = Field(alias="roomCode")
    role: Optional[str] = None


class RoomJoined(Event):
    event: ClassVar[str] = "room-joined"
    room_code: str = Field(alias="roomCode")
    role: Optional[str] = None


class LobbyState(Event):
    event: ClassVar[str] = "lobby-state"
    room_code: str = Field("", alias="roomCode")
    players: List[PlayerInfo] = []
    total_rounds: Optional[int] = Field(None, alias="totalRounds")


class PlayerListUpdated(Event):
    event: ClassVar[str] = "player-list-updated"
    players: List[PlayerInfo] = []

    @classmethod
    def from_payload(cls, data: Any):
        # Pushed as a bare list
        if isinstance(data, list):
            data = {"players": data}
        return super().from_payload(data)


class PlayerJoined(Event):
    event: ClassVar[str] = "player-joined"
    players: Optional[List[PlayerInfo]] = None
    new_host: Optional[PlayerInfo] = Field(None, alias="newHost")
    message: str = ""


class PlayerLeft(Event):
    event: ClassVar[str] = "player-left"
    players: Optional[List[PlayerInfo]] = None
    new_host: Optional[PlayerInfo] = Field(None, alias="newHost")
    message: str = ""


class SettingsUpdated(Event):
    event: ClassVar[str] = "settings-updated"
    total_rounds: int = Field(alias="totalRounds")


class GameStarted(Event):
    event: ClassVar[str] = "game-started"


class NewQuestion(Event):
    event: ClassVar[str] = "new-question"
    question_number: int = Field(alias="questionNumber")
    total_questions: int = Field(alias="totalQuestions")
    category: str = ""
    question_text: str = Field(alias="questionText")
    answers: List[str]
    question_start_time: float = Field(alias="questionStartTime")  # server epoch ms
    time_limit: float = Field(30, alias="timeLimit")  # seconds

    @field_validator("answers")
    @classmethod
    def validate_answers(cls, v: List[str]) -> List[str]:
        if len(v) != config.NUM_OPTIONS:
            raise ValueError(f"Expected {config.NUM_OPTIONS} answers, got {len(v)}")
        return v


class AnswerSubmitted(Event):
    event: ClassVar[str] = "answer-submitted"
    player_answered: int = Field(alias="playerAnswered")
    total_players: int = Field(alias="totalPlayers")


class PlayerResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    player_id: str = Field("", validation_alias=AliasChoices("socketId", "playerId", "id", "player_id"))
    username: str = ""
    answer_index: Optional[int] = Field(None, validation_alias=AliasChoices("answerIndex", "optionIndex", "answer_index"))
    is_correct: bool = Field(False, validation_alias=AliasChoices("isCorrect", "is_correct"))
    wager: Wager = None
    lucky_value: Optional[int] = Field(None, validation_alias=AliasChoices("luckyValue", "luckyDelta", "lucky_value"))
    points: int = Field(0, validation_alias=AliasChoices("points", "pointsAwarded"))


class QuestionResults(Event):
    event: ClassVar[str] = "question-results"
    correct_answer_index: int = Field(alias="correctAnswerIndex")
    results: List[PlayerResult] = []
    player_scores: List[PlayerInfo] = Field([], alias="playerScores")

    def result_for(self, player_id: Optional[str]) -> Optional[PlayerResult]:
        if not player_id:
            return None
        for result in self.results:
            if result.player_id == player_id:
                return result
        return None


class QuestionFeedback(Event):
    event: ClassVar[str] = "question-feedback"
    message: str = ""


class GameEnded(Event):
    event: ClassVar[str] = "game-ended"
    winner: Optional[PlayerInfo] = None
    leaderboard: List[PlayerInfo] = []


class ReturnToSetup(Event):
    event: ClassVar[str] = "return-to-setup"


class LeftRoom(Event):
    event: ClassVar[str] = "left-room"


class ErrorNotice(Event):
    event: ClassVar[str] = "error"
    message: str = "An error occurred"

    @classmethod
    def from_payload(cls, data: Any):
        if isinstance(data, str) and data:
            data = {"message": data}
        elif isinstance(data, dict) and not data.get("message"):
            data = {}
        return super().from_payload(data)


INBOUND_EVENTS: Dict[str, Type[Event]] = {
    cls.event: cls
    for cls in (
        RoomCreated, RoomJoined, LobbyState, PlayerListUpdated, PlayerJoined,
        PlayerLeft, SettingsUpdated, GameStarted, NewQuestion, AnswerSubmitted,
        QuestionResults, QuestionFeedback, GameEnded, ReturnToSetup, LeftRoom,
        ErrorNotice,
    )
}


def parse_event(event: str, data: Any) -> Optional[Event]:
    """Parse a raw inbound payload into its typed model, or None if malformed."""
    model = INBOUND_EVENTS.get(event)
    if model is None:
        logger.warning("Unknown inbound event '%s'", event)
        return None
    try:
        return model.from_payload(data)
    except PayloadError as e:
        logger.warning("Malformed '%s' payload dropped: %s", event, e.errors()[:3])
        return None
