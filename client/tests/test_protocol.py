"""
Unit tests for protocol.py: outbound payload shapes and tolerant parsing of
inbound events.
"""
import sys
import os

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from mocks import question_payload
from protocol import (
    ErrorNotice, HostRejoin, JoinRoom, LobbyState, NewQuestion, PlayerLeft,
    PlayerListUpdated, QuestionResults, SelectPoints, SubmitAnswer, parse_event,
)


# ---------------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------------

class TestCommands:
    def test_event_names(self):
        assert HostRejoin.event == "host-rejoin"
        assert SubmitAnswer.event == "submit-answer"

    def test_camel_case_payloads(self):
        assert JoinRoom(username="Al", room_code="ABC123").to_payload() == {"username": "Al", "roomCode": "ABC123"}
        assert SubmitAnswer(room_code="ABC123", answer_index=2, time_elapsed=4.5).to_payload() == {
            "roomCode": "ABC123", "answerIndex": 2, "timeElapsed": 4.5,
        }

    @pytest.mark.parametrize("points", [7, "?", None])
    def test_select_points_values(self, points):
        assert SelectPoints(room_code="ABC123", points=points).to_payload() == {"roomCode": "ABC123", "points": points}


# ---------------------------------------------------------------------------
# Inbound
# ---------------------------------------------------------------------------

class TestParseEvent:
    def test_new_question(self):
        event = parse_event("new-question", question_payload(number=3, time_limit=20))
        assert isinstance(event, NewQuestion)
        assert event.question_number == 3
        assert event.time_limit == 20
        assert len(event.answers) == 4

    def test_new_question_needs_four_answers(self):
        payload = question_payload()
        payload["answers"] = ["only", "three", "here"]
        assert parse_event("new-question", payload) is None

    def test_missing_required_field_is_dropped(self):
        payload = question_payload()
        del payload["questionStartTime"]
        assert parse_event("new-question", payload) is None

    def test_unknown_event(self):
        assert parse_event("not-an-event", {}) is None

    def test_extra_fields_ignored(self):
        event = parse_event("lobby-state", {"roomCode": "ABC123", "players": [], "debug": True})
        assert isinstance(event, LobbyState)

    def test_player_ids_from_socket_id(self):
        event = parse_event("lobby-state", {
            "roomCode": "ABC123",
            "players": [{"socketId": "s1", "username": "Ann", "isHost": True}],
            "totalRounds": 10,
        })
        assert event.players[0].player_id == "s1"
        assert event.players[0].is_host
        assert event.total_rounds == 10

    def test_bare_player_list(self):
        event = parse_event("player-list-updated", [{"id": "s1", "username": "Ann"}])
        assert isinstance(event, PlayerListUpdated)
        assert event.players[0].username == "Ann"

    def test_player_left_with_new_host(self):
        event = parse_event("player-left", {"newHost": {"id": "s2", "username": "Bob"}, "message": "Ann left"})
        assert isinstance(event, PlayerLeft)
        assert event.new_host.player_id == "s2"
        assert event.players is None

    def test_results_lookup(self):
        event = parse_event("question-results", {
            "correctAnswerIndex": 1,
            "results": [
                {"socketId": "s1", "username": "Ann", "answerIndex": 1, "isCorrect": True,
                 "wager": "?", "luckyValue": 4, "pointsAwarded": 80},
                {"socketId": "s2", "username": "Bob", "answerIndex": 0, "isCorrect": False, "wager": 3},
            ],
            "playerScores": [{"socketId": "s1", "username": "Ann", "score": 80}],
        })
        assert isinstance(event, QuestionResults)
        mine = event.result_for("s1")
        assert mine.points == 80
        assert mine.lucky_value == 4
        assert event.result_for("s3") is None
        assert event.result_for(None) is None

    @pytest.mark.parametrize("payload,message", [
        ({"message": "Room not found"}, "Room not found"),
        ("Game already started", "Game already started"),
        ({}, "An error occurred"),
        (None, "An error occurred"),
    ])
    def test_error_notice(self, payload, message):
        event = parse_event("error", payload)
        assert isinstance(event, ErrorNotice)
        assert event.message == message

    def test_payloadless_event(self):
        assert parse_event("game-started", None) is not None
