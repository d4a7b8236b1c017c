"""
Integration tests over a real Socket.IO transport.

A small python-socketio server (mounted on FastAPI, served by uvicorn on an
OS-assigned port) plays the trivia server's part: it answers create-room,
echoes every rejoin with a lobby-state and records what each connection sent.

Requires: pytest-asyncio, fastapi, uvicorn, websockets
"""
import sys
import os
import asyncio

import pytest
import pytest_asyncio

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import socketio
import uvicorn
from fastapi import FastAPI

from connection import ConnectionManager
from context import Navigator, PageContext
from landing import LandingPage
from mocks import RecordingView, make_store, question_payload
from question_cycle import CycleState, QuestionCycle
from scoreboard import ScoreAggregator
from session import Session, SessionIdentity
from timer_sync import TimerSync
from utils import now_ms
from wagers import WagerTracker

RECORDED_EVENTS = (
    "create-room", "join-room", "host-rejoin", "player-rejoin", "get-lobby-state",
    "select-points", "submit-answer", "leave-room",
)


# ---------------------------------------------------------------------------
# Fake trivia server
# ---------------------------------------------------------------------------

class FakeTriviaServer:
    def __init__(self):
        self.sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")
        self.api = FastAPI()
        self.app = socketio.ASGIApp(self.sio, other_asgi_app=self.api)
        self.received: list[tuple[str, str, object]] = []
        for event in RECORDED_EVENTS:
            self.sio.on(event, self._recorder(event))

    def _recorder(self, event):
        async def handler(sid, data=None):
            self.received.append((sid, event, data))
            await self.respond(sid, event, data or {})
        return handler

    async def respond(self, sid, event, data):
        if event == "create-room":
            await self.sio.emit("room-created", {"roomCode": "ABC123", "role": "HOST"}, to=sid)
        elif event in ("host-rejoin", "player-rejoin", "get-lobby-state"):
            await self.sio.emit("lobby-state", {
                "roomCode": data.get("roomCode", ""),
                "players": [{"socketId": sid, "username": data.get("username", ""),
                             "isHost": event == "host-rejoin"}],
                "totalRounds": 10,
            }, to=sid)

    def events_from(self, sid) -> list[str]:
        return [event for s, event, _ in self.received if s == sid]

    def payload(self, sid, event):
        for s, e, data in self.received:
            if s == sid and e == event:
                return data
        return None


@pytest_asyncio.fixture
async def trivia_server():
    """Start the fake server on a random port, yield (server, url), shut down."""
    server = FakeTriviaServer()
    config = uvicorn.Config(server.app, host="127.0.0.1", port=0, log_level="warning")
    uv = uvicorn.Server(config)
    serve_task = asyncio.create_task(uv.serve())

    while not uv.started:
        await asyncio.sleep(0.01)

    port = uv.servers[0].sockets[0].getsockname()[1]
    yield server, f"http://127.0.0.1:{port}"

    uv.should_exit = True
    await serve_task


async def wait_until(predicate, timeout=5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.02)


def make_ctx(store, url) -> PageContext:
    session = Session(store)
    return PageContext(
        session=session,
        connection=ConnectionManager(session, url),
        view=RecordingView(),
        navigator=Navigator(),
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestRealTransport:
    @pytest.mark.asyncio
    async def test_create_room_then_rejoin_on_next_page(self, trivia_server, tmp_path):
        server, url = trivia_server
        store = make_store(tmp_path)

        landing_ctx = make_ctx(store, url)
        landing = LandingPage(landing_ctx)
        await landing_ctx.connection.connect()
        await landing_ctx.connection.await_ready()
        assert await landing.create_room("Hosty")
        assert landing_ctx.navigator.destination == "lobby"
        await landing_ctx.connection.dispose()

        assert store.load_identity() == SessionIdentity("ABC123", "Hosty", True)

        lobby_ctx = make_ctx(store, url)
        received = []
        lobby_ctx.connection.subscribe("lobby-state", received.append)
        await lobby_ctx.connection.connect()
        await lobby_ctx.connection.await_ready()
        sid = lobby_ctx.connection.sid

        await wait_until(lambda: received)
        assert server.events_from(sid)[0] == "host-rejoin"
        assert server.payload(sid, "host-rejoin") == {"roomCode": "ABC123", "username": "Hosty"}
        assert received[0].players[0].is_host
        await lobby_ctx.connection.dispose()

    @pytest.mark.asyncio
    async def test_round_over_the_wire(self, trivia_server, tmp_path):
        server, url = trivia_server
        store = make_store(tmp_path, SessionIdentity("ABC123", "Player", False))
        ctx = make_ctx(store, url)
        timer = TimerSync(tick_interval=0.05)
        cycle = QuestionCycle(
            ctx, WagerTracker(store), timer,
            ScoreAggregator(own_id=lambda: ctx.connection.sid),
        )
        cycle.attach()
        await ctx.connection.connect()
        await ctx.connection.await_ready()
        sid = ctx.connection.sid

        await server.sio.emit("new-question", question_payload(start=now_ms(), time_limit=30), to=sid)
        await wait_until(lambda: cycle.state is CycleState.AWAITING_WAGER)

        assert cycle.select_wager(7)
        assert await cycle.confirm_wager()
        assert await cycle.select_answer(2)
        await wait_until(lambda: len(server.events_from(sid)) >= 3)

        assert server.events_from(sid) == ["player-rejoin", "select-points", "submit-answer"]
        assert server.payload(sid, "select-points") == {"roomCode": "ABC123", "points": 7}
        submitted = server.payload(sid, "submit-answer")
        assert submitted["answerIndex"] == 2
        assert 0 <= submitted["timeElapsed"] < 30

        await server.sio.emit("question-results", {
            "correctAnswerIndex": 2,
            "results": [{"socketId": sid, "username": "Player", "answerIndex": 2,
                         "isCorrect": True, "wager": 7, "points": 70}],
            "playerScores": [{"socketId": sid, "username": "Player", "score": 70}],
        }, to=sid)
        await wait_until(lambda: cycle.last_outcome is not None)

        assert cycle.last_outcome.message == "Correct! +70 points (wagered 7)"
        assert cycle.scores.current_score() == 70
        assert not timer.running

        cycle.dispose()
        ctx.navigator.cancel()
        await ctx.connection.dispose()
