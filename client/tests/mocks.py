"""Shared test doubles: a fake Socket.IO client, a recording view, a fake clock."""
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import socketio

from connection import ConnectionManager
from context import Navigator, PageContext
from session import Session, SessionIdentity, SessionStore
from views import View

T0 = 1_700_000_000_000.0  # server epoch ms used as "now" in most tests


class MockSocketClient:
    """Lightweight stand-in for socketio.AsyncClient.

    Records emitted events, lets a test push server events, and can answer a
    command with a canned reply the way the server would.
    """

    def __init__(self, sid: str = "sid-1", fail: bool = False):
        self.handlers: dict = {}
        self.emitted: list[tuple[str, dict]] = []
        self.sid = sid
        self.fail = fail
        self.connected = False
        self.connect_calls = 0
        self.replies: dict = {}

    def on(self, event, handler=None):
        self.handlers[event] = handler

    def get_sid(self, namespace="/"):
        return self.sid if self.connected else None

    async def connect(self, url, **kwargs):
        self.connect_calls += 1
        if self.fail:
            raise socketio.exceptions.ConnectionError("Connection refused")
        self.connected = True
        await self.handlers["connect"]()

    async def disconnect(self):
        if not self.connected:
            return
        self.connected = False
        await self.handlers["disconnect"]()

    async def drop(self):
        """The server side went away."""
        await self.disconnect()

    async def emit(self, event, data=None):
        self.emitted.append((event, data))
        if event in self.replies:
            reply_event, reply_data = self.replies[event]
            await self.push(reply_event, reply_data)

    def reply(self, command_event: str, reply_event: str, data=None):
        self.replies[command_event] = (reply_event, data)

    async def push(self, event, data=None):
        handler = self.handlers.get(event)
        if handler is None:
            return
        if data is None:
            await handler()
        else:
            await handler(data)

    def events(self) -> list[str]:
        return [e for e, _ in self.emitted]

    def all(self, event: str) -> list:
        return [d for e, d in self.emitted if e == event]

    def last(self, event: str):
        found = self.all(event)
        return found[-1] if found else None


class SilentSocketClient(MockSocketClient):
    """Transport opens but the connect acknowledgement never arrives."""

    async def connect(self, url, **kwargs):
        self.connect_calls += 1
        self.connected = True


RECORDED_HOOKS = [
    "show_error", "show_connection_error", "show_status", "show_loading", "hide_loading",
    "show_field_error", "show_room", "show_players", "show_settings", "set_start_loading",
    "show_question", "show_wager_choices", "set_wager_visible", "set_answers_enabled",
    "show_timer", "show_score", "show_scoreboard", "show_result", "hide_result",
    "show_feedback", "hide_feedback", "show_final_results", "set_play_again_enabled",
]


class RecordingView(View):
    def __init__(self):
        super().__init__()
        self.calls: list[tuple] = []
        self.loaded: list[str] = []

    def page_loaded(self, name):
        self.loaded.append(name)

    def named(self, hook: str) -> list[tuple]:
        return [args for name, args in self.calls if name == hook]

    def last(self, hook: str):
        found = self.named(hook)
        return found[-1] if found else None


def _recorder(hook):
    def record(self, *args):
        self.calls.append((hook, args))
    record.__name__ = hook
    return record


for _hook in RECORDED_HOOKS:
    setattr(RecordingView, _hook, _recorder(_hook))


class FakeClock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds * 1000


def make_store(tmp_path, identity: SessionIdentity = None) -> SessionStore:
    store = SessionStore(str(tmp_path / "session.json"))
    if identity is not None:
        store.save_identity(identity)
    return store


def make_context(tmp_path, identity: SessionIdentity = None, client: MockSocketClient = None, view=None):
    """Build a page context around a mock channel. Needs a running event loop."""
    store = make_store(tmp_path, identity)
    session = Session(store)
    client = client or MockSocketClient()
    connection = ConnectionManager(session, "http://trivia.test", client=client)
    ctx = PageContext(session=session, connection=connection, view=view or RecordingView(), navigator=Navigator())
    return ctx, client


def question_payload(number=1, total=5, time_limit=30, start=T0, category="Science"):
    return {
        "questionNumber": number,
        "totalQuestions": total,
        "category": category,
        "questionText": f"Question {number}?",
        "answers": ["Alpha", "Bravo", "Charlie", "Delta"],
        "questionStartTime": start,
        "timeLimit": time_limit,
    }
