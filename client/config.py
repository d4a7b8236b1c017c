"""Client configuration: every tunable and env var the client reads."""
import os
import logging
from dotenv import load_dotenv

load_dotenv()

# --- Server ---
SERVER_URL = os.getenv("TRIVIA_SERVER_URL", "http://localhost:3000")
SOCKETIO_PATH = os.getenv("SOCKETIO_PATH", "socket.io")
CONNECT_TIMEOUT = float(os.getenv("CONNECT_TIMEOUT", "5"))

# --- Session persistence ---
SESSION_FILE = os.getenv(
    "SESSION_FILE", os.path.join(os.path.expanduser("~"), ".trivia_client", "session.json")
)

# --- Readiness ---
READY_MAX_ATTEMPTS = 50
READY_INTERVAL = 0.1  # seconds
LOBBY_STATE_TIMEOUT = float(os.getenv("LOBBY_STATE_TIMEOUT", "5"))  # stall window after rejoin

# --- Timer ---
TIMER_TICK_INTERVAL = 0.1  # seconds of wall time between countdown ticks
TIMER_WARNING_SECONDS = 5

# --- Wagers ---
MIN_WAGER = 1
MAX_WAGER = 25
LUCKY_WAGER = "?"
FORCED_WAGER = 1
FORCED_ANSWER_INDEX = 0
WAGER_SETTLE_DELAY = 0.2  # seconds between forced wager and forced answer
NUM_OPTIONS = 4

# --- Display windows (seconds) ---
RESULTS_DISPLAY_SECONDS = 3
FEEDBACK_DISPLAY_SECONDS = 5
GAME_START_NAV_DELAY = 1
GAME_END_NAV_DELAY = 2
LEAVE_NAV_DELAY = 0.5
DISCONNECT_REDIRECT_DELAY = 2
PLAY_AGAIN_TIMEOUT = 5

# --- Input ---
MIN_USERNAME_LENGTH = 2
MAX_USERNAME_LENGTH = 20
ROOM_CODE_LENGTH = 6

# --- Auto player ---
AUTO_PLAYER_THINK_SECONDS = float(os.getenv("AUTO_PLAYER_THINK_SECONDS", "1.5"))

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE", "")  # empty = stdout only


def setup_logging(level: str = ""):
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if LOG_FILE:
        handlers.append(logging.FileHandler(LOG_FILE))
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
