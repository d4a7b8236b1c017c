"""Command line entry point: a headless auto-playing trivia client."""
import argparse
import asyncio
import logging
import sys

import config
from app import GameClientApp
from errors import ConnectivityError
from session import SessionStore
from views import AutoPlayerView

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Play a trivia room from the terminal.")
    parser.add_argument("--server", default=config.SERVER_URL, help="trivia server URL")
    parser.add_argument("--name", default="", help="display name (2-20 characters)")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--room", default="", help="room code to join")
    group.add_argument("--create", action="store_true", help="create a new room and host it")
    parser.add_argument("--category", default="", help="question category when hosting")
    parser.add_argument("--min-players", type=int, default=2, help="players needed before the host starts")
    parser.add_argument("--games", type=int, default=1, help="games to play before going home")
    parser.add_argument("--session-file", default=config.SESSION_FILE, help="where the session is stored")
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config.setup_logging(args.log_level)

    store = SessionStore(args.session_file)
    identity = store.load_identity()
    username = args.name or identity.username
    if not username:
        logger.error("A --name is required for a new session")
        return 2
    if not (args.room or args.create or identity.is_returning):
        logger.error("Pass --room CODE or --create, or resume a stored session")
        return 2

    view = AutoPlayerView(
        username,
        room_code=args.room,
        create=args.create,
        category=args.category,
        min_players=args.min_players,
        games=args.games,
    )
    app = GameClientApp(view, store, url=args.server)
    start_page = "landing" if (args.room or args.create) else ""

    try:
        asyncio.run(app.run(start_page))
    except ConnectivityError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
