from dataclasses import dataclass
from typing import List, Optional, Tuple
import json
import logging
import os

import config

logger = logging.getLogger(__name__)


@dataclass
class SessionIdentity:
    room_code: str = ""
    username: str = ""
    is_host: bool = False

    @property
    def is_returning(self) -> bool:
        return bool(self.room_code)


class SessionStore:
    """Durable state that survives a page load, kept in a small JSON file.

    Keys mirror what each page needs on load: the identity, the wager values
    consumed so far this game, and the final standings once a game ends.
    """

    def __init__(self, path: str = ""):
        self.path = path or config.SESSION_FILE

    def _read(self) -> dict:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError):
            logger.warning("Unreadable session file %s, starting fresh", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = self.path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def _update(self, **values):
        data = self._read()
        data.update(values)
        self._write(data)

    def _remove(self, *keys: str):
        data = self._read()
        for key in keys:
            data.pop(key, None)
        self._write(data)

    # --- identity ---

    def load_identity(self) -> SessionIdentity:
        data = self._read()
        return SessionIdentity(
            room_code=data.get("roomCode") or "",
            username=data.get("username") or "",
            is_host=data.get("isHost") is True,
        )

    def save_identity(self, identity: SessionIdentity):
        self._update(roomCode=identity.room_code, username=identity.username, isHost=identity.is_host)

    # --- wagers ---

    def load_used_wagers(self) -> list:
        values = self._read().get("usedWagers", [])
        return values if isinstance(values, list) else []

    def save_used_wagers(self, values: list):
        self._update(usedWagers=list(values))

    def clear_used_wagers(self):
        self._remove("usedWagers")

    # --- final results ---

    def save_final_results(self, leaderboard: List[dict], winner: Optional[dict]):
        self._update(finalLeaderboard=leaderboard, winner=winner)

    def load_final_results(self) -> Tuple[List[dict], Optional[dict]]:
        data = self._read()
        leaderboard = data.get("finalLeaderboard") or []
        winner = data.get("winner")
        return leaderboard, winner if isinstance(winner, dict) else None

    def clear_final_results(self):
        self._remove("finalLeaderboard", "winner")

    def clear(self):
        self._write({})


class Session:
    """Identity of this participant, shared by every page.

    Only server-confirmed events change it; each change is written through to
    the store immediately so the next page load sees it.
    """

    def __init__(self, store: SessionStore):
        self.store = store
        self.identity = store.load_identity()

    def confirm_room(self, room_code: str, username: str, is_host: bool):
        self.identity = SessionIdentity(room_code=room_code, username=username, is_host=is_host)
        self.store.save_identity(self.identity)
        logger.info("Session bound to room %s as '%s' (host=%s)", room_code, username, is_host)

    def set_host(self, is_host: bool):
        if self.identity.is_host == is_host:
            return
        self.identity.is_host = is_host
        self.store.save_identity(self.identity)
        logger.info("Host flag for '%s' is now %s", self.identity.username, is_host)

    def forget(self):
        """Drop everything on an explicit leave or home."""
        self.identity = SessionIdentity()
        self.store.clear()
        logger.info("Session cleared")
