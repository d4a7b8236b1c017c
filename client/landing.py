import logging

import config
from context import Page
from errors import NotReadyError, ServerRejection
from protocol import CreateRoom, JoinRoom

logger = logging.getLogger(__name__)


def validate_username(username: str) -> str:
    """Return an error message, or an empty string if the name is fine."""
    username = username.strip()
    if not username:
        return "Username is required"
    if len(username) < config.MIN_USERNAME_LENGTH:
        return f"Username must be at least {config.MIN_USERNAME_LENGTH} characters"
    if len(username) > config.MAX_USERNAME_LENGTH:
        return f"Username must not exceed {config.MAX_USERNAME_LENGTH} characters"
    return ""


def validate_room_code(code: str) -> str:
    code = code.strip()
    if not code:
        return "Room code is required"
    if len(code) != config.ROOM_CODE_LENGTH:
        return f"Room code must be {config.ROOM_CODE_LENGTH} characters"
    return ""


class LandingPage(Page):
    """Create or join a room. The identity is stored only once the server confirms."""

    name = "landing"

    async def create_room(self, username: str) -> bool:
        username = username.strip()
        error = validate_username(username)
        if error:
            self.view.show_field_error("username", error)
            return False

        self.view.show_loading("Creating room...")
        try:
            reply = await self.connection.request(CreateRoom(username=username), "room-created")
        except (ServerRejection, NotReadyError) as e:
            self.view.hide_loading()
            logger.error("[LANDING] Error during room operation: %s", e)
            self.view.show_field_error("username", str(e))
            return False

        self.view.hide_loading()
        self.session.confirm_room(reply.room_code, username, is_host=True)
        logger.info("[LANDING] Room created: %s", reply.room_code)
        self.navigator.navigate_to("lobby")
        return True

    async def join_room(self, username: str, room_code: str) -> bool:
        username = username.strip()
        room_code = room_code.strip().upper()
        error = validate_username(username)
        if error:
            self.view.show_field_error("username", error)
            return False
        error = validate_room_code(room_code)
        if error:
            self.view.show_field_error("roomCode", error)
            return False

        self.view.show_loading("Joining room...")
        try:
            reply = await self.connection.request(JoinRoom(username=username, room_code=room_code), "room-joined")
        except (ServerRejection, NotReadyError) as e:
            self.view.hide_loading()
            logger.error("[LANDING] Error during room operation: %s", e)
            self.view.show_field_error("roomCode", str(e))
            return False

        self.view.hide_loading()
        self.session.confirm_room(reply.room_code, username, is_host=reply.role == "HOST")
        logger.info("[LANDING] Joined room: %s, role: %s", reply.room_code, reply.role)
        self.navigator.navigate_to("lobby")
        return True
