from typing import List, Optional, Union
import logging

import config
from errors import ValidationError
from session import SessionStore

logger = logging.getLogger(__name__)

WagerValue = Union[int, str]


def is_legal_wager(value) -> bool:
    """True for an int in [MIN_WAGER, MAX_WAGER] or the lucky sentinel."""
    if value == config.LUCKY_WAGER and isinstance(value, str):
        return True
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and config.MIN_WAGER <= value <= config.MAX_WAGER
    )


class WagerTracker:
    """Use-once bookkeeping for wager values over one game.

    Consumed values only ever grow until ``reset()`` at the start of a new
    game. When a store is given the consumed set is written through on every
    confirmation so a page reload mid-game keeps it.
    """

    def __init__(self, store: Optional[SessionStore] = None):
        self.store = store
        self._used: set = set()
        self._staged = None
        if store is not None:
            self._used = {v for v in store.load_used_wagers() if is_legal_wager(v)}

    @property
    def used(self) -> frozenset:
        return frozenset(self._used)

    @property
    def staged(self) -> Optional[WagerValue]:
        return self._staged

    def offerable_values(self) -> List[WagerValue]:
        values: List[WagerValue] = [
            v for v in range(config.MIN_WAGER, config.MAX_WAGER + 1) if v not in self._used
        ]
        if config.LUCKY_WAGER not in self._used:
            values.append(config.LUCKY_WAGER)
        return values

    def is_offerable(self, value) -> bool:
        return is_legal_wager(value) and value not in self._used

    def select(self, value: Optional[WagerValue]):
        """Stage a choice for this round without consuming it."""
        if is_legal_wager(value) and value in self._used:
            raise ValidationError(f"Wager {value} was already used this game")
        self._staged = value

    def clear_selection(self):
        self._staged = None

    def confirm(self) -> Optional[WagerValue]:
        """Consume the staged value and return it. None means no wager."""
        value = self._staged
        if value is not None and not is_legal_wager(value):
            raise ValidationError(
                f"Invalid wager. Select between {config.MIN_WAGER} and {config.MAX_WAGER} or {config.LUCKY_WAGER}."
            )
        if value is not None and value in self._used:
            raise ValidationError(f"Wager {value} was already used this game")
        self._staged = None
        if value is not None:
            self._consume(value)
        return value

    def force_minimum(self) -> int:
        """Consume the fallback wager used when a round times out unwagered."""
        self._staged = None
        self._consume(config.FORCED_WAGER)
        return config.FORCED_WAGER

    def _consume(self, value: WagerValue):
        self._used.add(value)
        if self.store is not None:
            numbers = sorted(v for v in self._used if isinstance(v, int))
            lucky = [config.LUCKY_WAGER] if config.LUCKY_WAGER in self._used else []
            self.store.save_used_wagers(numbers + lucky)
        logger.info("Wager %s consumed; used so far: %s", value, len(self._used))

    def reset(self):
        self._used.clear()
        self._staged = None
        if self.store is not None:
            self.store.clear_used_wagers()
