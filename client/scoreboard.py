from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple
import logging

from protocol import PlayerInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreEntry:
    player_id: str
    username: str
    score: int


@dataclass(frozen=True)
class ScoreboardRow:
    rank: int
    username: str
    score: int
    is_me: bool


class ScoreAggregator:
    """Live scoreboard rebuilt wholesale from each server score push."""

    def __init__(self, own_id: Callable[[], Optional[str]]):
        self._own_id = own_id
        self._entries: Tuple[ScoreEntry, ...] = ()
        self._score = 0

    @property
    def entries(self) -> Tuple[ScoreEntry, ...]:
        return self._entries

    def apply_score_snapshot(self, per_player: Sequence[PlayerInfo]):
        # sorted() is stable, so tied players keep the server's order
        ranked = sorted(per_player, key=lambda p: p.score, reverse=True)
        self._entries = tuple(ScoreEntry(p.player_id, p.username, p.score) for p in ranked)

        me = self._own_id()
        for entry in self._entries:
            if me and entry.player_id == me:
                self._score = entry.score
                break
        else:
            logger.debug("Own id %s not in score snapshot, keeping %d", me, self._score)

    def current_score(self) -> int:
        return self._score

    def rows(self) -> List[ScoreboardRow]:
        me = self._own_id()
        return [
            ScoreboardRow(rank=i + 1, username=e.username, score=e.score, is_me=bool(me) and e.player_id == me)
            for i, e in enumerate(self._entries)
        ]
