"""
model.py

Data models for the race timer client: roster, mode, session, results and
the racer card state machine. Everything here is plain Python so it can be
exercised without a Qt event loop.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Union


class RaceMode(str, Enum):
    RACE = "race"
    LAP = "lap"


class CardState(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    FINISHED = "finished"


class StatusLine(str, Enum):
    IDLE = "IDLE"
    RACING = "RACING"
    STOPPED = "STOPPED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Racer:
    """
    Roster entry as served by ``GET /racers``.
    - id: racer id, unique within the roster
    - name: display name
    """
    id: int
    name: str


@dataclass(frozen=True)
class RaceResult:
    """
    Race-mode result.
    - racer: racer id
    - name: name as reported with the result
    - position: finishing position (1-based, may repeat or skip)
    - time: finishing time in milliseconds
    """
    racer: int
    name: str
    position: int
    time: int


@dataclass(frozen=True)
class LapResult:
    """
    Lap-mode result.
    - racer: racer id
    - name: name as reported with the result
    - lap_time: duration of this lap in milliseconds
    - timestamp: cumulative time at lap completion in milliseconds
    """
    racer: int
    name: str
    lap_time: int
    timestamp: int


Result = Union[RaceResult, LapResult]


@dataclass
class RaceSession:
    active: bool = False
    start_ms: Optional[int] = None

    def begin(self, start_ms: int) -> None:
        self.active = True
        self.start_ms = start_ms

    def end(self) -> None:
        self.active = False
        self.start_ms = None


@dataclass(frozen=True)
class RacerCard:
    state: CardState = CardState.WAITING
    label: str = "Waiting"


WAITING_CARD = RacerCard()
ACTIVE_CARD = RacerCard(CardState.ACTIVE, "Racing")

_CARD_ORDER = {
    CardState.WAITING: 0,
    CardState.ACTIVE: 1,
    CardState.FINISHED: 2,
}


class RacerCards:
    """Per-racer card states. Moves forward only; ``reset`` is the way back."""

    def __init__(self, racer_ids: Iterable[int] = ()):
        self._cards: Dict[int, RacerCard] = {rid: WAITING_CARD for rid in racer_ids}

    def get(self, racer_id: int) -> RacerCard:
        return self._cards.get(racer_id, WAITING_CARD)

    def snapshot(self) -> Dict[int, RacerCard]:
        return dict(self._cards)

    def sync_roster(self, racer_ids: Iterable[int]) -> None:
        """Keep existing card states for known ids, add waiting cards for new ones."""
        self._cards = {rid: self._cards.get(rid, WAITING_CARD) for rid in racer_ids}

    def apply(self, racer_id: int, card: RacerCard) -> bool:
        """Apply *card* if it does not move the racer backwards. Returns True on change."""
        if racer_id not in self._cards:
            return False
        current = self._cards[racer_id]
        if _CARD_ORDER[card.state] < _CARD_ORDER[current.state]:
            return False
        if card == current:
            return False
        self._cards[racer_id] = card
        return True

    def reset(self) -> None:
        for rid in self._cards:
            self._cards[rid] = WAITING_CARD


@dataclass
class RaceModel:
    """
    The one mutable state struct of the client. Only the controller mutates it,
    always from the Qt event loop.
    """
    mode: RaceMode = RaceMode.RACE
    racers: List[Racer] = field(default_factory=list)
    session: RaceSession = field(default_factory=RaceSession)
    cards: RacerCards = field(default_factory=RacerCards)
    results: Sequence[Result] = ()
    status: StatusLine = StatusLine.IDLE
    connected: Optional[bool] = None
    last_update: str = ""

    def racer_ids(self) -> List[int]:
        return [r.id for r in self.racers]
