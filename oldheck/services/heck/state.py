from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .scoring import assign_suit, calculate_max_rounds

# "Not yet entered" marker for bid and tricks
UNSET = -1


class _Delete:
    def __repr__(self):
        return 'DELETE'


# Patch value that removes a field from the stored document
DELETE = _Delete()


class Phase(str, Enum):
    BIDDING = 'bidding'
    RESULTS = 'results'
    COMPLETED = 'completed'


class BiddingPhase(str, Enum):
    BLIND_DECLARATION = 'blind-declaration-and-entry'
    REGULAR_BID_ENTRY = 'regular-bid-entry'


class GameStatus(str, Enum):
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'


@dataclass
class PlayerScore:
    name: str
    suit: str
    bid: int = UNSET
    tricks: int = UNSET
    met: bool = False
    score: int = 0
    blind_bid: bool = False

    @property
    def has_bid(self) -> bool:
        return self.bid >= 0

    @property
    def has_result(self) -> bool:
        return self.tricks >= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'suit': self.suit,
            'bid': self.bid,
            'tricks': self.tricks,
            'met': self.met,
            'score': self.score,
            'blind_bid': self.blind_bid,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PlayerScore':
        return cls(
            name=data['name'],
            suit=data.get('suit') or '',
            bid=int(data.get('bid', UNSET)),
            tricks=int(data.get('tricks', UNSET)),
            met=bool(data.get('met', False)),
            score=int(data.get('score', 0)),
            blind_bid=bool(data.get('blind_bid', False)),
        )


@dataclass
class Round:
    round_number: int
    first_bidder_index: int
    scores: List[PlayerScore] = field(default_factory=list)

    @property
    def tricks_available(self) -> int:
        # Round n deals n cards to every player
        return self.round_number

    @property
    def blind_decisions(self) -> List[bool]:
        return [ps.blind_bid for ps in self.scores]

    @property
    def all_results_recorded(self) -> bool:
        return all(ps.has_result for ps in self.scores)

    def copy(self) -> 'Round':
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'round_number': self.round_number,
            'first_bidder_index': self.first_bidder_index,
            'scores': [ps.to_dict() for ps in self.scores],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Round':
        return cls(
            round_number=int(data['round_number']),
            first_bidder_index=int(data.get('first_bidder_index', 0)),
            scores=[PlayerScore.from_dict(s) for s in data.get('scores', [])],
        )


@dataclass(frozen=True)
class GameSetup:
    players: tuple
    decks: int
    max_rounds: int
    first_player_index: int = 0

    @classmethod
    def build(cls, players: List[str], decks: int = 1, first_player_index: int = 0) -> 'GameSetup':
        return cls(
            players=tuple(players),
            decks=decks,
            max_rounds=calculate_max_rounds(decks, len(players)),
            first_player_index=first_player_index,
        )

    @property
    def player_count(self) -> int:
        return len(self.players)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'players': list(self.players),
            'decks': self.decks,
            'max_rounds': self.max_rounds,
            'first_player_index': self.first_player_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameSetup':
        players = list(data['players'])
        decks = int(data.get('decks', 1))
        return cls(
            players=tuple(players),
            decks=decks,
            max_rounds=int(data.get('max_rounds') or calculate_max_rounds(decks, len(players))),
            first_player_index=int(data.get('first_player_index', 0)),
        )


def new_round(setup: GameSetup, round_number: int, first_bidder_index: int) -> Round:
    """A fresh round with every seat unset and suits dealt round-robin."""
    return Round(
        round_number=round_number,
        first_bidder_index=first_bidder_index % setup.player_count,
        scores=[PlayerScore(name=name, suit=assign_suit(i)) for i, name in enumerate(setup.players)],
    )


@dataclass
class Game:
    setup: GameSetup
    rounds: List[Round] = field(default_factory=list)
    in_progress_round: Optional[Round] = None
    current_phase: Optional[Phase] = None
    bidding_phase: Optional[BiddingPhase] = None
    status: GameStatus = GameStatus.IN_PROGRESS
    id: Optional[str] = None
    created_at: Optional[float] = None
    updated_at: Optional[float] = None
    share_token: Optional[Dict[str, Any]] = None

    @classmethod
    def start(cls, setup: GameSetup) -> 'Game':
        """A new game with round 1 already in the blind declaration step."""
        return cls(
            setup=setup,
            in_progress_round=new_round(setup, 1, setup.first_player_index),
            current_phase=Phase.BIDDING,
            bidding_phase=BiddingPhase.BLIND_DECLARATION,
            created_at=time.time(),
        )

    @property
    def is_completed(self) -> bool:
        return self.status == GameStatus.COMPLETED

    @property
    def next_round_number(self) -> int:
        return len(self.rounds) + 1

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the stored document shape; absent fields are left out."""
        doc: Dict[str, Any] = {
            'setup': self.setup.to_dict(),
            'rounds': [r.to_dict() for r in self.rounds],
            'status': self.status.value,
        }
        if self.in_progress_round is not None:
            doc['in_progress_round'] = self.in_progress_round.to_dict()
        if self.current_phase is not None:
            doc['current_phase'] = self.current_phase.value
        if self.bidding_phase is not None:
            doc['bidding_phase'] = self.bidding_phase.value
        if self.id is not None:
            doc['id'] = self.id
        if self.created_at is not None:
            doc['created_at'] = self.created_at
        if self.updated_at is not None:
            doc['updated_at'] = self.updated_at
        if self.share_token is not None:
            doc['share_token'] = self.share_token
        return doc

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Game':
        ipr = data.get('in_progress_round')
        phase = data.get('current_phase')
        bphase = data.get('bidding_phase')
        return cls(
            setup=GameSetup.from_dict(data['setup']),
            rounds=[Round.from_dict(r) for r in data.get('rounds') or []],
            in_progress_round=Round.from_dict(ipr) if ipr else None,
            current_phase=Phase(phase) if phase else None,
            bidding_phase=BiddingPhase(bphase) if bphase else None,
            status=GameStatus(data.get('status') or GameStatus.IN_PROGRESS.value),
            id=data.get('id'),
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
            share_token=data.get('share_token'),
        )
