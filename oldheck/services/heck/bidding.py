from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Sequence

from .state import PlayerScore, Round


@dataclass(frozen=True)
class ValidationState:
    all_bids_entered: bool
    total_bids: int
    bids_equal_tricks: bool
    can_proceed: bool
    # Only filled in when blind decisions are supplied
    all_blind_bids_entered: Optional[bool] = None
    all_players_blind: Optional[bool] = None
    can_proceed_from_blind_phase: Optional[bool] = None

    def to_dict(self) -> Dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


def ordered_seats(first_bidder: int, player_count: int) -> List[int]:
    """Seats in bidding order, starting at `first_bidder` and wrapping.

    >>> ordered_seats(2, 4)
    [2, 3, 0, 1]
    """
    seats = list(range(player_count))
    return seats[first_bidder:] + seats[:first_bidder]


def next_bidder(
    order: Sequence[int],
    scores: Sequence[PlayerScore],
    blind_decisions: Sequence[bool],
) -> Optional[int]:
    """First seat in `order` that is not blind and has no bid yet, or None."""
    for seat in order:
        if blind_decisions[seat]:
            continue
        if not scores[seat].has_bid:
            return seat
    return None


def filter_non_blind_bidders(order: Sequence[int], scores: Sequence[PlayerScore]) -> List[int]:
    return [seat for seat in order if not scores[seat].blind_bid]


def total_bids(scores: Sequence[PlayerScore]) -> int:
    return sum(ps.bid for ps in scores if ps.bid >= 0)


def validate(
    scores: Sequence[PlayerScore],
    tricks_available: int,
    blind_decisions: Optional[Sequence[bool]] = None,
) -> ValidationState:
    """Derive what the bidding controls may do from the current bids.

    The total of all bids may never equal the tricks available. When every
    player went blind there is no regular bidding left to catch that, so
    the blind step itself must respect it before moving on.
    """
    all_entered = all(ps.bid >= 0 for ps in scores)
    total = total_bids(scores)
    equal = total == tricks_available
    can_proceed = all_entered and not equal

    if blind_decisions is None:
        return ValidationState(all_entered, total, equal, can_proceed)

    all_blind_entered = all(
        scores[i].bid >= 0 for i, is_blind in enumerate(blind_decisions) if is_blind
    )
    all_blind = all(blind_decisions)
    return ValidationState(
        all_bids_entered=all_entered,
        total_bids=total,
        bids_equal_tricks=equal,
        can_proceed=can_proceed,
        all_blind_bids_entered=all_blind_entered,
        all_players_blind=all_blind,
        can_proceed_from_blind_phase=all_blind_entered and (not all_blind or not equal),
    )


def bid_warnings(scores: Sequence[PlayerScore], tricks_available: int) -> Dict[int, str]:
    """Advisory notes for bids above the cards in hand. Never blocks a bid."""
    return {
        i: f"Bid ({ps.bid}) exceeds cards in hand ({tricks_available})"
        for i, ps in enumerate(scores)
        if ps.bid > tricks_available
    }


def bidding_view(round_: Optional[Round]) -> Optional[Dict]:
    if round_ is None:
        return None
    order = ordered_seats(round_.first_bidder_index, len(round_.scores))
    return {
        'ordered_seats': order,
        'blind_bidders': [i for i, ps in enumerate(round_.scores) if ps.blind_bid],
        'non_blind_ordered_seats': filter_non_blind_bidders(order, round_.scores),
        'next_bidder': next_bidder(order, round_.scores, round_.blind_decisions),
        'tricks_available': round_.tricks_available,
        'total_bids': total_bids(round_.scores),
    }
