from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

from .bidding import ValidationState, bid_warnings, next_bidder, ordered_seats, validate
from .state import UNSET, BiddingPhase, Round
from .timers import TimerHandle, cancel


class BiddingState(str, Enum):
    BLIND_DECLARATION = BiddingPhase.BLIND_DECLARATION.value
    REGULAR_BIDDING = BiddingPhase.REGULAR_BID_ENTRY.value
    COMPLETE = 'complete'


_STATE_FOR_PHASE = {
    BiddingPhase.BLIND_DECLARATION: BiddingState.BLIND_DECLARATION,
    BiddingPhase.REGULAR_BID_ENTRY: BiddingState.REGULAR_BIDDING,
}


class BiddingStateMachine:
    """Two-step bidding for one round: blind declaration, then bids in turn order.

    `round` mirrors the shared document. Blind flags and blind bids are written
    through immediately. Regular bids sit in `overlay` until the advance timer
    fires, so the bidder can fix a typo before anyone else sees it. The overlay
    is dropped whenever the phase changes.

    Guards (`validation()`, `enabled_seats()`) are for the caller; commands do
    not re-check them.
    """

    def __init__(self, round_: Round, phase: Optional[BiddingPhase],
                 push: Callable[[Dict], None],
                 call_later: Callable[..., TimerHandle],
                 on_complete: Callable[[], None],
                 advance_delay: float = 2.0,
                 logger: Optional[logging.Logger] = None,
                 game_id: Optional[str] = None):
        self.round = round_
        self.state = _STATE_FOR_PHASE.get(phase, BiddingState.BLIND_DECLARATION)
        self.overlay: Dict[int, int] = {}
        self.active_seat: Optional[int] = None
        self._push = push
        self._call_later = call_later
        self._on_complete = on_complete
        self._advance_delay = advance_delay
        self._bid_timer: Optional[TimerHandle] = None
        self.logger = logger or logging.getLogger(__name__)
        self.game_id = game_id
        if self.state == BiddingState.REGULAR_BIDDING:
            self.active_seat = self._compute_active_seat()

    # ---- derived state ----

    @property
    def order(self) -> List[int]:
        return ordered_seats(self.round.first_bidder_index, len(self.round.scores))

    @property
    def blind_decisions(self) -> List[bool]:
        return self.round.blind_decisions

    @property
    def bid_timer(self) -> Optional[TimerHandle]:
        return self._bid_timer

    def effective_round(self) -> Round:
        """The mirrored round with this client's uncommitted bids applied."""
        view = self.round.copy()
        for seat, bid in self.overlay.items():
            view.scores[seat].bid = bid
        return view

    def validation(self) -> ValidationState:
        view = self.effective_round()
        blind = self.blind_decisions if self.state == BiddingState.BLIND_DECLARATION else None
        return validate(view.scores, view.tricks_available, blind)

    def warnings(self) -> Dict[int, str]:
        view = self.effective_round()
        return bid_warnings(view.scores, view.tricks_available)

    def enabled_seats(self) -> List[bool]:
        if self.state == BiddingState.BLIND_DECLARATION:
            return [True] * len(self.round.scores)
        if self.state == BiddingState.COMPLETE:
            return [False] * len(self.round.scores)
        return [
            seat == self.active_seat or ps.blind_bid or ps.has_bid
            for seat, ps in enumerate(self.round.scores)
        ]

    def _compute_active_seat(self) -> Optional[int]:
        return next_bidder(self.order, self.round.scores, self.blind_decisions)

    def _log(self, tag: str, **fields) -> None:
        extra = ' '.join(f"{k}={v}" for k, v in fields.items())
        self.logger.info(f"[{tag}] game={self.game_id} round={self.round.round_number} {extra}".rstrip())

    # ---- blind declaration ----

    def toggle_blind(self, seat: int) -> None:
        ps = self.round.scores[seat]
        if ps.blind_bid:
            ps.blind_bid = False
            ps.bid = UNSET
        else:
            ps.blind_bid = True
        self.overlay.pop(seat, None)
        self._log('blind-toggle', seat=seat, blind=ps.blind_bid)
        self._push({'in_progress_round': self.round})

    def set_blind_bid(self, seat: int, bid: int) -> None:
        ps = self.round.scores[seat]
        if not ps.blind_bid:
            self.logger.warning(f"[blind-bid-ignored] game={self.game_id} seat={seat} is not bidding blind")
            return
        ps.bid = bid
        if bid > self.round.tricks_available:
            self._log('bid-warning', seat=seat, bid=bid, cards=self.round.tricks_available)
        self._log('blind-bid', seat=seat, bid=bid)
        self._push({'in_progress_round': self.round})

    def proceed_from_blind_phase(self) -> None:
        v = validate(self.round.scores, self.round.tricks_available, self.blind_decisions)
        self.overlay.clear()
        if v.all_players_blind:
            self._log('bidding-complete', via='all-blind')
            self.state = BiddingState.COMPLETE
            self.active_seat = None
            self._on_complete()
            return
        self.state = BiddingState.REGULAR_BIDDING
        self.active_seat = self._compute_active_seat()
        self._log('phase-change', phase=self.state.value, active=self.active_seat)
        self._push({'bidding_phase': BiddingPhase.REGULAR_BID_ENTRY})

    # ---- regular bidding ----

    def set_regular_bid(self, seat: int, bid: int) -> None:
        self.overlay[seat] = bid
        cancel(self._bid_timer)
        self._bid_timer = self._call_later(self._advance_delay, self._commit_overlay,
                                           f"bid-advance game={self.game_id} seat={seat}")

    def _commit_overlay(self) -> None:
        self._bid_timer = None
        if self.state != BiddingState.REGULAR_BIDDING or not self.overlay:
            return
        for seat, bid in sorted(self.overlay.items()):
            self.round.scores[seat].bid = bid
            self._log('bid-commit', seat=seat, bid=bid)
        self.overlay.clear()
        self._push({'in_progress_round': self.round})
        self.active_seat = self._compute_active_seat()
        self._log('turn', active=self.active_seat)

    def complete(self) -> None:
        """Leave bidding; pending local bids are committed first."""
        cancel(self._bid_timer)
        self._commit_overlay()
        self.state = BiddingState.COMPLETE
        self.active_seat = None
        self._log('bidding-complete', via='regular')
        self._on_complete()

    # ---- remote snapshots ----

    def apply_remote(self, round_: Round, phase: Optional[BiddingPhase]) -> None:
        if [ps.blind_bid for ps in round_.scores] != self.blind_decisions:
            self._log('blind-sync', remote=[ps.blind_bid for ps in round_.scores])
        self.round = round_
        remote_state = _STATE_FOR_PHASE.get(phase)
        if remote_state is not None and remote_state != self.state:
            self._log('phase-sync', local=self.state.value, remote=remote_state.value)
            self.discard_overlay()
            self.state = remote_state
        for seat in list(self.overlay):
            if self.round.scores[seat].blind_bid:
                self.overlay.pop(seat)
        self.active_seat = self._compute_active_seat() if self.state == BiddingState.REGULAR_BIDDING else None

    def discard_overlay(self) -> None:
        cancel(self._bid_timer)
        self._bid_timer = None
        self.overlay.clear()

    def dispose(self) -> None:
        self.discard_overlay()
