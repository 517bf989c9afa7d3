from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from .scoring import score
from .state import DELETE, UNSET, BiddingPhase, Game, GameStatus, Phase, new_round
from .timers import TimerHandle, cancel


class RoundLifecycleController:
    """Moves the in-flight round through bidding, results and sealing.

    Sealing copies the round onto the completed list; that copy is never
    touched again. After sealing either the game completes (next round would
    pass max_rounds) or, after a short pause, the next round starts with the
    first bidder moved one seat on.
    """

    def __init__(self, game: Game, push: Callable[[Dict], None],
                 call_later: Callable[..., TimerHandle],
                 auto_complete_delay: float = 1.5,
                 next_round_delay: float = 0.5,
                 logger: Optional[logging.Logger] = None):
        self.game = game
        self._push = push
        self._call_later = call_later
        self._auto_complete_delay = auto_complete_delay
        self._next_round_delay = next_round_delay
        self._auto_complete_timer: Optional[TimerHandle] = None
        self._next_round_timer: Optional[TimerHandle] = None
        self.logger = logger or logging.getLogger(__name__)

    @property
    def auto_complete_timer(self) -> Optional[TimerHandle]:
        return self._auto_complete_timer

    @property
    def next_round_timer(self) -> Optional[TimerHandle]:
        return self._next_round_timer

    @property
    def can_complete(self) -> bool:
        r = self.game.in_progress_round
        return (
            r is not None
            and self.game.current_phase == Phase.RESULTS
            and r.all_results_recorded
        )

    def begin_results(self) -> None:
        r = self.game.in_progress_round
        if r is None:
            return
        for ps in r.scores:
            ps.tricks = UNSET
            ps.met = False
            ps.score = 0
        self.logger.info(f"[results] game={self.game.id} round={r.round_number}")
        self._push({
            'in_progress_round': r,
            'current_phase': Phase.RESULTS,
            'bidding_phase': DELETE,
        })

    def record_result(self, seat: int, made: bool) -> None:
        r = self.game.in_progress_round
        if r is None:
            return
        ps = r.scores[seat]
        # Only made/missed is tracked; tricks always mirrors the bid
        ps.tricks = ps.bid
        ps.met = made
        ps.score = score(ps.bid, made, ps.blind_bid)
        self.logger.info(
            f"[result] game={self.game.id} round={r.round_number} seat={seat} made={made} score={ps.score}"
        )
        self._push({'in_progress_round': r})
        if r.all_results_recorded:
            cancel(self._auto_complete_timer)
            self._auto_complete_timer = self._call_later(
                self._auto_complete_delay,
                lambda: self._auto_complete(r.round_number),
                f"auto-complete game={self.game.id} round={r.round_number}",
            )

    def _auto_complete(self, round_number: int) -> None:
        self._auto_complete_timer = None
        r = self.game.in_progress_round
        if r is None or r.round_number != round_number or not self.can_complete:
            self.logger.info(f"[timer-abort] game={self.game.id} round={round_number} no longer completable")
            return
        self._seal()

    def complete_now(self) -> bool:
        """Seal immediately, skipping the auto-complete wait."""
        if not self.can_complete:
            return False
        cancel(self._auto_complete_timer)
        self._auto_complete_timer = None
        self._seal()
        return True

    def _seal(self) -> None:
        r = self.game.in_progress_round
        sealed = r.copy()
        rounds = [*self.game.rounds, sealed]
        next_number = sealed.round_number + 1
        fields = {
            'rounds': rounds,
            'in_progress_round': DELETE,
            'current_phase': Phase.COMPLETED,
            'bidding_phase': DELETE,
        }
        if next_number > self.game.setup.max_rounds:
            fields['status'] = GameStatus.COMPLETED
            self.logger.info(f"[game-complete] game={self.game.id} rounds={len(rounds)}")
            self._push(fields)
            return
        self.logger.info(f"[round-sealed] game={self.game.id} round={sealed.round_number}")
        self._push(fields)
        next_first = (sealed.first_bidder_index + 1) % self.game.setup.player_count
        cancel(self._next_round_timer)
        self._next_round_timer = self._call_later(
            self._next_round_delay,
            lambda: self._start_round(next_number, next_first),
            f"next-round game={self.game.id} round={next_number}",
        )

    def _start_round(self, round_number: int, first_bidder_index: int) -> None:
        self._next_round_timer = None
        g = self.game
        if g.is_completed or g.in_progress_round is not None or g.next_round_number != round_number:
            self.logger.info(f"[timer-abort] game={g.id} round={round_number} already started or game over")
            return
        r = new_round(g.setup, round_number, first_bidder_index)
        self.logger.info(f"[next_round] game={g.id} round={round_number} first_bidder={r.first_bidder_index}")
        self._push({
            'in_progress_round': r,
            'current_phase': Phase.BIDDING,
            'bidding_phase': BiddingPhase.BLIND_DECLARATION,
        })

    def end_game(self) -> None:
        """Finish early; the in-flight round is dropped, not sealed."""
        self.dispose()
        self.logger.info(f"[finish] game={self.game.id} ended early after {len(self.game.rounds)} rounds")
        self._push({
            'in_progress_round': DELETE,
            'current_phase': Phase.COMPLETED,
            'bidding_phase': DELETE,
            'status': GameStatus.COMPLETED,
        })

    def apply_remote(self, game: Game) -> None:
        self.game = game
        if game.is_completed:
            self.dispose()

    def dispose(self) -> None:
        cancel(self._auto_complete_timer)
        cancel(self._next_round_timer)
        self._auto_complete_timer = None
        self._next_round_timer = None
