from __future__ import annotations

import logging
import threading
from collections import deque
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .bidding import bidding_view
from .bidding_machine import BiddingState, BiddingStateMachine
from .rounds import RoundLifecycleController
from .scoring import standings
from .state import DELETE, Game, Phase, Round


class GameNotFoundError(LookupError):
    pass


def encode_field(value: Any) -> Any:
    if value is DELETE:
        return DELETE
    if isinstance(value, Round):
        return value.to_dict()
    if isinstance(value, list):
        return [encode_field(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


class GameSession:
    """One client's view of a shared game.

    Local commands, remote snapshots, subscription errors and timer firings all
    go through a single FIFO inbox and are applied one at a time, so the
    machines never see interleaved updates. A snapshot that is followed by a
    newer one in the inbox is skipped.

    Writes are optimistic: the local mirror changes first, then the store is
    patched. A failed patch is logged and the local state is kept.
    """

    def __init__(self, store, game_id: str, scheduler,
                 bid_advance_delay: float = 2.0,
                 auto_complete_delay: float = 1.5,
                 next_round_delay: float = 0.5,
                 logger: Optional[logging.Logger] = None,
                 on_change: Optional[Callable[[Dict], None]] = None,
                 on_phase_change: Optional[Callable[[Optional[str], Optional[str]], None]] = None):
        self.store = store
        self.game_id = game_id
        self.scheduler = scheduler
        self.bid_advance_delay = bid_advance_delay
        self.auto_complete_delay = auto_complete_delay
        self.next_round_delay = next_round_delay
        self.logger = logger or logging.getLogger(__name__)
        self.on_change = on_change
        self.on_phase_change = on_phase_change

        self.game: Optional[Game] = None
        self.loading = True
        self.error: Optional[str] = None
        self.closed = False
        self.bidding: Optional[BiddingStateMachine] = None
        self.rounds: Optional[RoundLifecycleController] = None

        self._version = -1
        self._inbox: deque = deque()
        self._inbox_lock = threading.Lock()
        self._process_lock = threading.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ---- lifecycle ----

    def open(self) -> 'GameSession':
        self._unsubscribe = self.store.subscribe(self.game_id, self._receive_snapshot, self._receive_error)
        return self

    def close(self) -> None:
        with self._process_lock:
            self.closed = True
            if self._unsubscribe:
                self._unsubscribe()
                self._unsubscribe = None
            self._dispose_machines()
            with self._inbox_lock:
                self._inbox.clear()

    # ---- inbox ----

    def _receive_snapshot(self, game: Game, version: int = 0) -> None:
        self.post('snapshot', game, version)

    def _receive_error(self, exc: Exception) -> None:
        self.post('error', exc)

    def post(self, kind: str, *args) -> None:
        """Queue an event and drain the inbox unless another caller already is.

        Whoever holds the processing lock drains events queued by anyone
        else, including events queued from inside a handler.
        """
        if self.closed:
            return
        with self._inbox_lock:
            self._inbox.append((kind, args))
        while True:
            if not self._process_lock.acquire(blocking=False):
                return
            try:
                before = self._phase_key()
                self._drain()
                view = self.view()
                after = self._phase_key()
            finally:
                self._process_lock.release()
            if self.on_phase_change and after != before:
                self.on_phase_change(*after)
            if self.on_change:
                self.on_change(view)
            with self._inbox_lock:
                if not self._inbox or self.closed:
                    return

    def _next_event(self):
        with self._inbox_lock:
            if not self._inbox:
                return None
            kind, args = self._inbox.popleft()
            if kind == 'snapshot' and any(k == 'snapshot' for k, _ in self._inbox):
                return 'skip', ()
            return kind, args

    def _drain(self) -> None:
        while not self.closed:
            event = self._next_event()
            if event is None:
                return
            kind, args = event
            if kind != 'skip':
                self._dispatch(kind, args)

    def _dispatch(self, kind: str, args) -> None:
        if kind == 'snapshot':
            self._apply_snapshot(*args)
        elif kind == 'error':
            self._apply_error(*args)
        elif kind == 'timer':
            handle, callback = args
            if handle.cancelled:
                return
            callback()
            self._sync_machines()
        elif kind == 'command':
            name, kwargs = args
            getattr(self, f"_cmd_{name}")(**kwargs)
            self._sync_machines()
        else:
            raise ValueError(f"unknown event {kind}")

    def _call_later(self, delay: float, callback: Callable[[], None], label: str = ''):
        holder = {}

        def fire():
            self.post('timer', holder['handle'], callback)

        holder['handle'] = self.scheduler.call_later(delay, fire, label)
        return holder['handle']

    # ---- remote state ----

    def _apply_snapshot(self, game: Game, version: int = 0) -> None:
        if version < self._version:
            self.logger.debug(f"[snapshot-stale] game={self.game_id} version={version} seen={self._version}")
            return
        self._version = version
        self.loading = False
        self.error = None
        self.game = game
        if self.rounds is None:
            self.rounds = RoundLifecycleController(
                game, self._push, self._call_later,
                auto_complete_delay=self.auto_complete_delay,
                next_round_delay=self.next_round_delay,
                logger=self.logger,
            )
        else:
            self.rounds.apply_remote(game)
        self._sync_machines()

    def _apply_error(self, exc: Exception) -> None:
        self.loading = False
        if isinstance(exc, GameNotFoundError):
            self.error = 'Game not found'
        else:
            self.logger.error(f"[subscribe-failed] game={self.game_id} error={exc!r}")
            self.error = 'Failed to load game'
        self._dispose_machines()

    def _sync_machines(self) -> None:
        """Make the bidding machine follow whatever round/phase the mirror holds."""
        game = self.game
        if game is None:
            return
        r = game.in_progress_round
        if game.current_phase != Phase.BIDDING or r is None or game.is_completed:
            if self.bidding is not None:
                self.bidding.dispose()
                self.bidding = None
            return
        b = self.bidding
        if b is None or b.round.round_number != r.round_number or b.state == BiddingState.COMPLETE:
            if b is not None:
                b.dispose()
            self.bidding = BiddingStateMachine(
                r, game.bidding_phase, self._push, self._call_later,
                on_complete=self._bidding_complete,
                advance_delay=self.bid_advance_delay,
                logger=self.logger,
                game_id=self.game_id,
            )
        else:
            b.apply_remote(r, game.bidding_phase)

    def _dispose_machines(self) -> None:
        if self.bidding is not None:
            self.bidding.dispose()
            self.bidding = None
        if self.rounds is not None:
            self.rounds.dispose()

    def _bidding_complete(self) -> None:
        self.rounds.begin_results()

    # ---- writes ----

    def _push(self, fields: Dict[str, Any]) -> None:
        for key, value in fields.items():
            setattr(self.game, key, None if value is DELETE else value)
        doc = {key: encode_field(value) for key, value in fields.items()}
        try:
            self.store.patch(self.game_id, doc)
        except Exception:
            self.logger.exception(f"[patch-failed] game={self.game_id} fields={sorted(fields)}")

    # ---- commands ----

    def toggle_blind(self, seat: int) -> None:
        self.post('command', 'toggle_blind', {'seat': seat})

    def set_blind_bid(self, seat: int, bid: int) -> None:
        self.post('command', 'set_blind_bid', {'seat': seat, 'bid': bid})

    def proceed_from_blind_phase(self) -> None:
        self.post('command', 'proceed_from_blind_phase', {})

    def set_regular_bid(self, seat: int, bid: int) -> None:
        self.post('command', 'set_regular_bid', {'seat': seat, 'bid': bid})

    def complete_bidding(self) -> None:
        self.post('command', 'complete_bidding', {})

    def record_result(self, seat: int, made: bool) -> None:
        self.post('command', 'record_result', {'seat': seat, 'made': made})

    def complete_round(self) -> None:
        self.post('command', 'complete_round', {})

    def end_game(self) -> None:
        self.post('command', 'end_game', {})

    COMMANDS = (
        'toggle_blind', 'set_blind_bid', 'proceed_from_blind_phase', 'set_regular_bid',
        'complete_bidding', 'record_result', 'complete_round', 'end_game',
    )

    def _bidding_in(self, state: BiddingState, command: str) -> Optional[BiddingStateMachine]:
        if self.bidding is None or self.bidding.state != state:
            self.logger.warning(f"[command-ignored] game={self.game_id} command={command} not in {state.value}")
            return None
        return self.bidding

    def _seat_ok(self, seat: int, command: str) -> bool:
        if self.game is None or not 0 <= seat < self.game.setup.player_count:
            self.logger.warning(f"[command-ignored] game={self.game_id} command={command} seat={seat}")
            return False
        return True

    def _cmd_toggle_blind(self, seat: int) -> None:
        b = self._bidding_in(BiddingState.BLIND_DECLARATION, 'toggle_blind')
        if b and self._seat_ok(seat, 'toggle_blind'):
            b.toggle_blind(seat)

    def _cmd_set_blind_bid(self, seat: int, bid: int) -> None:
        b = self._bidding_in(BiddingState.BLIND_DECLARATION, 'set_blind_bid')
        if b and self._seat_ok(seat, 'set_blind_bid'):
            b.set_blind_bid(seat, bid)

    def _cmd_proceed_from_blind_phase(self) -> None:
        b = self._bidding_in(BiddingState.BLIND_DECLARATION, 'proceed_from_blind_phase')
        if not b:
            return
        if not b.validation().can_proceed_from_blind_phase:
            self.logger.warning(f"[command-ignored] game={self.game_id} command=proceed_from_blind_phase blind bids invalid")
            return
        b.proceed_from_blind_phase()

    def _cmd_set_regular_bid(self, seat: int, bid: int) -> None:
        b = self._bidding_in(BiddingState.REGULAR_BIDDING, 'set_regular_bid')
        if b and self._seat_ok(seat, 'set_regular_bid'):
            b.set_regular_bid(seat, bid)

    def _cmd_complete_bidding(self) -> None:
        b = self._bidding_in(BiddingState.REGULAR_BIDDING, 'complete_bidding')
        if not b:
            return
        if not b.validation().can_proceed:
            self.logger.warning(f"[command-ignored] game={self.game_id} command=complete_bidding bids incomplete or equal to tricks")
            return
        b.complete()

    def _cmd_record_result(self, seat: int, made: bool) -> None:
        if self.game is None or self.game.current_phase != Phase.RESULTS:
            self.logger.warning(f"[command-ignored] game={self.game_id} command=record_result not in results")
            return
        if self._seat_ok(seat, 'record_result'):
            self.rounds.record_result(seat, bool(made))

    def _cmd_complete_round(self) -> None:
        if self.rounds is None or not self.rounds.complete_now():
            self.logger.warning(f"[command-ignored] game={self.game_id} command=complete_round results incomplete")

    def _cmd_end_game(self) -> None:
        if self.game is None or self.game.is_completed:
            return
        if self.bidding is not None:
            self.bidding.dispose()
            self.bidding = None
        self.rounds.end_game()

    # ---- view ----

    def _phase_key(self):
        g = self.game
        if g is None:
            return (None, None)
        return (
            g.current_phase.value if g.current_phase else None,
            g.bidding_phase.value if g.bidding_phase else None,
        )

    def view(self) -> Dict[str, Any]:
        """Everything a UI needs to render this client's state."""
        g = self.game
        if g is None:
            return {'game_id': self.game_id, 'loading': self.loading, 'error': self.error}
        b = self.bidding
        round_ = b.effective_round() if b is not None else g.in_progress_round
        return {
            'game_id': self.game_id,
            'loading': self.loading,
            'error': self.error,
            'status': g.status.value,
            'setup': g.setup.to_dict(),
            'round': round_.to_dict() if round_ else None,
            'current_phase': g.current_phase.value if g.current_phase else None,
            'bidding_phase': g.bidding_phase.value if g.bidding_phase else None,
            'bidding_state': b.state.value if b else None,
            'completed_rounds': [r.to_dict() for r in g.rounds],
            'bidding': bidding_view(round_) if b else None,
            'validation': b.validation().to_dict() if b else None,
            'active_seat': b.active_seat if b else None,
            'enabled_seats': b.enabled_seats() if b else None,
            'warnings': b.warnings() if b else {},
            'pending_bids': dict(b.overlay) if b else {},
            'can_complete_round': bool(self.rounds and self.rounds.can_complete),
            'standings': standings(g.rounds),
        }
