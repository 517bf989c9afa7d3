from oldheck.services.heck.bidding_machine import BiddingState, BiddingStateMachine
from oldheck.services.heck.state import BiddingPhase, GameSetup, new_round
from oldheck.services.heck.timers import ManualScheduler


def make_machine(players=3, round_number=3, first=0, phase=BiddingPhase.BLIND_DECLARATION):
    setup = GameSetup.build([f"P{i}" for i in range(players)])
    round_ = new_round(setup, round_number, first)
    scheduler = ManualScheduler()
    pushes = []
    completed = []
    machine = BiddingStateMachine(
        round_, phase, pushes.append, scheduler.call_later,
        on_complete=lambda: completed.append(True),
        advance_delay=2.0,
    )
    return machine, scheduler, pushes, completed


def test_starts_in_blind_declaration():
    m, _, _, _ = make_machine()
    assert m.state == BiddingState.BLIND_DECLARATION
    assert m.active_seat is None
    assert m.enabled_seats() == [True, True, True]


def test_toggle_blind_pushes_immediately_and_unchecking_clears_bid():
    m, _, pushes, _ = make_machine()
    m.toggle_blind(1)
    assert m.round.scores[1].blind_bid is True
    assert len(pushes) == 1
    m.set_blind_bid(1, 2)
    assert m.round.scores[1].bid == 2
    assert len(pushes) == 2
    m.toggle_blind(1)
    assert m.round.scores[1].blind_bid is False
    assert m.round.scores[1].bid == -1
    assert len(pushes) == 3
    assert pushes[-1]['in_progress_round'] is m.round


def test_blind_bid_for_non_blind_seat_is_ignored():
    m, _, pushes, _ = make_machine()
    m.set_blind_bid(0, 1)
    assert m.round.scores[0].bid == -1
    assert pushes == []


def test_blind_bid_above_cards_in_hand_is_kept_with_warning():
    m, _, _, _ = make_machine(round_number=2)
    m.toggle_blind(0)
    m.set_blind_bid(0, 5)
    assert m.round.scores[0].bid == 5
    assert m.warnings() == {0: 'Bid (5) exceeds cards in hand (2)'}
    assert m.validation().can_proceed_from_blind_phase is True


def test_proceed_moves_to_regular_bidding_with_first_non_blind_seat():
    m, _, pushes, completed = make_machine(players=4, first=2)
    m.toggle_blind(2)
    m.set_blind_bid(2, 1)
    m.proceed_from_blind_phase()
    assert m.state == BiddingState.REGULAR_BIDDING
    # order is [2, 3, 0, 1]; seat 2 went blind
    assert m.active_seat == 3
    assert pushes[-1] == {'bidding_phase': BiddingPhase.REGULAR_BID_ENTRY}
    assert completed == []
    assert m.enabled_seats() == [False, False, True, True]


def test_all_blind_skips_regular_bidding():
    m, _, pushes, completed = make_machine(players=2, round_number=3)
    for seat, bid in ((0, 1), (1, 1)):
        m.toggle_blind(seat)
        m.set_blind_bid(seat, bid)
    assert m.validation().can_proceed_from_blind_phase is True
    count = len(pushes)
    m.proceed_from_blind_phase()
    assert m.state == BiddingState.COMPLETE
    assert completed == [True]
    assert len(pushes) == count


def test_regular_bid_waits_for_advance_timer():
    m, scheduler, pushes, _ = make_machine(first=1)
    m.proceed_from_blind_phase()
    assert m.active_seat == 1
    pushes.clear()

    m.set_regular_bid(1, 2)
    assert m.round.scores[1].bid == -1
    assert m.effective_round().scores[1].bid == 2
    assert m.validation().total_bids == 2
    scheduler.advance(1.5)
    assert pushes == []
    assert m.active_seat == 1

    scheduler.advance(0.5)
    assert len(pushes) == 1
    assert m.round.scores[1].bid == 2
    assert m.overlay == {}
    assert m.active_seat == 2


def test_rapid_edits_collapse_into_one_commit():
    m, scheduler, pushes, _ = make_machine()
    m.proceed_from_blind_phase()
    pushes.clear()

    m.set_regular_bid(0, 1)
    scheduler.advance(1.5)
    m.set_regular_bid(0, 2)
    scheduler.advance(1.5)
    assert pushes == []
    assert len(scheduler.pending) == 1
    scheduler.advance(0.5)
    assert len(pushes) == 1
    assert m.round.scores[0].bid == 2


def test_edit_for_another_seat_restarts_shared_timer():
    m, scheduler, pushes, _ = make_machine()
    m.proceed_from_blind_phase()
    pushes.clear()

    m.set_regular_bid(0, 1)
    scheduler.advance(1.5)
    m.set_regular_bid(1, 0)
    scheduler.advance(1.5)
    assert pushes == []
    scheduler.advance(0.5)
    assert [ps.bid for ps in m.round.scores] == [1, 0, -1]
    assert m.active_seat == 2


def test_complete_flushes_pending_bid_and_hands_off():
    m, scheduler, pushes, completed = make_machine(players=2, round_number=1)
    m.proceed_from_blind_phase()
    m.set_regular_bid(0, 1)
    scheduler.advance(2.0)
    m.set_regular_bid(1, 1)
    assert m.validation().can_proceed is True
    m.complete()
    assert m.round.scores[1].bid == 1
    assert m.state == BiddingState.COMPLETE
    assert completed == [True]
    assert scheduler.pending == []


def test_equal_total_is_visible_not_rejected():
    m, scheduler, _, _ = make_machine(players=2, round_number=1)
    m.proceed_from_blind_phase()
    m.set_regular_bid(0, 1)
    m.set_regular_bid(1, 0)
    scheduler.advance(2.0)
    v = m.validation()
    assert v.all_bids_entered is True
    assert v.bids_equal_tricks is True
    assert v.can_proceed is False


def test_remote_phase_change_discards_overlay():
    m, scheduler, pushes, _ = make_machine()
    m.proceed_from_blind_phase()
    m.set_regular_bid(0, 1)
    remote = m.round.copy()
    m.apply_remote(remote, BiddingPhase.BLIND_DECLARATION)
    assert m.state == BiddingState.BLIND_DECLARATION
    assert m.overlay == {}
    assert m.active_seat is None
    count = len(pushes)
    scheduler.advance(5)
    assert len(pushes) == count


def test_remote_regular_phase_recomputes_active_seat():
    m, _, _, _ = make_machine(first=1)
    remote = m.round.copy()
    remote.scores[1].bid = 0
    m.apply_remote(remote, BiddingPhase.REGULAR_BID_ENTRY)
    assert m.state == BiddingState.REGULAR_BIDDING
    assert m.active_seat == 2


def test_remote_blind_flags_replace_local_ones():
    m, _, _, _ = make_machine()
    remote = m.round.copy()
    remote.scores[2].blind_bid = True
    remote.scores[2].bid = 1
    m.apply_remote(remote, BiddingPhase.BLIND_DECLARATION)
    assert m.blind_decisions == [False, False, True]
    assert m.round.scores[2].bid == 1


def test_overlay_survives_snapshot_in_same_phase():
    m, scheduler, pushes, _ = make_machine()
    m.proceed_from_blind_phase()
    m.set_regular_bid(0, 2)
    m.apply_remote(m.round.copy(), BiddingPhase.REGULAR_BID_ENTRY)
    assert m.overlay == {0: 2}
    scheduler.advance(2.0)
    assert m.round.scores[0].bid == 2
