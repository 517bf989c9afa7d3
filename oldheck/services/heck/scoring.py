from typing import Dict, List

SUITS = ['♠', '♥', '♦', '♣']


def score(bid: int, met: bool, blind: bool = False) -> int:
    """Points for one player's round.

    Made: bid² + 10. Missed: -(bid² + 10). A blind bid doubles either way.
    """
    base = bid * bid + 10
    if not met:
        base = -base
    return base * 2 if blind else base


def calculate_max_rounds(decks: int, players: int) -> int:
    # Every player needs n cards in round n
    return (52 * decks) // players


def assign_suit(seat: int) -> str:
    return SUITS[seat % len(SUITS)]


def suit_color(suit: str) -> str:
    return 'red' if suit in ('♥', '♦') else 'black'


def standings(rounds) -> Dict:
    """Score table over completed rounds.

    Players sharing a total share a rank (dense ranking), so two players tied
    on the best total are both #1.
    """
    if not rounds:
        return {'players': [], 'totals': {}, 'running_totals': {}, 'ranks': {}, 'winners': [], 'deltas': {}}

    players: List[str] = [ps.name for ps in rounds[0].scores]
    totals: Dict[str, int] = {name: 0 for name in players}
    running_totals: Dict[int, Dict[str, int]] = {}
    for r in rounds:
        for ps in r.scores:
            totals[ps.name] = totals.get(ps.name, 0) + ps.score
        running_totals[r.round_number] = dict(totals)

    distinct = sorted(set(totals.values()), reverse=True)
    ranks = {name: distinct.index(totals[name]) + 1 for name in players}
    best = distinct[0]
    return {
        'players': sorted(players, key=lambda n: totals[n], reverse=True),
        'totals': totals,
        'running_totals': running_totals,
        'ranks': ranks,
        'winners': [name for name in players if totals[name] == best],
        'deltas': {ps.name: ps.score for ps in rounds[-1].scores},
    }
