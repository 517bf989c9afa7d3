from flask import Blueprint, jsonify, request, current_app
from oldheck import store
from oldheck.services.heck.scoring import standings
from oldheck.share import ShareTokenError, claim_share_token, issue_share_token
from oldheck.services.heck.session import GameNotFoundError
from oldheck.services.heck.state import DELETE, Game, GameSetup, GameStatus, Phase


games = Blueprint('games', __name__)

# Fields a client may write through PATCH
_PATCHABLE = {'rounds', 'in_progress_round', 'current_phase', 'bidding_phase', 'status', 'share_token'}


def _not_found():
    return jsonify({'error': 'Game not found'}), 404


@games.route('/create', methods=['POST'])
def create_game():
    data = request.get_json(silent=True) or {}
    players = data.get('players')
    if not isinstance(players, list) or not all(isinstance(p, str) and p.strip() for p in players):
        return jsonify({'error': 'players must be a list of names'}), 400
    players = [p.strip() for p in players]

    cfg = current_app.config
    try:
        min_players = int(cfg.get('MIN_PLAYERS', 2))
    except Exception:
        min_players = 2
    if len(players) < min_players:
        return jsonify({'error': f'At least {min_players} players are required to start'}), 400

    try:
        decks = data.get('decks')
        decks = int(decks) if decks is not None else int(cfg.get('DEFAULT_DECKS', 1))
        first = int(data.get('first_player_index') or 0)
    except (TypeError, ValueError):
        return jsonify({'error': 'decks and first_player_index must be integers'}), 400
    max_decks = int(cfg.get('MAX_DECKS', 4))
    if not 1 <= decks <= max_decks:
        return jsonify({'error': f'decks must be between 1 and {max_decks}'}), 400
    if not 0 <= first < len(players):
        return jsonify({'error': 'first_player_index must be a seat in the game'}), 400

    game = Game.start(GameSetup.build(players, decks, first))
    game_id = store.create(game)
    return jsonify({
        'message': 'New game created!',
        'game_id': game_id,
        'game': store.read_document(game_id),
    }), 201


@games.route('/', methods=['GET'])
def list_games():
    return jsonify(store.list_games())


@games.route('/<string:game_id>/state', methods=['GET'])
def get_game_state(game_id):
    doc = store.read_document(game_id)
    if doc is None:
        return _not_found()
    # Include timer durations so clients can show countdowns
    cfg = current_app.config
    doc['durations'] = {
        'bid_advance': float(cfg.get('BID_ADVANCE_DELAY_SEC', 2.0)),
        'results_auto_complete': float(cfg.get('RESULTS_AUTO_COMPLETE_SEC', 1.5)),
        'next_round': float(cfg.get('NEXT_ROUND_DELAY_SEC', 0.5)),
    }
    return jsonify(doc)


@games.route('/<string:game_id>', methods=['PATCH'])
def patch_game(game_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({'error': 'A JSON object of fields is required'}), 400
    unknown = set(data) - _PATCHABLE
    if unknown:
        return jsonify({'error': f'Unknown fields: {", ".join(sorted(unknown))}'}), 400
    # null removes the field from the document
    fields = {k: (DELETE if v is None else v) for k, v in data.items()}
    doc = store.read_document(game_id)
    if doc is None:
        return _not_found()
    merged = {k: v for k, v in doc.items() if k not in data}
    merged.update({k: v for k, v in data.items() if v is not None})
    # The merged document must still load as a game
    try:
        Game.from_dict(merged)
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        return jsonify({'error': f'Invalid game fields: {exc}'}), 400
    try:
        store.patch(game_id, fields)
    except GameNotFoundError:
        return _not_found()
    return jsonify(store.read_document(game_id))


@games.route('/<string:game_id>/end', methods=['POST'])
def end_game(game_id):
    doc = store.read_document(game_id)
    if doc is None:
        return _not_found()
    if doc.get('status') == GameStatus.COMPLETED.value:
        # Idempotent: already over
        return jsonify(doc)
    store.patch(game_id, {
        'in_progress_round': DELETE,
        'current_phase': Phase.COMPLETED.value,
        'bidding_phase': DELETE,
        'status': GameStatus.COMPLETED.value,
    })
    current_app.logger.info(f"[finish] game={game_id} ended early after {len(doc.get('rounds') or [])} rounds")
    return jsonify(store.read_document(game_id))


@games.route('/<string:game_id>/standings', methods=['GET'])
def get_standings(game_id):
    game = store.read(game_id)
    if game is None:
        return _not_found()
    table = standings(game.rounds)
    # JSON object keys must be strings
    table['running_totals'] = {str(k): v for k, v in table['running_totals'].items()}
    return jsonify(table)


@games.route('/<string:game_id>/share', methods=['POST'])
def issue_share(game_id):
    try:
        token = issue_share_token(store, game_id)
    except GameNotFoundError:
        return _not_found()
    return jsonify(token), 201


@games.route('/<string:game_id>/share/claim', methods=['POST'])
def claim_share(game_id):
    data = request.get_json(silent=True) or {}
    session_id = data.get('session_id')
    if not session_id:
        return jsonify({'error': 'session_id is required'}), 400
    try:
        claimed = claim_share_token(store, game_id, data.get('token'), session_id)
    except GameNotFoundError:
        return _not_found()
    except ShareTokenError as exc:
        return jsonify({'error': str(exc)}), exc.status
    return jsonify(claimed)
