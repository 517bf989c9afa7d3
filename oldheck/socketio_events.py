from flask import current_app, request
from flask_socketio import join_room, leave_room, emit
from oldheck import socketio, store
from oldheck.services.heck.session import GameSession
from oldheck.sessions import open_session
from oldheck.store import room_for
from typing import Dict, Any, List


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    _close_session(_get_sid())


def handle_join_game(data):
    game_id = (data or {}).get('game_id')
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    if store.read_document(game_id) is None:
        emit('error', {'message': 'Game not found'})
        return
    sid = _get_sid()
    _close_session(sid)
    room = room_for(game_id)
    join_room(room)

    session = open_session(current_app._get_current_object(), game_id)
    _sid_to_ctx[sid] = {'game_id': game_id, 'session': session}
    emit('joined', {'room': room, 'game_id': game_id})
    emit('view', session.view())

    namespace = request.namespace

    def push_view(view):
        socketio.emit('view', view, to=sid, namespace=namespace)

    session.on_change = push_view


def handle_leave_game(data):
    game_id = (data or {}).get('game_id')
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    room = room_for(game_id)
    leave_room(room)
    _close_session(_get_sid())
    emit('left', {'room': room})


def handle_command(data):
    ctx = _sid_to_ctx.get(_get_sid())
    if not ctx:
        emit('error', {'message': 'Join a game first'})
        return
    data = data or {}
    name = data.get('type')
    if name not in GameSession.COMMANDS:
        emit('error', {'message': f'Unknown command: {name}'})
        return
    try:
        kwargs = _command_args(name, data)
    except (KeyError, TypeError, ValueError):
        emit('error', {'message': f'Invalid payload for {name}'})
        return
    getattr(ctx['session'], name)(**kwargs)


def handle_ping(data):
    emit('pong', data or {})


_SEAT_COMMANDS = {'toggle_blind', 'set_blind_bid', 'set_regular_bid', 'record_result'}
_BID_COMMANDS = {'set_blind_bid', 'set_regular_bid'}


def _command_args(name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {}
    if name in _SEAT_COMMANDS:
        kwargs['seat'] = int(data['seat'])
    if name in _BID_COMMANDS:
        kwargs['bid'] = int(data['bid'])
        if kwargs['bid'] < 0:
            raise ValueError('bid must not be negative')
    if name == 'record_result':
        made = data['made']
        if not isinstance(made, bool):
            raise ValueError('made must be a boolean')
        kwargs['made'] = made
    return kwargs

# ---- Per-connection client sessions ----

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _close_session(sid: str) -> None:
    ctx = _sid_to_ctx.pop(sid, None)
    if ctx:
        ctx['session'].close()


def sessions_for_game(game_id: str) -> List[GameSession]:
    return [ctx['session'] for ctx in _sid_to_ctx.values() if ctx['game_id'] == game_id]


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for ns in namespaces:
        socketio.on_event('connect', handle_connect, namespace=ns)
        socketio.on_event('disconnect', handle_disconnect, namespace=ns)
        socketio.on_event('join_game', handle_join_game, namespace=ns)
        socketio.on_event('leave_game', handle_leave_game, namespace=ns)
        socketio.on_event('command', handle_command, namespace=ns)
        socketio.on_event('ping', handle_ping, namespace=ns)
