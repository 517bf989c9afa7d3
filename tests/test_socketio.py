from oldheck import socketio


def _create_game(client, players=('Alice', 'Bob')):
    return client.post('/api/games/create', json={'players': list(players)}).get_json()['game_id']


def _events(sio_client, name):
    return [pkt['args'][0] for pkt in sio_client.get_received('/ws') if pkt['name'] == name]


def _join(sio_client, game_id):
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    sio_client.get_received('/ws')  # flush
    sio_client.emit('join_game', {'game_id': game_id}, namespace='/ws')
    return sio_client.get_received('/ws')


def test_socket_connect_and_ping(sio_client):
    assert sio_client.is_connected('/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    assert _events(sio_client, 'pong') == [{'n': 1}]


def test_join_unknown_game(sio_client):
    received = _join(sio_client, 'nope')
    errors = [pkt['args'][0] for pkt in received if pkt['name'] == 'error']
    assert errors == [{'message': 'Game not found'}]


def test_join_sends_initial_view(sio_client, client):
    game_id = _create_game(client)
    received = _join(sio_client, game_id)
    names = [pkt['name'] for pkt in received]
    assert names[:2] == ['joined', 'view']
    joined = received[0]['args'][0]
    assert joined == {'room': f'game:{game_id}', 'game_id': game_id}
    view = received[1]['args'][0]
    assert view['loading'] is False
    assert view['bidding_state'] == 'blind-declaration-and-entry'
    assert view['enabled_seats'] == [True, True]


def test_command_requires_join(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('command', {'type': 'toggle_blind', 'seat': 0}, namespace='/ws')
    assert _events(sio_client, 'error') == [{'message': 'Join a game first'}]


def test_command_validation(sio_client, client):
    game_id = _create_game(client)
    _join(sio_client, game_id)
    sio_client.emit('command', {'type': 'cheat'}, namespace='/ws')
    assert _events(sio_client, 'error') == [{'message': 'Unknown command: cheat'}]
    sio_client.emit('command', {'type': 'set_regular_bid', 'seat': 0}, namespace='/ws')
    assert _events(sio_client, 'error') == [{'message': 'Invalid payload for set_regular_bid'}]
    sio_client.emit('command', {'type': 'record_result', 'seat': 0, 'made': 'yes'}, namespace='/ws')
    assert _events(sio_client, 'error') == [{'message': 'Invalid payload for record_result'}]
    sio_client.emit('command', {'type': 'set_regular_bid', 'seat': 0, 'bid': -5}, namespace='/ws')
    assert _events(sio_client, 'error') == [{'message': 'Invalid payload for set_regular_bid'}]
    sio_client.emit('command', {'type': 'set_blind_bid', 'seat': 0, 'bid': -1}, namespace='/ws')
    assert _events(sio_client, 'error') == [{'message': 'Invalid payload for set_blind_bid'}]


def test_command_updates_view_and_broadcasts_snapshot(sio_client, client):
    game_id = _create_game(client)
    _join(sio_client, game_id)
    sio_client.emit('command', {'type': 'toggle_blind', 'seat': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    views = [pkt['args'][0] for pkt in received if pkt['name'] == 'view']
    snapshots = [pkt['args'][0] for pkt in received if pkt['name'] == 'snapshot']
    assert views and views[-1]['round']['scores'][1]['blind_bid'] is True
    assert snapshots and snapshots[-1]['in_progress_round']['scores'][1]['blind_bid'] is True
    assert snapshots[-1]['version'] == 1

    state = client.get(f'/api/games/{game_id}/state').get_json()
    assert state['in_progress_round']['scores'][1]['blind_bid'] is True


def test_second_client_sees_first_clients_changes(flask_app, sio_client, client):
    game_id = _create_game(client)
    other = socketio.test_client(flask_app, namespace='/ws')
    try:
        other.emit('join_game', {'game_id': game_id}, namespace='/ws')
        other.get_received('/ws')
        _join(sio_client, game_id)

        sio_client.emit('command', {'type': 'proceed_from_blind_phase'}, namespace='/ws')
        views = [pkt['args'][0] for pkt in other.get_received('/ws') if pkt['name'] == 'view']
        assert views[-1]['bidding_state'] == 'regular-bid-entry'
        assert views[-1]['active_seat'] == 0
    finally:
        other.disconnect(namespace='/ws')


def test_leave_game_closes_session(sio_client, client):
    from oldheck.socketio_events import sessions_for_game
    game_id = _create_game(client)
    _join(sio_client, game_id)
    assert len(sessions_for_game(game_id)) == 1
    sio_client.emit('leave_game', {'game_id': game_id}, namespace='/ws')
    assert _events(sio_client, 'left') == [{'room': f'game:{game_id}'}]
    assert sessions_for_game(game_id) == []
