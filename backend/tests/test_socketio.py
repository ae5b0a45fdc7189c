from trivia import db, socketio
from trivia.models import Game
from trivia.services.games.host import HOST


def _names(received):
    return [pkt['name'] for pkt in received]


def _create_with_team(client):
    created = client.post('/api/games/create').get_json()
    client.post(f"/api/games/{created['game_code']}/teams", json={'name': 'Elves'})
    return created


def test_socket_connect_and_join(sio_client, client):
    # Ensure we are connected to /ws
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')
    sio_client.get_received('/ws')

    code = client.post('/api/games/create').get_json()['game_code']
    sio_client.emit('join_game', {'game_code': code.lower()}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert _names(received) == ['joined', 'state_snapshot']
    snapshot = received[1]['args'][0]
    assert snapshot['game']['game_code'] == code
    assert snapshot['teams'] == []


def test_join_unknown_game(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_game', {'game_code': 'NOPE'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert _names(received) == ['error']


def test_ping_and_request_state(sio_client, client):
    code = client.post('/api/games/create').get_json()['game_code']
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'t': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert received[0]['name'] == 'pong'
    assert received[0]['args'][0] == {'t': 1}

    sio_client.emit('request_state', {'game_code': code}, namespace='/ws')
    assert _names(sio_client.get_received('/ws')) == ['state_snapshot']


def test_room_receives_changes(sio_client, client):
    created = client.post('/api/games/create').get_json()
    code = created['game_code']
    sio_client.emit('join_game', {'game_code': code}, namespace='/ws')
    sio_client.get_received('/ws')

    client.post(f'/api/games/{code}/teams', json={'name': 'Elves'})
    client.post(f'/api/games/{code}/start', headers={'X-Host-Token': created['host_token']})
    names = _names(sio_client.get_received('/ws'))
    assert 'team_update' in names
    assert 'game_update' in names


def test_host_disconnect_pauses_running_game(flask_app, sio_client, client):
    created = _create_with_team(client)
    code = created['game_code']

    host_client = socketio.test_client(flask_app, namespace='/ws')
    host_client.emit('join_game', {'game_code': code, 'host_token': created['host_token']}, namespace='/ws')
    joined = [p for p in host_client.get_received('/ws') if p['name'] == 'joined'][0]
    assert joined['args'][0]['is_host'] is True

    sio_client.emit('join_game', {'game_code': code}, namespace='/ws')
    game = Game.query.filter_by(game_code=code).one()
    HOST.start(game.id)
    sio_client.get_received('/ws')

    host_client.disconnect(namespace='/ws')
    db.session.refresh(game)
    assert game.status == 'paused'
    assert 'game_update' in _names(sio_client.get_received('/ws'))


def test_player_disconnect_does_not_pause(flask_app, client):
    created = _create_with_team(client)
    code = created['game_code']
    player = socketio.test_client(flask_app, namespace='/ws')
    player.emit('join_game', {'game_code': code}, namespace='/ws')
    game = Game.query.filter_by(game_code=code).one()
    HOST.start(game.id)

    player.disconnect(namespace='/ws')
    db.session.refresh(game)
    assert game.status == 'playing'
