def _events(sio_client, name):
    return [pkt for pkt in sio_client.get_received('/ws') if pkt['name'] == name]


def test_socket_connect_and_subscribe(sio_client):
    assert sio_client.is_connected('/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)

    sio_client.emit('subscribe_room', {'room_id': 'abcde'}, namespace='/ws')
    subscribed = _events(sio_client, 'subscribed')
    assert subscribed[0]['args'][0] == {'room': 'room:ABCDE', 'room_id': 'ABCDE', 'rooms': ['ABCDE']}

    sio_client.emit('subscribe_room', {'room_id': 'FGHIJ'}, namespace='/ws')
    assert _events(sio_client, 'subscribed')[0]['args'][0]['rooms'] == ['ABCDE', 'FGHIJ']
    sio_client.emit('unsubscribe_room', {'room_id': 'ABCDE'}, namespace='/ws')
    assert _events(sio_client, 'unsubscribed')[0]['args'][0]['rooms'] == ['FGHIJ']


def test_subscribe_requires_room_id(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('subscribe_room', {}, namespace='/ws')
    assert _events(sio_client, 'error')


def test_ping(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    assert _events(sio_client, 'pong')[0]['args'][0] == {'n': 1}


def test_room_changes_are_broadcast(client, sio_client):
    alice = client.post('/api/rooms/create', json={'name': 'Alice'}).get_json()
    room_id = alice['room_id']
    sio_client.emit('subscribe_room', {'room_id': room_id}, namespace='/ws')
    sio_client.get_received('/ws')  # flush

    client.post('/api/rooms/join', json={'room_id': room_id, 'name': 'Bob'})
    received = sio_client.get_received('/ws')
    names = [pkt['name'] for pkt in received]
    assert 'players_changed' in names
    room_changes = [pkt['args'][0] for pkt in received if pkt['name'] == 'room_changed']
    assert room_changes[-1]['status'] == 'SETUP'


def test_unsubscribed_socket_hears_nothing(client, sio_client):
    alice = client.post('/api/rooms/create', json={'name': 'Alice'}).get_json()
    room_id = alice['room_id']
    sio_client.emit('subscribe_room', {'room_id': room_id}, namespace='/ws')
    sio_client.emit('unsubscribe_room', {'room_id': room_id}, namespace='/ws')
    assert _events(sio_client, 'unsubscribed')

    client.post('/api/rooms/join', json={'room_id': room_id, 'name': 'Bob'})
    assert not _events(sio_client, 'players_changed')


def test_rematch_announced_to_old_room(client, sio_client):
    alice = client.post('/api/rooms/create', json={'name': 'Alice'}).get_json()
    room_id = alice['room_id']
    bob = client.post('/api/rooms/join', json={'room_id': room_id, 'name': 'Bob'}).get_json()
    boards = {alice['player_id']: list(range(1, 26)), bob['player_id']: list(range(25, 0, -1))}
    for player_id, board in boards.items():
        client.post(f'/api/rooms/{room_id}/ready', json={'player_id': player_id, 'board': board})

    for value in range(1, 26):
        room = client.get(f'/api/rooms/{room_id}/state').get_json()['room']
        if room['status'] == 'FINISHED':
            break
        client.post(f'/api/rooms/{room_id}/pick', json={'player_id': room['current_player_turn_id'], 'value': value})

    sio_client.emit('subscribe_room', {'room_id': room_id}, namespace='/ws')
    sio_client.get_received('/ws')  # flush
    res = client.post(f'/api/rooms/{room_id}/rematch', json={'player_id': alice['player_id']})
    assert res.status_code == 201
    announced = _events(sio_client, 'rematch_started')
    assert announced[0]['args'][0] == {'from': room_id, 'to': res.get_json()['room_id']}
