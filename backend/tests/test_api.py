BOARD = list(range(1, 26))
# 22..25 placed so that only row 4 and column 4 complete before 22 is called
SLOW_BOARD = [23, 1, 2, 3, 4, 5, 24, 6, 7, 8, 9, 10, 22, 11, 12, 13, 14, 15, 25, 16, 17, 18, 19, 20, 21]


def _create(client, name='Alice'):
    res = client.post('/api/rooms/create', json={'name': name})
    assert res.status_code == 201
    return res.get_json()


def _join(client, room_id, name='Bob'):
    res = client.post('/api/rooms/join', json={'room_id': room_id, 'name': name})
    assert res.status_code == 201
    return res.get_json()


def _state(client, room_id, viewer_id=''):
    res = client.get(f'/api/rooms/{room_id}/state', query_string={'viewer_id': viewer_id})
    assert res.status_code == 200
    return res.get_json()


def _started_room(client, alice_board=BOARD, bob_board=SLOW_BOARD):
    alice = _create(client)
    room_id = alice['room_id']
    bob = _join(client, room_id)
    client.post(f'/api/rooms/{room_id}/ready', json={'player_id': alice['player_id'], 'board': alice_board})
    client.post(f'/api/rooms/{room_id}/ready', json={'player_id': bob['player_id'], 'board': bob_board})
    return room_id, alice, bob


def test_health(client):
    assert client.get('/health').get_json() == {'status': 'healthy'}


def test_create_room(client):
    data = _create(client)
    assert len(data['room_id']) == 5
    assert data['name'] == 'Alice'
    assert data['player_id']
    assert data['countdown_sec'] == 30


def test_create_requires_name(client):
    res = client.post('/api/rooms/create', json={})
    assert res.status_code == 400
    assert 'name' in res.get_json()['error']


def test_join_and_state(client):
    alice = _create(client)
    room_id = alice['room_id']
    bob = _join(client, room_id.lower())
    assert bob['room_id'] == room_id
    assert bob['status'] == 'SETUP'

    state = _state(client, room_id, alice['player_id'])
    assert state['room']['id'] == room_id
    assert [p['name'] for p in state['players']] == ['Alice', 'Bob']
    # Bob has not readied up, so his board is hidden
    assert state['players'][1]['board'] == ['?'] * 25


def test_join_errors(client):
    res = client.post('/api/rooms/join', json={'room_id': 'ab', 'name': 'Bob'})
    assert res.status_code == 400
    res = client.post('/api/rooms/join', json={'room_id': 'ZZZZZ', 'name': 'Bob'})
    assert res.status_code == 404
    assert res.get_json()['retryable'] is False


def test_state_of_missing_room(client):
    res = client.get('/api/rooms/ZZZZZ/state')
    assert res.status_code == 404


def test_ready_starts_game_with_first_ready_player(client):
    alice = _create(client)
    room_id = alice['room_id']
    bob = _join(client, room_id)

    res = client.post(f'/api/rooms/{room_id}/ready', json={'player_id': alice['player_id']})
    assert res.status_code == 200
    data = res.get_json()
    assert data['accepted'] is True
    assert data['is_ready'] is True
    assert sorted(data['board']) == BOARD
    assert data['room']['status'] == 'SETUP'

    res = client.post(f'/api/rooms/{room_id}/ready', json={'player_id': alice['player_id']})
    assert res.status_code == 409

    res = client.post(f'/api/rooms/{room_id}/ready', json={'player_id': bob['player_id'], 'board': SLOW_BOARD})
    assert res.status_code == 200
    room = res.get_json()['room']
    assert room['status'] == 'PLAYING'
    assert room['current_player_turn_id'] == alice['player_id']
    assert room['numbers_picked'] == []

    state = _state(client, room_id, alice['player_id'])
    assert state['players'][1]['board'] == SLOW_BOARD


def test_ready_validation(client):
    alice = _create(client)
    room_id = alice['room_id']
    res = client.post(f'/api/rooms/{room_id}/ready', json={'player_id': alice['player_id'], 'board': [1, 2]})
    assert res.status_code == 400
    res = client.post(f'/api/rooms/{room_id}/ready', json={'player_id': 'ghost'})
    assert res.status_code == 404
    res = client.post(f'/api/rooms/{room_id}/ready', json={})
    assert res.status_code == 400


def test_pick_turns(client):
    room_id, alice, bob = _started_room(client)

    res = client.post(f'/api/rooms/{room_id}/pick', json={'player_id': bob['player_id'], 'value': 3})
    assert res.status_code == 409
    assert res.get_json()['accepted'] is False

    res = client.post(f'/api/rooms/{room_id}/pick', json={'player_id': alice['player_id'], 'value': 3})
    assert res.status_code == 200
    room = res.get_json()['room']
    assert room['numbers_picked'] == [3]
    assert room['current_player_turn_id'] == bob['player_id']

    res = client.post(f'/api/rooms/{room_id}/pick', json={'player_id': bob['player_id'], 'value': 3})
    assert res.status_code == 409

    res = client.post(f'/api/rooms/{room_id}/pick', json={'player_id': bob['player_id']})
    assert res.status_code == 400


def test_game_to_finish_and_rematch(client):
    room_id, alice, bob = _started_room(client)

    res = client.post(f'/api/rooms/{room_id}/rematch', json={'player_id': alice['player_id']})
    assert res.status_code == 400
    assert res.get_json()['retryable'] is False

    for value in range(1, 26):
        state = _state(client, room_id)
        if state['room']['status'] == 'FINISHED':
            break
        res = client.post(f'/api/rooms/{room_id}/pick',
                          json={'player_id': state['room']['current_player_turn_id'], 'value': value})
        assert res.status_code == 200

    room = _state(client, room_id)['room']
    assert room['status'] == 'FINISHED'
    assert room['winner_id'] == alice['player_id']
    assert room['numbers_picked'] == list(range(1, 22))

    res = client.post(f'/api/rooms/{room_id}/rematch', json={'player_id': bob['player_id']})
    assert res.status_code == 201
    new_room_id = res.get_json()['room_id']
    assert new_room_id != room_id
    state = _state(client, new_room_id, bob['player_id'])
    assert state['room']['status'] == 'LOBBY'
    assert [p['name'] for p in state['players']] == ['Bob']
