def _new_session(client):
    res = client.post('/api/sessions/create')
    assert res.status_code == 201
    return res.get_json()['session_id']


def _join(client, code, name, **extra):
    res = client.post(f'/api/sessions/{code}/join', json={'name': name, **extra})
    assert res.status_code in (200, 201)
    return res.get_json()


def test_create_session(client):
    res = client.post('/api/sessions/create')
    assert res.status_code == 201
    data = res.get_json()
    assert len(data['session_id']) == 7


def test_join_and_state(client):
    code = _new_session(client)
    res = client.post(f'/api/sessions/{code}/join', json={'name': '  Alice '})
    assert res.status_code == 201
    player = res.get_json()
    assert player['name'] == 'Alice'
    assert player['id'].startswith('player_')
    assert player['current_round_number'] == 1

    res = client.get(f'/api/sessions/{code}')
    assert res.status_code == 200
    state = res.get_json()
    assert state['session']['id'] == code
    assert player['id'] in state['session']['players']
    assert state['leaderboard'][0]['name'] == 'Alice'


def test_session_codes_are_case_insensitive(client):
    code = _new_session(client)
    assert client.get(f'/api/sessions/{code.upper()}').status_code == 200


def test_join_requires_name_and_existing_session(client):
    code = _new_session(client)
    assert client.post(f'/api/sessions/{code}/join', json={'name': '   '}).status_code == 400
    assert client.post(f'/api/sessions/{code}/join', json={}).status_code == 400
    assert client.post('/api/sessions/zzzzzzz/join', json={'name': 'Alice'}).status_code == 404
    assert client.get('/api/sessions/zzzzzzz').status_code == 404
    assert client.get('/api/sessions/zzzzzzz/leaderboard').status_code == 404


def test_rejoin_with_known_player_id_keeps_scores(client):
    code = _new_session(client)
    alice = _join(client, code, 'Alice')
    client.post(f"/api/sessions/{code}/players/{alice['id']}/cards", json={'cards': [8]})
    res = client.post(f'/api/sessions/{code}/join', json={'name': 'Alice', 'player_id': alice['id']})
    assert res.status_code == 200
    assert res.get_json()['current_round_score'] == 8


def test_join_with_client_supplied_id(client):
    code = _new_session(client)
    res = client.post(f'/api/sessions/{code}/join', json={'name': 'Bob', 'player_id': 'player_1_abc'})
    assert res.status_code == 201
    assert res.get_json()['id'] == 'player_1_abc'


def test_round_walkthrough(client):
    code = _new_session(client)
    pid = _join(client, code, 'Alice')['id']
    base = f'/api/sessions/{code}/players/{pid}'

    res = client.post(f'{base}/cards', json={'cards': [5, 7], 'modifiers': [2], 'double': False})
    assert res.status_code == 200
    assert res.get_json()['current_round_score'] == 14

    res = client.post(f'{base}/penalty')
    assert res.get_json()['current_round_score'] == 0
    assert res.get_json()['used_cards_this_round'] == [5, 7]

    # 5 is already used: nothing left to save
    res = client.post(f'{base}/cards', json={'cards': [5]})
    assert res.status_code == 400

    res = client.post(f'{base}/cards', json={'cards': [3], 'double': True})
    assert res.get_json()['current_round_score'] == 6

    res = client.post(f'{base}/bank')
    assert res.status_code == 200
    player = res.get_json()
    assert player['total_score'] == 6
    assert player['rounds'] == [6]
    assert player['current_round_number'] == 2
    assert player['used_cards_this_round'] == []


def test_used_cards_are_dropped_from_a_mixed_selection(client):
    code = _new_session(client)
    pid = _join(client, code, 'Alice')['id']
    base = f'/api/sessions/{code}/players/{pid}'
    client.post(f'{base}/cards', json={'cards': [4]})
    res = client.post(f'{base}/cards', json={'cards': [4, 6]})
    assert res.status_code == 200
    assert res.get_json()['current_round_score'] == 10
    assert res.get_json()['used_cards_this_round'] == [4, 6]


def test_modifiers_apply_to_existing_round_score(client):
    code = _new_session(client)
    pid = _join(client, code, 'Alice')['id']
    base = f'/api/sessions/{code}/players/{pid}'

    # Nothing to adjust yet
    assert client.post(f'{base}/modifiers', json={'modifiers': [4]}).status_code == 400

    client.post(f'{base}/cards', json={'cards': [9]})
    assert client.post(f'{base}/modifiers', json={}).status_code == 400
    res = client.post(f'{base}/modifiers', json={'modifiers': [4], 'double': True, 'cards': [1]})
    assert res.status_code == 200
    player = res.get_json()
    assert player['current_round_score'] == 22
    assert player['used_cards_this_round'] == [9]


def test_preview_does_not_save(client):
    code = _new_session(client)
    pid = _join(client, code, 'Alice')['id']
    base = f'/api/sessions/{code}/players/{pid}'
    client.post(f'{base}/cards', json={'cards': [2]})

    res = client.post(f'{base}/preview', json={'cards': [2, 10, 11], 'modifiers': [6], 'double': True})
    assert res.status_code == 200
    preview = res.get_json()
    assert preview['cards'] == [10, 11]
    assert preview['delta'] == (10 + 11 + 6) * 2
    assert preview['next_round_score'] == 2 + 54

    res = client.post(f'{base}/preview', json={})
    assert res.get_json()['delta'] == 0

    res = client.post(f'{base}/preview', json={'modifiers': [4], 'double': True})
    assert res.get_json()['next_round_score'] == 2 * 2 + 4

    state = client.get(f'/api/sessions/{code}').get_json()
    assert state['session']['players'][pid]['current_round_score'] == 2


def test_bad_selection_input_is_a_400(client):
    code = _new_session(client)
    pid = _join(client, code, 'Alice')['id']
    base = f'/api/sessions/{code}/players/{pid}'
    assert client.post(f'{base}/cards', json={'cards': [13]}).status_code == 400
    assert client.post(f'{base}/cards', json={'cards': '5'}).status_code == 400
    assert client.post(f'{base}/cards', json={'cards': [5], 'modifiers': [3]}).status_code == 400
    res = client.post(f'{base}/cards', json={'cards': [[5]]})
    assert res.status_code == 400
    assert 'error' in res.get_json()
    assert client.post(f'{base}/cards', json={'cards': [5], 'double': 'false'}).status_code == 400
    assert client.post(f'{base}/cards', json={'cards': [5], 'double': 1}).status_code == 400
    assert client.post(f'{base}/preview', json={'cards': [5], 'double': 'yes'}).status_code == 400
    state = client.get(f'/api/sessions/{code}').get_json()
    assert state['session']['players'][pid]['current_round_score'] == 0


def test_bust_clears_round(client):
    code = _new_session(client)
    pid = _join(client, code, 'Alice')['id']
    base = f'/api/sessions/{code}/players/{pid}'
    client.post(f'{base}/cards', json={'cards': [12, 11]})
    client.post(f'{base}/bank')
    client.post(f'{base}/cards', json={'cards': [1, 2]})

    player = client.post(f'{base}/bust').get_json()
    assert player['current_round_score'] == 0
    assert player['used_cards_this_round'] == []
    assert player['total_score'] == 23
    assert player['current_round_number'] == 2


def test_bank_requires_points(client):
    code = _new_session(client)
    pid = _join(client, code, 'Alice')['id']
    assert client.post(f'/api/sessions/{code}/players/{pid}/bank').status_code == 400


def test_unknown_player_is_404(client):
    code = _new_session(client)
    for action in ('cards', 'modifiers', 'penalty', 'bust', 'bank', 'preview'):
        res = client.post(f'/api/sessions/{code}/players/ghost/{action}', json={'cards': [1]})
        assert res.status_code == 404
    res = client.post('/api/sessions/zzzzzzz/players/ghost/bank')
    assert res.status_code == 404


def test_leaderboard_order(client):
    code = _new_session(client)
    a = _join(client, code, 'Ann')['id']
    b = _join(client, code, 'Ben')['id']
    c = _join(client, code, 'Cy')['id']

    def bank_with(pid, cards):
        client.post(f'/api/sessions/{code}/players/{pid}/cards', json={'cards': cards})
        client.post(f'/api/sessions/{code}/players/{pid}/bank')

    # Ann: 20 over two rounds, Ben: 20 in one round, Cy: 5
    bank_with(a, [12, 1])
    bank_with(a, [7])
    bank_with(b, [12, 8])
    bank_with(c, [5])

    board = client.get(f'/api/sessions/{code}/leaderboard').get_json()
    assert [e['id'] for e in board] == [b, a, c]
    assert [e['position'] for e in board] == [1, 2, 3]
    assert board[1]['rounds_played'] == 2


def test_modifier_preview_on_an_empty_round_shows_no_change(client):
    code = _new_session(client)
    pid = _join(client, code, 'Alice')['id']
    base = f'/api/sessions/{code}/players/{pid}'

    res = client.post(f'{base}/preview', json={'modifiers': [4], 'double': True})
    assert res.status_code == 200
    assert res.get_json()['delta'] == 0
    assert res.get_json()['next_round_score'] == 0
    assert client.post(f'{base}/modifiers', json={'modifiers': [4], 'double': True}).status_code == 400

    # Cards still preview normally on an empty round
    res = client.post(f'{base}/preview', json={'cards': [3], 'modifiers': [4]})
    assert res.get_json()['next_round_score'] == 7


def test_join_rejects_overlong_player_id(client):
    code = _new_session(client)
    res = client.post(f'/api/sessions/{code}/join', json={'name': 'Bob', 'player_id': 'p' * 65})
    assert res.status_code == 400
    assert client.get(f'/api/sessions/{code}').get_json()['session']['players'] == {}
    res = client.post(f'/api/sessions/{code}/join', json={'name': 'Bob', 'player_id': 'p' * 64})
    assert res.status_code == 201
