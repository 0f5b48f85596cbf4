def test_service_info_and_health(client):
    assert client.get('/').get_json()['status'] == 'ok'
    res = client.get('/api/health')
    assert res.status_code == 200
    assert res.get_json()['database'] == {'status': 'connected', 'backend': 'memory'}


def test_consumer_can_register_and_login(client):
    res = client.post('/api/inscription', json={
        'email': 'Client@Example.com', 'password': 'pw', 'role': 'utilisateur'
    })
    assert res.status_code == 201

    res = client.post('/api/connexion', json={'email': 'client@example.com', 'password': 'pw'})
    assert res.status_code == 200
    assert res.get_json()['token']


def test_register_requires_fields_and_known_role(client):
    assert client.post('/api/inscription', json={'email': 'a@x', 'password': 'pw'}).status_code == 400
    res = client.post('/api/inscription', json={'email': 'a@x', 'password': 'pw', 'role': 'root'})
    assert res.status_code == 400
    assert res.get_json()['message'] == "Rôle invalide."


def test_register_rejects_unknown_pharmacy(client):
    res = client.post('/api/inscription', json={
        'email': 'p@x', 'password': 'pw', 'role': 'pharmacien', 'pharmacieId': 99
    })
    assert res.status_code == 400


def test_duplicate_email_conflicts(client):
    body = {'email': 'a@x', 'password': 'pw', 'role': 'utilisateur'}
    assert client.post('/api/inscription', json=body).status_code == 201
    assert client.post('/api/inscription', json=body).status_code == 409


def test_wrong_password_rejected(client, make_account):
    make_account('a@x', password='right')
    res = client.post('/api/connexion', json={'email': 'a@x', 'password': 'wrong'})
    assert res.status_code == 401
    assert res.get_json()['message'] == "Mot de passe incorrect."


def test_pharmacist_waits_for_admin_validation(client, admin_headers):
    client.post('/api/inscription', json={
        'email': 'pharma@x', 'password': 'pw', 'role': 'pharmacien', 'telephone': '699'
    })

    res = client.post('/api/connexion', json={'email': 'pharma@x', 'password': 'pw'})
    assert res.status_code == 401

    users = client.get('/api/utilisateurs', headers=admin_headers).get_json()
    pending = next(u for u in users if u['email'] == 'pharma@x')
    assert pending['valide'] is False
    assert 'password' not in pending

    res = client.put(f"/api/valider/{pending['id']}", headers=admin_headers)
    assert res.status_code == 200

    res = client.post('/api/connexion', json={'email': 'pharma@x', 'password': 'pw'})
    assert res.status_code == 200


def test_validate_unknown_account(client, admin_headers):
    assert client.put('/api/valider/999', headers=admin_headers).status_code == 404


def test_admin_routes_require_admin_token(client, make_account, login):
    assert client.get('/api/utilisateurs').status_code == 401

    make_account('c@x')
    res = client.get('/api/utilisateurs', headers=login('c@x'))
    assert res.status_code == 403
    assert client.put('/api/valider/1', headers=login('c@x')).status_code == 403


def test_garbage_token_rejected(client):
    res = client.get('/api/utilisateurs', headers={'Authorization': 'Bearer not.a.jwt'})
    assert res.status_code == 401
    assert res.get_json()['message'] == "Token invalide."
