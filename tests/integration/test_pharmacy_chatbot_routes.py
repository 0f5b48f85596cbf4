from medimarket.chatbot import ChatbotError


def test_create_and_list_pharmacies(client):
    res = client.post('/api/pharmacies', json={
        'nom': 'Pharmacie du Soleil', 'adresse': 'Bastos, Yaoundé',
        'latitude': 3.89, 'longitude': 11.51
    })
    assert res.status_code == 201
    created = res.get_json()
    assert created['id'] == 1
    assert created['latitude'] == 3.89

    client.post('/api/pharmacies', json={'nom': 'Pharmacie Nord', 'adresse': 'Mokolo'})

    listed = client.get('/api/pharmacies').get_json()
    assert [p['nom'] for p in listed] == ['Pharmacie du Soleil', 'Pharmacie Nord']
    assert listed[1]['latitude'] is None


def test_pharmacy_requires_name_address_and_valid_coordinates(client):
    assert client.post('/api/pharmacies', json={'nom': 'X'}).status_code == 400
    assert client.post('/api/pharmacies', json={'adresse': 'Y'}).status_code == 400
    res = client.post('/api/pharmacies', json={'nom': 'X', 'adresse': 'Y', 'latitude': 120})
    assert res.status_code == 400
    res = client.post('/api/pharmacies', json={'nom': 'X', 'adresse': 'Y', 'longitude': 'east'})
    assert res.status_code == 400


def test_chatbot_returns_completion_verbatim(client, chatbot):
    res = client.post('/api/chatbot', json={'question': 'Dose maximale de paracétamol ?'})
    assert res.status_code == 200
    assert res.get_json() == chatbot.response
    assert chatbot.questions == ['Dose maximale de paracétamol ?']


def test_chatbot_requires_question(client, chatbot):
    res = client.post('/api/chatbot', json={})
    assert res.status_code == 400
    assert res.get_json()['message'] == "La question est requise"
    assert chatbot.questions == []


def test_chatbot_failure_maps_to_500(client, chatbot):
    chatbot.error = ChatbotError({'message': 'Unauthorized'})
    res = client.post('/api/chatbot', json={'question': 'Bonjour'})
    assert res.status_code == 500
    assert res.get_json() == {'message': "Erreur avec l'IA", 'erreur': {'message': 'Unauthorized'}}
