import pytest

YAOUNDE = (3.848, 11.502)


@pytest.fixture
def catalogue(client, pharmacist_headers, make_pharmacy):
    """Three pharmacies around Yaoundé plus one without coordinates."""
    near = make_pharmacy('Pharmacie Proche', 3.850, 11.500)
    mid = make_pharmacy('Pharmacie Moyenne', 3.900, 11.520)
    far = make_pharmacy('Pharmacie Douala', 4.051, 9.768)
    blind = make_pharmacy('Pharmacie Sans GPS')

    for nom, prix, pharmacy in [
        ('Doliprane 500', 2.0, far),
        ('Doliprane 1000', 3.5, near),
        ('Amoxicilline', 6.0, mid),
        ('Efferalgan', 2.5, blind),
        ('Vitamine C', 1.0, None),
    ]:
        body = {'nom': nom, 'prix': prix, 'quantite': 10}
        if pharmacy:
            body['pharmacieId'] = pharmacy.id
        res = client.post('/api/medicaments', json=body, headers=pharmacist_headers)
        assert res.status_code == 201, res.get_json()


def _names(res):
    return [m['nom'] for m in res.get_json()]


def test_list_without_filters_keeps_insertion_order(client, catalogue):
    res = client.get('/api/medicaments')
    assert res.status_code == 200
    assert _names(res) == ['Doliprane 500', 'Doliprane 1000', 'Amoxicilline', 'Efferalgan', 'Vitamine C']
    assert all('distance' not in m for m in res.get_json())


def test_filter_by_name_and_price(client, catalogue):
    assert _names(client.get('/api/medicaments?nom=DOLI')) == ['Doliprane 500', 'Doliprane 1000']
    assert _names(client.get('/api/medicaments?nom=doli&maxprix=3')) == ['Doliprane 500']
    assert _names(client.get('/api/medicaments?maxprix=1')) == ['Vitamine C']


def test_name_filter_is_literal(client, catalogue):
    assert _names(client.get('/api/medicaments?nom=.*')) == []


def test_location_sorts_nearest_first(client, catalogue):
    res = client.get(f'/api/medicaments?latitude={YAOUNDE[0]}&longitude={YAOUNDE[1]}')
    data = res.get_json()
    assert _names(res) == ['Doliprane 1000', 'Amoxicilline', 'Doliprane 500', 'Efferalgan', 'Vitamine C']

    located = [m['distance'] for m in data[:3]]
    assert located == sorted(located)
    assert located[0] < 1
    assert 150 < located[2] < 250
    assert 'distance' not in data[3]
    assert 'distance' not in data[4]


def test_result_shape(client, catalogue):
    item = client.get('/api/medicaments?nom=1000').get_json()[0]
    assert item['prix'] == 3.5
    assert item['quantite'] == 10
    assert item['datePoste']
    assert item['pharmacien']['email'] == 'pharma@example.com'
    assert item['pharmacien']['telephone'] == '+237 600 00 00 00'
    assert item['pharmacie']['nom'] == 'Pharmacie Proche'
    assert item['pharmacie']['latitude'] == 3.85


@pytest.mark.parametrize('query', [
    'maxprix=abc',
    'maxprix=nan',
    'latitude=abc&longitude=11.5',
    'latitude=3.8',
    'latitude=95&longitude=11.5',
    'latitude=nan&longitude=nan',
])
def test_malformed_numbers_are_ignored(client, catalogue, query):
    res = client.get(f'/api/medicaments?{query}')
    assert res.status_code == 200
    assert _names(res)[0] == 'Doliprane 500'
    assert len(res.get_json()) == 5
    assert all('distance' not in m for m in res.get_json())


def test_only_pharmacists_can_create(client, make_account, login):
    make_account('c@x')
    res = client.post('/api/medicaments', json={'nom': 'X', 'prix': 1, 'quantite': 1},
                      headers=login('c@x'))
    assert res.status_code == 403
    assert client.post('/api/medicaments', json={'nom': 'X', 'prix': 1, 'quantite': 1}).status_code == 401


@pytest.mark.parametrize('body', [
    {'prix': 1, 'quantite': 1},
    {'nom': 'X', 'prix': -1, 'quantite': 1},
    {'nom': 'X', 'prix': 'cher', 'quantite': 1},
    {'nom': 'X', 'prix': 1, 'quantite': 1.5},
    {'nom': 'X', 'prix': 1, 'quantite': 1, 'pharmacieId': 404},
])
def test_create_validates_body(client, pharmacist_headers, body):
    assert client.post('/api/medicaments', json=body, headers=pharmacist_headers).status_code == 400


def test_owner_can_update_and_delete(client, pharmacist_headers):
    res = client.post('/api/medicaments', json={'nom': 'Aspirine', 'prix': 1.2, 'quantite': 4},
                      headers=pharmacist_headers)
    med_id = res.get_json()['id']

    res = client.put(f'/api/medicaments/{med_id}', json={'prix': 1.5, 'pharmacienId': 999},
                     headers=pharmacist_headers)
    assert res.status_code == 200
    item = client.get('/api/medicaments?nom=aspirine').get_json()[0]
    assert item['prix'] == 1.5
    assert item['pharmacien']['email'] == 'pharma@example.com'

    assert client.delete(f'/api/medicaments/{med_id}', headers=pharmacist_headers).status_code == 200
    assert client.get('/api/medicaments?nom=aspirine').get_json() == []


def test_other_accounts_cannot_touch_medication(client, pharmacist_headers, make_account, login):
    res = client.post('/api/medicaments', json={'nom': 'Aspirine', 'prix': 1.2, 'quantite': 4},
                      headers=pharmacist_headers)
    med_id = res.get_json()['id']

    make_account('other@x', role='pharmacien')
    other = login('other@x')
    assert client.put(f'/api/medicaments/{med_id}', json={'prix': 0}, headers=other).status_code == 403
    assert client.delete(f'/api/medicaments/{med_id}', headers=other).status_code == 403
    assert client.delete('/api/medicaments/999', headers=pharmacist_headers).status_code == 403
