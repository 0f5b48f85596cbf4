import pytest

from medimarket import create_app, get_market
from medimarket.auth import hash_password
from medimarket.config import MarketConfig
from medimarket.models import Account, Pharmacy


class MemoryConfig(MarketConfig):
    TESTING = True
    STORE_BACKEND = 'memory'
    CACHE_TYPE = 'NullCache'
    BCRYPT_ROUNDS = 4
    JWT_SECRET_KEY = 'test-secret-key-long-enough-for-hs256-signing'
    MISTRAL_API_KEY = 'test-key'
    CORS_ORIGINS = '*'
    LOG_LEVEL = 'WARNING'


class StubChatbot:
    """Records questions and answers with a canned completion."""

    def __init__(self):
        self.questions = []
        self.error = None
        self.response = {
            'id': 'cmpl-1',
            'choices': [{'message': {'role': 'assistant', 'content': 'Prenez du repos.'}}],
        }

    def ask(self, question):
        self.questions.append(question)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def chatbot():
    return StubChatbot()


@pytest.fixture
def app(chatbot):
    return create_app(MemoryConfig(), chatbot=chatbot)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_account(app):
    def _make(email, password='secret', role='utilisateur', valide=True, telephone=None):
        with app.app_context():
            return get_market().accounts.save(Account(
                email=email,
                password=hash_password(password),
                role=role,
                valide=valide,
                telephone=telephone,
            ))
    return _make


@pytest.fixture
def make_pharmacy(app):
    def _make(nom, latitude=None, longitude=None, adresse='Centre-ville'):
        with app.app_context():
            return get_market().pharmacies.save(Pharmacy(
                nom=nom, adresse=adresse, latitude=latitude, longitude=longitude
            ))
    return _make


@pytest.fixture
def login(client):
    def _login(email, password='secret'):
        res = client.post('/api/connexion', json={'email': email, 'password': password})
        assert res.status_code == 200, res.get_json()
        return {'Authorization': f"Bearer {res.get_json()['token']}"}
    return _login


@pytest.fixture
def pharmacist_headers(make_account, login):
    make_account('pharma@example.com', role='pharmacien', telephone='+237 600 00 00 00')
    return login('pharma@example.com')


@pytest.fixture
def admin_headers(make_account, login):
    make_account('admin@example.com', role='admin')
    return login('admin@example.com')
