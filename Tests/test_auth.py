import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
import json
from Main import create_app
from config import TestingConfig
from Modules.models import db, User

# Fixture para configurar la aplicación de pruebas con SQLite en memoria
@pytest.fixture
def app():
    """Configura la app para pruebas usando la clase TestingConfig."""
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture
def client(app):
    """Crea un cliente de prueba para hacer solicitudes HTTP."""
    return app.test_client()

def signup(client, username='ana', email='ana@pocketpilot.com', password='secreta123'):
    return client.post(
        '/api/auth/signup',
        data=json.dumps(dict(username=username, email=email, password=password)),
        content_type='application/json'
    )

def login(client, username='ana', password='secreta123'):
    return client.post('/api/auth/login', json={"username": username, "password": password})

def auth_headers(client):
    signup(client)
    token = login(client).get_json()['token']
    return {'Authorization': f'Bearer {token}'}


def test_signup_success(client):
    """Prueba el registro exitoso de un nuevo usuario."""
    response = signup(client)
    assert response.status_code == 201
    assert 'user_id' in response.get_json()

    user = User.query.filter_by(username='ana').first()
    assert user is not None
    # La contraseña nunca se guarda en texto plano
    assert user.password_hash != 'secreta123'
    assert user.theme == 'light'
    assert user.language == 'en'

def test_signup_missing_fields(client):
    response = client.post('/api/auth/signup', json={"username": "sinemail", "password": "x"})
    assert response.status_code == 400
    assert 'error' in response.get_json()

def test_signup_duplicate_username_or_email(client):
    """Prueba que no se pueda registrar un usuario o email ya existente."""
    signup(client)
    same_username = signup(client, email='otro@pocketpilot.com')
    same_email = signup(client, username='otra')

    assert same_username.status_code == 409
    assert same_email.status_code == 409
    assert 'ya existen' in same_email.get_json()['error']

def test_login_returns_token_and_profile(client):
    signup(client)
    response = login(client)

    assert response.status_code == 200
    data = response.get_json()
    assert data['token']
    assert data['user']['username'] == 'ana'
    assert data['user']['email'] == 'ana@pocketpilot.com'

def test_login_invalid_password(client):
    """Prueba el inicio de sesión con contraseña incorrecta."""
    signup(client)
    response = login(client, password='incorrecta')
    assert response.status_code == 401
    assert 'Credenciales inválidas.' in response.get_json()['error']

def test_login_nonexistent_user(client):
    response = login(client, username='nadie')
    assert response.status_code == 401
    assert 'Credenciales inválidas.' in response.get_json()['error']

def test_protected_route_requires_token(client):
    response = client.get('/api/auth/profile')
    assert response.status_code == 401
    assert 'error' in response.get_json()

def test_protected_route_rejects_invalid_token(client):
    response = client.get('/api/auth/profile', headers={'Authorization': 'Bearer no.es.un.token'})
    assert response.status_code == 401
    assert 'error' in response.get_json()

def test_get_profile(client):
    headers = auth_headers(client)
    response = client.get('/api/auth/profile', headers=headers)

    assert response.status_code == 200
    profile = response.get_json()
    assert profile['username'] == 'ana'
    assert profile['profile_photo'] == ''
    assert 'password_hash' not in profile

def test_update_profile_changes_only_given_fields(client):
    headers = auth_headers(client)
    response = client.put('/api/auth/profile', json={"theme": "dark", "language": "hi"}, headers=headers)
    assert response.status_code == 200

    profile = client.get('/api/auth/profile', headers=headers).get_json()
    assert profile['theme'] == 'dark'
    assert profile['language'] == 'hi'
    assert profile['email'] == 'ana@pocketpilot.com'

def test_update_profile_password_allows_new_login(client):
    headers = auth_headers(client)
    client.put('/api/auth/profile', json={"password": "nueva456"}, headers=headers)

    assert login(client, password='secreta123').status_code == 401
    assert login(client, password='nueva456').status_code == 200

def test_update_profile_email_taken(client):
    headers = auth_headers(client)
    signup(client, username='bruno', email='bruno@pocketpilot.com')

    response = client.put('/api/auth/profile', json={"email": "bruno@pocketpilot.com"}, headers=headers)
    assert response.status_code == 409
