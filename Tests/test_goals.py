import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
import json
from Main import create_app
from config import TestingConfig
from Modules.models import db, User, Goal
from Modules.auth import AuthService
from Modules.goals import GoalService, goal_rates
from Modules.services import FinanceService
from datetime import datetime

@pytest.fixture
def app():
    """Configura la app para pruebas con la DB en memoria."""
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        # Crear usuario de prueba
        AuthService.register_user('goal_user', 'goal_user@finance.com', 'securepass')
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture
def client(app):
    """Crea un cliente de prueba para hacer solicitudes HTTP."""
    return app.test_client()

@pytest.fixture
def test_user_id(app):
    """Retorna el ID del usuario de prueba."""
    user = User.query.filter_by(email='goal_user@finance.com').first()
    return user.id

@pytest.fixture
def headers(client):
    response = client.post('/api/auth/login', json={"username": "goal_user", "password": "securepass"})
    return {'Authorization': f"Bearer {response.get_json()['token']}"}

def create_temp_goal(client, headers, name, target, months):
    """Función de ayuda para crear una meta y retornar su ID."""
    response = client.post(
        '/api/goals',
        data=json.dumps(dict(name=name, target_amount=target, months=months)),
        content_type='application/json',
        headers=headers
    )
    if response.status_code != 201:
        raise Exception(f"Fallo en create_temp_goal con status {response.status_code}: {response.get_json()}")
    return response.get_json()['id']


def test_goal_rates():
    monthly, daily = goal_rates(3000, 1)
    assert monthly == 3000
    assert daily == 100

def test_create_goal_success(client, headers):
    goal_id = create_temp_goal(client, headers, "Laptop", 60000, 6)

    goal = db.session.get(Goal, goal_id)
    assert goal.name == "Laptop"
    assert float(goal.target_amount) == 60000
    assert goal.months == 6

@pytest.mark.parametrize("payload", [
    dict(name="Sin meses", target_amount=1000),
    dict(name="Cero", target_amount=0, months=3),
    dict(name="Negativa", target_amount=1000, months=-2),
    dict(name="Texto", target_amount="mil", months=2),
])
def test_create_goal_invalid(client, headers, payload):
    response = client.post('/api/goals', json=payload, headers=headers)
    assert response.status_code == 400
    assert Goal.query.count() == 0

@pytest.mark.parametrize("months", [1.5, "2.25", "nan", True])
def test_create_goal_rejects_fractional_months(client, headers, months):
    response = client.post('/api/goals', json=dict(name="Parcial", target_amount=3000, months=months), headers=headers)
    assert response.status_code == 400
    assert Goal.query.count() == 0

def test_create_goal_accepts_whole_months_as_text_or_float(client, headers):
    first = create_temp_goal(client, headers, "Texto", 3000, "2")
    second = create_temp_goal(client, headers, "Decimal", 3000, 3.0)

    assert db.session.get(Goal, first).months == 2
    assert db.session.get(Goal, second).months == 3

def test_list_goals_with_required_savings(client, headers):
    create_temp_goal(client, headers, "Viaje", 9000, 3)

    response = client.get('/api/goals', headers=headers)
    assert response.status_code == 200
    goals = response.get_json()
    assert len(goals) == 1
    assert goals[0]['monthly_savings'] == 3000
    assert goals[0]['daily_savings'] == 100

def test_latest_goal_is_most_recent(client, headers, test_user_id):
    create_temp_goal(client, headers, "Primera", 1000, 1)
    create_temp_goal(client, headers, "Segunda", 2000, 2)

    assert GoalService.latest_goal(test_user_id).name == "Segunda"
    assert client.get('/api/goals', headers=headers).get_json()[0]['name'] == "Segunda"

def test_forecast_without_goal(client, headers):
    response = client.get('/api/goals/forecast', headers=headers)
    assert response.status_code == 404

def test_forecast_behind_schedule(app, test_user_id):
    goal, _ = GoalService.create_goal(test_user_id, "Moto", 6000, 3)
    goal.created_at = datetime(2026, 1, 1)
    db.session.commit()
    FinanceService.record_transaction(test_user_id, 2000, 'income', date=datetime(2026, 1, 15))

    # 60 días transcurridos = 2 meses; ritmo real 1000 por mes
    result, status = GoalService.forecast(test_user_id, now=datetime(2026, 3, 2))
    assert status == 200
    assert result['goal_name'] == "Moto"
    assert result['monthly_savings_rate'] == 1000
    assert result['estimated_months_to_goal'] == 6.0
    assert result['on_track'] is False
    assert result['shortfall_amount'] == 3000

def test_forecast_on_track(app, test_user_id):
    goal, _ = GoalService.create_goal(test_user_id, "Celular", 3000, 6)
    goal.created_at = datetime(2026, 1, 1)
    db.session.commit()
    FinanceService.record_transaction(test_user_id, 1500, 'income', date=datetime(2026, 1, 20))

    result, _ = GoalService.forecast(test_user_id, now=datetime(2026, 1, 31))
    assert result['on_track'] is True
    assert result['shortfall_amount'] == 0

def test_forecast_negative_balance_uses_minimum_rate(app, test_user_id):
    goal, _ = GoalService.create_goal(test_user_id, "Fondo", 1000, 2)
    domain, _ = FinanceService.create_domain(test_user_id, "Renta", 500)
    FinanceService.record_transaction(test_user_id, 300, 'expense', domain_id=domain.id)

    result, _ = GoalService.forecast(test_user_id)
    assert result['monthly_savings_rate'] == 0.01
    assert result['on_track'] is False
