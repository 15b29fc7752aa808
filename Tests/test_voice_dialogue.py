import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import json
import pytest
from collections import namedtuple
from Main import create_app
from config import TestingConfig
from Modules.models import db, Transaction
from Modules.auth import AuthService
from Modules.voice_dialogue import DialogueState, Stage, advance

Item = namedtuple('Item', ['id', 'name'])

DOMAINS = [Item(1, 'Food'), Item(2, 'Rent')]
GOALS = [Item(7, 'Vacation')]


# --- Máquina de estados ---

def test_full_sentence_completes_in_one_turn():
    step = advance(DialogueState(), "spent 200 on food", DOMAINS, GOALS, now=100)

    assert step.state.stage == Stage.COMPLETE
    assert step.prompt_key == 'success'
    assert step.transaction == {
        'amount': 200, 'type': 'expense', 'domain_id': 1, 'goal_id': None,
        'description': 'spent 200 on food'
    }


def test_step_by_step_expense():
    step = advance(DialogueState(), "200", DOMAINS, GOALS, now=100)
    assert step.state.stage == Stage.ASKING_TYPE
    assert step.prompt_key == 'prompt_type'

    step = advance(step.state, "expense", DOMAINS, GOALS, now=105)
    assert step.state.stage == Stage.ASKING_CATEGORY
    assert step.prompt_key == 'prompt_category'

    step = advance(step.state, "rent", DOMAINS, GOALS, now=110)
    assert step.state.stage == Stage.COMPLETE
    assert step.transaction['domain_id'] == 2
    assert step.transaction['amount'] == 200


def test_asks_for_amount_first():
    step = advance(DialogueState(), "add income", DOMAINS, GOALS, now=100)
    assert step.state.stage == Stage.ASKING_AMOUNT
    assert step.prompt_key == 'prompt_amount'

    step = advance(step.state, "no sé", DOMAINS, GOALS, now=105)
    assert step.state.stage == Stage.ASKING_AMOUNT
    assert step.prompt_key == 'prompt_valid_amount'


def test_type_not_understood():
    step = advance(DialogueState(), "200", DOMAINS, GOALS, now=100)
    step = advance(step.state, "banana", DOMAINS, GOALS, now=105)
    assert step.state.stage == Stage.ASKING_TYPE
    assert step.prompt_key == 'prompt_not_caught'


def test_unknown_category_is_asked_again():
    step = advance(DialogueState(), "spent 50", DOMAINS, GOALS, now=100)
    step = advance(step.state, "movies", DOMAINS, GOALS, now=105)
    assert step.state.stage == Stage.ASKING_CATEGORY
    assert step.prompt_key == 'prompt_no_category'


def test_income_with_goals_asks_for_goal():
    step = advance(DialogueState(), "received 1000 salary", DOMAINS, GOALS, now=100)
    assert step.state.stage == Stage.ASKING_GOAL

    step = advance(step.state, "the vacation one", DOMAINS, GOALS, now=105)
    assert step.state.stage == Stage.COMPLETE
    assert step.transaction['goal_id'] == 7
    assert step.transaction['type'] == 'income'


def test_income_to_general_balance():
    step = advance(DialogueState(), "received 1000", DOMAINS, GOALS, now=100)
    step = advance(step.state, "general", DOMAINS, GOALS, now=105)
    assert step.state.stage == Stage.COMPLETE
    assert step.transaction['goal_id'] is None


def test_income_without_goals_completes():
    step = advance(DialogueState(), "received 1000", DOMAINS, [], now=100)
    assert step.state.stage == Stage.COMPLETE
    assert step.transaction['domain_id'] is None


def test_cancel_resets_dialogue():
    step = advance(DialogueState(), "200", DOMAINS, GOALS, now=100)
    step = advance(step.state, "cancel", DOMAINS, GOALS, now=105)

    assert step.state.stage == Stage.IDLE
    assert step.state.amount is None
    assert step.prompt_key == 'cancelled'


def test_repeated_utterance_is_ignored():
    step = advance(DialogueState(), "200", DOMAINS, GOALS, now=100)
    repeated = advance(step.state, "200", DOMAINS, GOALS, now=101)
    assert repeated.ignored is True
    assert repeated.state.stage == Stage.ASKING_TYPE

    # Pasada la ventana se procesa de nuevo
    later = advance(step.state, "200", DOMAINS, GOALS, now=110)
    assert later.ignored is False


def test_state_survives_json_round_trip():
    step = advance(DialogueState(), "200", DOMAINS, GOALS, now=100)
    restored = DialogueState.from_dict(json.loads(json.dumps(step.state.to_dict())))
    assert restored == step.state


def test_unknown_stage_falls_back_to_idle():
    assert DialogueState.from_dict({'stage': 'bailando'}).stage == Stage.IDLE
    assert DialogueState.from_dict(None) == DialogueState()


# --- Ruta del asistente ---

@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        AuthService.register_user('dialog_user', 'dialog@finance.com', 'securepass')
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def headers(client):
    response = client.post('/api/auth/login', json={"username": "dialog_user", "password": "securepass"})
    token = response.get_json()['token']
    headers = {'Authorization': f"Bearer {token}"}
    client.post('/api/finance/domains', json={"name": "Food", "expected_amount": 1000}, headers=headers)
    return headers


def test_voice_command_one_shot(client, headers):
    response = client.post('/api/finance/voice-command', json={"utterance": "spent 200 on food"}, headers=headers)

    assert response.status_code == 201
    data = response.get_json()
    assert data['transaction']['source'] == 'voice'
    assert data['transaction']['domain_name'] == 'Food'
    assert data['budget_used_percent'] == 20
    assert data['state']['stage'] == 'idle'


def test_voice_command_multi_turn(client, headers):
    first = client.post('/api/finance/voice-command', json={"utterance": "200"}, headers=headers)
    assert first.status_code == 200
    assert first.get_json()['prompt_key'] == 'prompt_type'

    second = client.post('/api/finance/voice-command',
                         json={"utterance": "expense", "state": first.get_json()['state']}, headers=headers)
    assert second.get_json()['prompt_key'] == 'prompt_category'
    assert Transaction.query.count() == 0

    third = client.post('/api/finance/voice-command',
                        json={"utterance": "food", "state": second.get_json()['state']}, headers=headers)
    assert third.status_code == 201
    assert Transaction.query.one().source == 'voice'


def test_voice_command_requires_utterance(client, headers):
    response = client.post('/api/finance/voice-command', json={}, headers=headers)
    assert response.status_code == 400


def test_state_from_client_is_coerced():
    state = DialogueState.from_dict({
        'stage': 'asking_type', 'amount': '200', 'domain_id': '3', 'goal_id': 'x',
        'type': 'regalo', 'last_timestamp': 'ayer'
    })
    assert state.amount == 200.0
    assert state.domain_id == 3
    assert state.goal_id is None
    assert state.type is None
    assert state.last_timestamp == 0.0


@pytest.mark.parametrize("amount", ["doscientos", -5, "nan", True, [200]])
def test_invalid_amount_in_state_is_dropped(amount):
    state = DialogueState.from_dict({'stage': 'asking_type', 'amount': amount})
    assert state.amount is None

    step = advance(state, "income", DOMAINS, [], now=100)
    assert step.state.stage == Stage.ASKING_AMOUNT


def test_voice_command_with_string_amount_in_state(client, headers):
    response = client.post('/api/finance/voice-command', json={
        "utterance": "ingreso",
        "state": {"stage": "asking_type", "amount": "200"}
    }, headers=headers)

    assert response.status_code == 201
    assert response.get_json()['transaction']['amount'] == 200
    assert response.get_json()['transaction']['type'] == 'income'


@pytest.mark.parametrize("payload", [
    {"utterance": "ingreso", "state": {"stage": "asking_type", "amount": {"valor": 1}}},
    {"utterance": "ingreso", "state": "asking_type"},
])
def test_voice_command_malformed_state_is_not_a_server_error(client, headers, payload):
    response = client.post('/api/finance/voice-command', json=payload, headers=headers)
    assert response.status_code == 200
    assert response.get_json()['prompt_key'] == 'prompt_amount'


def test_voice_command_utterance_must_be_text(client, headers):
    response = client.post('/api/finance/voice-command', json={"utterance": 200}, headers=headers)
    assert response.status_code == 400
