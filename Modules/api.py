from flask import Blueprint, request, jsonify
from datetime import MINYEAR, MAXYEAR
from flask_jwt_extended import jwt_required, get_jwt_identity
from Modules.auth import AuthService
from Modules.services import FinanceService
from Modules.goals import GoalService
from Modules.performance import DailyPerformanceService
from Modules.planning import BudgetPlanService, VoicePlanService
from Modules.parsers import parse_sms, ParseError
from Modules.voice_dialogue import DialogueState, Stage, advance
from Modules.models import Domain, Goal
from Modules.errors import error_response

# Crea un Blueprint para organizar las rutas de la API
api_bp = Blueprint('api', __name__, url_prefix='/api')


def current_user_id():
    """ID del usuario autenticado (el token guarda la identidad como texto)."""
    return int(get_jwt_identity())


def json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def clarification_response(e):
    """400 con el campo que falta y la pregunta a formular."""
    return error_response(str(e), 400, clarification=e.field, prompt=e.prompt)


def valid_year(year):
    """Año consultable: el mes de diciembre debe poder cerrarse en el año siguiente."""
    return MINYEAR <= year < MAXYEAR


@api_bp.route('/health', methods=['GET'])
def health_check():
    return jsonify({"service_name": "PocketPilot", "status": "healthy"}), 200

# --- Rutas de Autenticación ---

@api_bp.route('/auth/signup', methods=['POST'])
def signup():
    """Ruta para el registro de nuevos usuarios."""
    data = json_body()
    result, status_code = AuthService.register_user(
        data.get('username'), data.get('email'), data.get('password')
    )
    if status_code != 201:
        return error_response(result, status_code)
    return jsonify({"message": "Cuenta creada con éxito.", "user_id": result.id}), 201

@api_bp.route('/auth/login', methods=['POST'])
def login():
    """Ruta para el inicio de sesión; retorna el token y el perfil."""
    data = json_body()
    result, status_code = AuthService.login_user(data.get('username'), data.get('password'))
    if status_code != 200:
        return error_response(result, status_code)

    token, user = result
    return jsonify({"token": token, "user": user.to_profile()}), 200

@api_bp.route('/auth/profile', methods=['GET'])
@jwt_required()
def get_profile():
    result, status_code = AuthService.get_profile(current_user_id())
    if status_code != 200:
        return error_response(result, status_code)
    return jsonify(result), 200

@api_bp.route('/auth/profile', methods=['PUT'])
@jwt_required()
def update_profile():
    data = json_body()
    result, status_code = AuthService.update_profile(
        current_user_id(),
        language=data.get('language'),
        theme=data.get('theme'),
        email=data.get('email'),
        password=data.get('password'),
        profile_photo=data.get('profile_photo')
    )
    if status_code != 200:
        return error_response(result, status_code)
    return jsonify({"message": "Perfil actualizado."}), 200

# --- Rutas de Dominios ---

@api_bp.route('/finance/domains', methods=['GET'])
@jwt_required()
def list_domains():
    return jsonify(FinanceService.list_domains(current_user_id())), 200

@api_bp.route('/finance/domains', methods=['POST'])
@jwt_required()
def create_domain():
    data = json_body()
    result, status_code = FinanceService.create_domain(
        current_user_id(), data.get('name'), data.get('expected_amount')
    )
    if status_code != 201:
        return error_response(result, status_code)
    return jsonify(result.to_dict()), 201

# --- Rutas de Transacciones ---

def transaction_created_response(transaction, message):
    body = {
        "id": transaction.id,
        "message": message,
        "transaction": transaction.to_dict()
    }
    used = FinanceService.budget_used_percent(transaction)
    if used is not None:
        body["budget_used_percent"] = used
    return jsonify(body), 201

@api_bp.route('/finance/transactions', methods=['POST'])
@jwt_required()
def add_transaction():
    """Ruta para agregar una transacción manual o dictada por voz."""
    data = json_body()
    if not data.get('amount') or not data.get('type'):
        return error_response("El monto y el tipo son obligatorios.", 400)

    result, status_code = FinanceService.record_transaction(
        current_user_id(),
        data.get('amount'),
        data.get('type'),
        domain_id=data.get('domain_id'),
        goal_id=data.get('goal_id'),
        description=data.get('description'),
        source=data.get('source') or 'manual'
    )
    if status_code != 201:
        return error_response(result, status_code)
    return transaction_created_response(result, "Transacción registrada.")

@api_bp.route('/finance/transactions/sms', methods=['POST'])
@jwt_required()
def add_sms_transaction():
    """
    Guarda un movimiento detectado en un SMS. Acepta el texto crudo
    ('message') o el monto y tipo ya interpretados.
    """
    data = json_body()
    amount, type_, description = data.get('amount'), data.get('type'), None

    if data.get('message') and (amount is None or type_ is None):
        try:
            parsed = parse_sms(data['message'])
        except ParseError as e:
            return clarification_response(e)
        amount, type_, description = parsed.amount, parsed.type, parsed.description

    result, status_code = FinanceService.record_sms_transaction(
        current_user_id(), amount, type_,
        domain_id=data.get('domain_id'),
        description=description
    )
    if status_code != 201:
        return error_response(result, status_code)
    return transaction_created_response(result, "Transacción por SMS guardada con éxito.")

@api_bp.route('/finance/transactions', methods=['GET'])
@jwt_required()
def list_transactions():
    month = request.args.get('month', type=int)
    year = request.args.get('year', type=int)
    if month is not None and not 1 <= month <= 12:
        return error_response("Mes inválido.", 400)
    if year is not None and not valid_year(year):
        return error_response("Año inválido.", 400)
    return jsonify(FinanceService.list_transactions(current_user_id(), month, year)), 200

# --- Resumen y desempeño diario ---

@api_bp.route('/finance/summary', methods=['GET'])
@jwt_required()
def get_summary():
    return jsonify(FinanceService.get_summary(current_user_id())), 200

@api_bp.route('/finance/daily-performance', methods=['GET'])
@jwt_required()
def daily_performance():
    return jsonify(DailyPerformanceService.evaluate(current_user_id())), 200

@api_bp.route('/finance/daily-history', methods=['GET'])
@jwt_required()
def daily_history():
    year = request.args.get('year', type=int)
    if year is not None and not valid_year(year):
        return error_response("Año inválido.", 400)
    return jsonify(DailyPerformanceService.history(current_user_id(), year)), 200

# --- Planes de presupuesto ---

@api_bp.route('/finance/budget-plan', methods=['POST'])
@jwt_required()
def create_budget_plan():
    data = json_body()
    domain_ids = data.get('domains')
    if not data.get('total_budget') or not data.get('days') or not domain_ids:
        return error_response("Faltan campos obligatorios (total_budget, days, domains).", 400)
    try:
        domain_ids = [int(d) for d in domain_ids]
    except (TypeError, ValueError):
        return error_response("Lista de dominios inválida.", 400)

    result, status_code = BudgetPlanService.create_plan(
        current_user_id(),
        data.get('total_budget'),
        data.get('days'),
        domain_ids,
        month=data.get('month'),
        year=data.get('year')
    )
    if status_code != 201:
        return error_response(result, status_code)
    return jsonify(result.to_dict()), 201

@api_bp.route('/finance/budget-plan/latest', methods=['GET'])
@jwt_required()
def latest_budget_plan():
    result, status_code = BudgetPlanService.latest_plan(current_user_id())
    if status_code != 200:
        return error_response(result, status_code)
    return jsonify(result.to_dict()), 200

@api_bp.route('/finance/voice-plan', methods=['POST'])
@jwt_required()
def create_voice_plan():
    data = json_body()
    try:
        result, status_code = VoicePlanService.create_plan(
            current_user_id(),
            text=data.get('text') or data.get('original_text'),
            amount=data.get('parsed_amount'),
            duration=data.get('parsed_duration')
        )
    except ParseError as e:
        return clarification_response(e)
    if status_code != 201:
        return error_response(result, status_code)
    return jsonify(result.to_dict()), 201

@api_bp.route('/finance/voice-plan', methods=['GET'])
@jwt_required()
def list_voice_plans():
    return jsonify([p.to_dict() for p in VoicePlanService.list_plans(current_user_id())]), 200

@api_bp.route('/finance/voice-plan/latest', methods=['GET'])
@jwt_required()
def latest_voice_plan():
    result, status_code = VoicePlanService.latest_plan(current_user_id())
    if status_code != 200:
        return error_response(result, status_code)
    return jsonify(result.to_dict()), 200

# --- Asistente por voz ---

@api_bp.route('/finance/voice-command', methods=['POST'])
@jwt_required()
def voice_command():
    """
    Avanza el diálogo por voz con una frase. El cliente reenvía el 'state'
    recibido en la respuesta anterior.
    """
    data = json_body()
    if not data.get('utterance') or not isinstance(data['utterance'], str):
        return error_response("Falta la frase (utterance).", 400)

    user_id = current_user_id()
    state = DialogueState.from_dict(data.get('state'))
    domains = Domain.query.filter_by(user_id=user_id).all()
    goals = Goal.query.filter_by(user_id=user_id).all()
    step = advance(state, data['utterance'], domains, goals)

    body = {
        "state": step.state.to_dict(),
        "prompt_key": step.prompt_key,
        "prompt": step.prompt,
        "ignored": step.ignored
    }
    if step.state.stage != Stage.COMPLETE:
        return jsonify(body), 200

    tx = step.transaction
    result, status_code = FinanceService.record_transaction(
        user_id, tx['amount'], tx['type'],
        domain_id=tx['domain_id'],
        goal_id=tx['goal_id'],
        description=tx['description'],
        source='voice'
    )
    body["state"] = DialogueState().to_dict()
    if status_code != 201:
        return error_response(result, status_code, state=body["state"])

    body["transaction"] = result.to_dict()
    used = FinanceService.budget_used_percent(result)
    if used is not None:
        body["budget_used_percent"] = used
    return jsonify(body), 201

# --- Rutas de Metas ---

@api_bp.route('/goals', methods=['POST'])
@jwt_required()
def create_goal():
    data = json_body()
    result, status_code = GoalService.create_goal(
        current_user_id(), data.get('name'), data.get('target_amount'), data.get('months')
    )
    if status_code != 201:
        return error_response(result, status_code)
    return jsonify({"id": result.id, "message": "Meta creada con éxito."}), 201

@api_bp.route('/goals', methods=['GET'])
@jwt_required()
def list_goals():
    return jsonify(GoalService.list_goals(current_user_id())), 200

@api_bp.route('/goals/forecast', methods=['GET'])
@jwt_required()
def goal_forecast():
    result, status_code = GoalService.forecast(current_user_id())
    if status_code != 200:
        return error_response(result, status_code)
    return jsonify(result), 200
