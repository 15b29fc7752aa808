"""
Diálogo por voz para registrar un movimiento, como máquina de estados.

El usuario puede decirlo todo de una vez ("gasté 200 en comida") o ir
respondiendo preguntas. Cada estado tiene su función de transición, que
recibe el estado actual y lo dicho, y retorna el siguiente estado junto con
la pregunta a formular. El estado viaja en cada request (JSON), así el
servidor no guarda sesiones.

    IDLE -> ASKING_AMOUNT -> ASKING_TYPE -> ASKING_CATEGORY (gasto)
                                         -> ASKING_GOAL (ingreso con metas)
                                         -> COMPLETE
"""

import math
import re
import time
from collections import namedtuple
from dataclasses import dataclass, asdict
from enum import Enum

from Modules.models import TRANSACTION_TYPES
from Modules.parsers import extract_first_number, detect_transaction_type, match_by_name

REPEAT_WINDOW_SECONDS = 3
CANCEL_WORDS = ('cancel', 'stop', 'cancelar', 'detener', 'salir')
GENERAL_BALANCE_WORDS = ('general', 'balance')

PROMPTS = {
    'prompt_amount': "¿Cuál es el monto?",
    'prompt_valid_amount': "Por favor di un monto válido.",
    'prompt_type': "¿Es un ingreso o un gasto?",
    'prompt_not_caught': "No entendí. ¿Ingreso o gasto?",
    'prompt_category': "¿En qué categoría va este gasto?",
    'prompt_no_category': "No encontré esa categoría. Repite el nombre, por favor.",
    'prompt_goal': "¿A qué meta lo asigno? Di 'general' para el balance general.",
    'prompt_no_goal': "No encontré esa meta. Di su nombre o 'general'.",
    'success': "Listo, se registró {amount:g}.",
    'cancelled': "Operación cancelada.",
}


class Stage(Enum):
    IDLE = 'idle'
    ASKING_AMOUNT = 'asking_amount'
    ASKING_TYPE = 'asking_type'
    ASKING_CATEGORY = 'asking_category'
    ASKING_GOAL = 'asking_goal'
    COMPLETE = 'complete'


@dataclass
class DialogueState:
    stage: Stage = Stage.IDLE
    amount: float = None
    type: str = None
    domain_id: int = None
    goal_id: int = None
    last_utterance: str = ''
    last_timestamp: float = 0.0

    def to_dict(self):
        data = asdict(self)
        data['stage'] = self.stage.value
        return data

    @classmethod
    def from_dict(cls, data):
        """Reconstruye el estado enviado por el cliente; valores desconocidos vuelven a IDLE."""
        if not isinstance(data, dict) or not data:
            return cls()
        try:
            stage = Stage(data.get('stage', Stage.IDLE.value))
        except ValueError:
            stage = Stage.IDLE
        amount = _coerce(data.get('amount'), float)
        return cls(
            stage=stage,
            amount=amount if amount and amount > 0 else None,
            type=data.get('type') if data.get('type') in TRANSACTION_TYPES else None,
            domain_id=_coerce(data.get('domain_id'), int),
            goal_id=_coerce(data.get('goal_id'), int),
            last_utterance=str(data.get('last_utterance') or ''),
            last_timestamp=_coerce(data.get('last_timestamp'), float) or 0.0,
        )


def _coerce(value, cast):
    """Convierte un valor enviado por el cliente; None si no es válido."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = cast(value)
    except (TypeError, ValueError, OverflowError):
        return None
    # nan e inf no sirven como monto ni como instante
    if cast is float and not math.isfinite(result):
        return None
    return result


# transaction: dict listo para registrar cuando stage == COMPLETE
Step = namedtuple('Step', ['state', 'prompt_key', 'prompt', 'transaction', 'ignored'])


def _step(state, prompt_key, transaction=None, **fmt):
    prompt = PROMPTS[prompt_key].format(**fmt) if prompt_key else None
    return Step(state, prompt_key, prompt, transaction, False)


def _complete(state, description):
    state.stage = Stage.COMPLETE
    transaction = {
        'amount': state.amount,
        'type': state.type,
        'domain_id': state.domain_id if state.type == 'expense' else None,
        'goal_id': state.goal_id,
        'description': description,
    }
    return _step(state, 'success', transaction, amount=state.amount)


def _fill_slots(state, utterance, domains):
    """Completa monto, tipo y dominio con lo que se pueda extraer del texto."""
    if not state.amount:
        state.amount = extract_first_number(utterance)
    if not state.type:
        state.type = detect_transaction_type(utterance)
    if not state.domain_id:
        domain = match_by_name(utterance, domains)
        if domain is not None:
            state.domain_id = domain.id


def _next_missing(state, goals, description):
    """Avanza al primer dato que falte, o completa el movimiento."""
    if not state.amount or state.amount <= 0:
        state.amount = None
        state.stage = Stage.ASKING_AMOUNT
        return _step(state, 'prompt_amount')
    if not state.type:
        state.stage = Stage.ASKING_TYPE
        return _step(state, 'prompt_type')
    if state.type == 'expense' and not state.domain_id:
        state.stage = Stage.ASKING_CATEGORY
        return _step(state, 'prompt_category')
    if state.type == 'income' and goals:
        state.stage = Stage.ASKING_GOAL
        return _step(state, 'prompt_goal')
    return _complete(state, description)


# --- Transiciones por estado ---

def _on_idle(state, utterance, domains, goals):
    _fill_slots(state, utterance, domains)
    return _next_missing(state, goals, utterance)


def _on_asking_amount(state, utterance, domains, goals):
    _fill_slots(state, utterance, domains)
    if not state.amount or state.amount <= 0:
        state.amount = None
        return _step(state, 'prompt_valid_amount')
    return _next_missing(state, goals, "Agregado mediante diálogo por voz")


def _on_asking_type(state, utterance, domains, goals):
    _fill_slots(state, utterance, domains)
    if not state.type:
        return _step(state, 'prompt_not_caught')
    return _next_missing(state, goals, "Agregado mediante diálogo por voz")


def _on_asking_category(state, utterance, domains, goals):
    _fill_slots(state, utterance, domains)
    if not state.domain_id:
        return _step(state, 'prompt_no_category')
    return _complete(state, "Agregado mediante diálogo por voz")


def _on_asking_goal(state, utterance, domains, goals):
    words = set(re.findall(r'\w+', utterance.lower()))
    if words.intersection(GENERAL_BALANCE_WORDS):
        state.goal_id = None
        return _complete(state, "Agregado al balance general por voz")
    goal = match_by_name(utterance, goals)
    if goal is None:
        return _step(state, 'prompt_no_goal')
    state.goal_id = goal.id
    return _complete(state, "Agregado a la meta por voz")


TRANSITIONS = {
    Stage.IDLE: _on_idle,
    Stage.ASKING_AMOUNT: _on_asking_amount,
    Stage.ASKING_TYPE: _on_asking_type,
    Stage.ASKING_CATEGORY: _on_asking_category,
    Stage.ASKING_GOAL: _on_asking_goal,
    # Un diálogo completo empieza de nuevo
    Stage.COMPLETE: _on_idle,
}


def advance(state, utterance, domains=(), goals=(), now=None):
    """
    Aplica una frase del usuario al diálogo.

    domains / goals: objetos con ``id`` y ``name`` del usuario.
    Retorna un Step; si ``ignored`` es True la frase era una repetición.
    """
    now = time.time() if now is None else now
    utterance = (utterance or '').strip()
    lowered = utterance.lower()

    if (utterance and utterance == state.last_utterance
            and now - state.last_timestamp < REPEAT_WINDOW_SECONDS):
        return Step(state, None, None, None, True)

    if state.stage == Stage.COMPLETE:
        state = DialogueState()
    state.last_utterance = utterance
    state.last_timestamp = now

    if set(re.findall(r'\w+', lowered)).intersection(CANCEL_WORDS):
        fresh = DialogueState(last_utterance=utterance, last_timestamp=now)
        return _step(fresh, 'cancelled')

    return TRANSITIONS[state.stage](state, lowered, list(domains), list(goals))
