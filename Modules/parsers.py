"""
Intérpretes basados en reglas para texto dictado por voz y SMS bancarios.

No hay gramática: solo expresiones regulares para montos y palabras clave
para el tipo de movimiento y la unidad de duración. Cuando falta un dato
se lanza ``ParseError`` con el campo que hay que pedirle al usuario; nunca
se adivina.
"""

import re
from collections import namedtuple

ParsedBudget = namedtuple('ParsedBudget', ['amount', 'duration_days'])
ParsedSms = namedtuple('ParsedSms', ['amount', 'type', 'description'])

DAYS_PER_MONTH = 30
MAX_PLAIN_DURATION_DAYS = 366

# Preguntas de aclaración por campo faltante
CLARIFICATION_PROMPTS = {
    'amount': "¿Cuál es el monto total disponible?",
    'duration': "¿Cuántos días debe durar este presupuesto?",
    'type': "¿Es un ingreso o un gasto?",
}

INCOME_KEYWORDS = (
    'income', 'add', 'credit', 'credited', 'receive', 'received', 'got', 'earn', 'earned',
    'salary', 'aadaayam', 'aay', 'ingreso', 'sueldo', 'cobré', 'recibí',
)
EXPENSE_KEYWORDS = (
    'expense', 'spend', 'spent', 'debit', 'debited', 'paid', 'pay', 'kharchu', 'kharcha',
    'gasto', 'gasté', 'pagué', 'pago',
)

NUMBER_RE = re.compile(r'\d+(?:,\d+)*(?:\.\d+)?')
DAY_UNIT_RE = re.compile(r'(\d+)\s*(?:days?|din|rojulu|días?|dias?)\b', re.IGNORECASE)
MONTH_UNIT_RE = re.compile(r'(\d+)\s*(?:months?|mahine|mahina|nelalu|nela|mes|meses)\b', re.IGNORECASE)

SMS_INCOME_RE = re.compile(r'\b(credited|received|refunded|refund|deposited|salary)\b', re.IGNORECASE)
SMS_EXPENSE_RE = re.compile(r'\b(debited|spent|withdrawn|paid|payment|purchase)\b', re.IGNORECASE)
# El monto solo se acepta junto a un marcador de moneda
SMS_AMOUNT_PATTERNS = (
    re.compile(r'(?:\brs\.?|\binr|₹)\s*(\d[\d,]*(?:\.\d+)?)', re.IGNORECASE),
    re.compile(r'(\d[\d,]*(?:\.\d+)?)\s*(?:rs|inr)\b', re.IGNORECASE),
)


class ParseError(ValueError):
    """El texto no alcanza para completar un campo; ``field`` indica cuál."""

    def __init__(self, field, message=None):
        self.field = field
        self.prompt = CLARIFICATION_PROMPTS.get(field, "¿Puedes repetirlo?")
        super().__init__(message or self.prompt)


def _to_number(raw):
    # "20,000" -> 20000 ; "12.5" -> 12.5
    return float(raw.replace(',', ''))


def extract_first_number(text):
    """Primer número del texto o None."""
    match = re.search(r'\d+(?:\.\d+)?', text or '')
    return float(match.group(0)) if match else None


def detect_transaction_type(text):
    """'income', 'expense' o None según el vocabulario encontrado (ingreso gana)."""
    words = set(re.findall(r'\w+', (text or '').lower()))
    if words.intersection(INCOME_KEYWORDS):
        return 'income'
    if words.intersection(EXPENSE_KEYWORDS):
        return 'expense'
    return None


def match_by_name(text, items):
    """Primer elemento cuyo ``name`` aparece dentro del texto (sin mayúsculas)."""
    lowered = (text or '').lower().strip()
    for item in items:
        name = (item.name if hasattr(item, 'name') else item['name']).lower().strip()
        if name and name in lowered:
            return item
    return None


def parse_amount_duration(text):
    """
    Extrae monto y duración (en días) de una frase como
    "tengo 20000 para 30 días" o "5000 for 2 months".

    - Un número seguido de una unidad de mes vale N * 30 días; de día, N días.
    - Sin unidad explícita, el número mayor es el monto y otro menor a 366
      se toma como duración.

    Lanza ParseError('amount') o ParseError('duration') si falta alguno.
    """
    text = text or ''
    duration = None
    duration_span = None

    month_match = MONTH_UNIT_RE.search(text)
    day_match = DAY_UNIT_RE.search(text)
    if day_match:
        duration = int(day_match.group(1))
        duration_span = day_match.span(1)
    elif month_match:
        duration = int(month_match.group(1)) * DAYS_PER_MONTH
        duration_span = month_match.span(1)

    # Números que no forman parte de la duración explícita
    candidates = [
        _to_number(m.group(0)) for m in NUMBER_RE.finditer(text)
        if m.span() != duration_span
    ]
    amount = max(candidates) if candidates else None

    if duration is None and amount is not None and len(candidates) > 1:
        smaller = [n for n in candidates if n != amount]
        if smaller and smaller[0] < MAX_PLAIN_DURATION_DAYS:
            duration = int(smaller[0])

    if not amount or amount <= 0:
        raise ParseError('amount')
    if not duration or duration <= 0:
        raise ParseError('duration')
    return ParsedBudget(amount, duration)


def parse_sms(text):
    """
    Interpreta un SMS bancario simulado: "Rs.750 debited for Swiggy."

    El tipo sale del vocabulario de crédito/débito y el monto del número
    junto al marcador de moneda (Rs, INR, ₹). Un número suelto (p. ej. el
    final de una tarjeta) no es un monto: se pide aclaración.
    """
    text = text or ''
    is_income = SMS_INCOME_RE.search(text) is not None
    is_expense = SMS_EXPENSE_RE.search(text) is not None
    if not is_income and not is_expense:
        raise ParseError('type', "El mensaje no parece un SMS financiero.")

    raw_amount = None
    for pattern in SMS_AMOUNT_PATTERNS:
        match = pattern.search(text)
        if match:
            raw_amount = match.group(1)
            break

    if raw_amount is None:
        raise ParseError('amount', "Se detectó un SMS financiero pero no el monto.")

    amount = _to_number(raw_amount)
    if amount <= 0:
        raise ParseError('amount')

    return ParsedSms(amount, 'income' if is_income else 'expense', text[:100])
