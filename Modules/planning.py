from Modules.models import db, Domain, Transaction, BudgetPlan, VoicePlan, utcnow
from Modules.parsers import parse_amount_duration, ParseError
from datetime import datetime
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
import structlog

logger = structlog.get_logger(__name__)

# Reparto fijo del plan por voz, sobre el monto total
VOICE_PLAN_CATEGORY_SHARES = {
    'essentials': 0.50,
    'food': 0.20,
    'transport': 0.10,
    'savings': 0.10,
    'misc': 0.10,
}
EMERGENCY_BUFFER_SHARE = 0.10
SAVINGS_SUGGESTION_SHARE = 0.10


def generate_budget_plan(total_budget, days, domains, historical_spend):
    """
    Reparte un presupuesto diario entre los dominios seleccionados.

    domains: lista de (domain_id, domain_name).
    historical_spend: {domain_id: gasto del mes de referencia}.

    La proporción de cada dominio es su gasto histórico sobre el total de la
    selección; si no hubo gasto, se reparte en partes iguales.
    Retorna (breakdown, is_fallback).
    """
    daily_total = total_budget / days
    spent = {domain_id: float(historical_spend.get(domain_id, 0)) for domain_id, _ in domains}
    total_spent = sum(spent.values())
    is_fallback = total_spent <= 0

    breakdown = []
    for domain_id, domain_name in domains:
        share = 1 / len(domains) if is_fallback else spent[domain_id] / total_spent
        daily_limit = daily_total * share
        breakdown.append({
            'domain_id': domain_id,
            'domain_name': domain_name,
            'historical_spent': round(spent[domain_id], 2),
            'daily_limit': round(daily_limit, 2),
            'total_limit': round(daily_limit * days, 2)
        })
    return breakdown, is_fallback


def generate_voice_plan(amount, duration_days):
    """Plan por porcentajes fijos a partir de un monto y una duración en días."""
    daily_allowed = amount / duration_days
    return {
        'daily_allowed': round(daily_allowed, 2),
        'weekly_budget': round(daily_allowed * 7, 2),
        'emergency_buffer': round(amount * EMERGENCY_BUFFER_SHARE, 2),
        'savings_suggestion': round(amount * SAVINGS_SUGGESTION_SHARE, 2),
        'categories': {
            name: round(amount * share, 2) for name, share in VOICE_PLAN_CATEGORY_SHARES.items()
        }
    }


def previous_month(now):
    if now.month == 1:
        return 12, now.year - 1
    return now.month - 1, now.year


def month_window(month, year):
    """[inicio, fin) del mes calendario en UTC, como datetimes sin tzinfo."""
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


class BudgetPlanService:
    """Genera y guarda planes de presupuesto por dominio."""

    @staticmethod
    def create_plan(user_id, total_budget, days, domain_ids, month=None, year=None, now=None):
        try:
            total_budget = float(total_budget)
            days = int(days)
        except (TypeError, ValueError):
            return "Presupuesto o cantidad de días inválidos.", 400
        if total_budget <= 0:
            return "El presupuesto total debe ser positivo.", 400
        if days <= 0:
            return "La cantidad de días debe ser positiva.", 400
        if not domain_ids:
            return "Seleccione al menos un dominio.", 400

        domains = Domain.query.filter(Domain.user_id == user_id, Domain.id.in_(domain_ids)).order_by(Domain.id).all()
        if len(domains) != len(set(domain_ids)):
            return "Dominio no encontrado.", 404

        if month is None or year is None:
            month, year = previous_month(now or utcnow())
        try:
            start, end = month_window(int(month), int(year))
        except (TypeError, ValueError):
            return "Mes de referencia inválido.", 400

        rows = (
            db.session.query(Transaction.domain_id, func.sum(Transaction.amount))
            .filter(
                Transaction.user_id == user_id,
                Transaction.type == 'expense',
                Transaction.domain_id.in_([d.id for d in domains]),
                Transaction.date >= start,
                Transaction.date < end
            )
            .group_by(Transaction.domain_id)
            .all()
        )
        historical = {domain_id: float(total or 0) for domain_id, total in rows}

        breakdown, is_fallback = generate_budget_plan(
            total_budget, days, [(d.id, d.name) for d in domains], historical
        )

        plan = BudgetPlan(
            user_id=user_id,
            total_budget=total_budget,
            days=days,
            domains=[d.id for d in domains],
            plan_breakdown=breakdown,
            is_fallback=is_fallback,
            lookback_month=start.month,
            lookback_year=start.year
        )
        try:
            db.session.add(plan)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("budget_plan_save_failed", user_id=user_id, error=str(e))
            return "Error de servidor.", 500
        return plan, 201

    @staticmethod
    def latest_plan(user_id):
        plan = (BudgetPlan.query.filter_by(user_id=user_id)
                .order_by(BudgetPlan.created_at.desc(), BudgetPlan.id.desc()).first())
        if not plan:
            return "No hay planes de presupuesto.", 404
        return plan, 200


class VoicePlanService:
    """Planes generados a partir de un monto y una duración dictados."""

    @staticmethod
    def create_plan(user_id, text=None, amount=None, duration=None):
        """
        Si llegan monto y duración se usan tal cual; si solo llega el texto,
        se interpreta. Un dato faltante lanza ParseError (pedir aclaración).
        """
        if amount is None or duration is None:
            if not text:
                return "Faltan campos obligatorios del plan por voz.", 400
            parsed = parse_amount_duration(text)
            amount = parsed.amount if amount is None else amount
            duration = parsed.duration_days if duration is None else duration

        try:
            amount = float(amount)
            duration = int(duration)
        except (TypeError, ValueError):
            return "Monto o duración inválidos.", 400
        if amount <= 0:
            raise ParseError('amount')
        if duration <= 0:
            raise ParseError('duration')

        plan = VoicePlan(
            user_id=user_id,
            original_text=text or f"Ingreso manual: {amount:g} para {duration} días",
            parsed_amount=amount,
            parsed_duration=duration,
            generated_plan=generate_voice_plan(amount, duration)
        )
        try:
            db.session.add(plan)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("voice_plan_save_failed", user_id=user_id, error=str(e))
            return "Error de servidor.", 500
        return plan, 201

    @staticmethod
    def list_plans(user_id):
        return (VoicePlan.query.filter_by(user_id=user_id)
                .order_by(VoicePlan.created_at.desc(), VoicePlan.id.desc()).all())

    @staticmethod
    def latest_plan(user_id):
        plans = VoicePlanService.list_plans(user_id)
        if not plans:
            return "No hay planes por voz.", 404
        return plans[0], 200
