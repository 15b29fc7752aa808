import math
from Modules.models import db, Goal, utcnow
from Modules.services import FinanceService
from Modules.parsers import DAYS_PER_MONTH
from sqlalchemy.exc import SQLAlchemyError
import structlog

logger = structlog.get_logger(__name__)


def goal_rates(target_amount, months):
    """(ahorro mensual, ahorro diario) requeridos para una meta."""
    monthly = float(target_amount) / months
    return monthly, monthly / DAYS_PER_MONTH


class GoalService:
    """Metas de ahorro y su ritmo requerido."""

    @staticmethod
    def create_goal(user_id, name, target_amount, months):
        """Crea una meta; el monto y los meses deben ser positivos."""
        if not name or target_amount is None or months is None:
            return "Todos los campos son obligatorios (name, target_amount, months).", 400
        try:
            target = float(target_amount)
            months_value = float(months)
        except (TypeError, ValueError):
            return "Formato de monto o meses inválido.", 400
        if isinstance(months, bool) or not months_value.is_integer():
            return "La cantidad de meses debe ser un número entero.", 400
        months = int(months_value)
        if not math.isfinite(target) or target <= 0:
            return "El monto objetivo debe ser positivo.", 400
        if months <= 0:
            return "La cantidad de meses debe ser positiva.", 400

        try:
            goal = Goal(user_id=user_id, name=name, target_amount=target, months=months)
            db.session.add(goal)
            db.session.commit()
            return goal, 201
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("goal_create_failed", user_id=user_id, error=str(e))
            return "Error de servidor.", 500

    @staticmethod
    def latest_goal(user_id):
        """La meta creada más recientemente, o None."""
        return (Goal.query.filter_by(user_id=user_id)
                .order_by(Goal.created_at.desc(), Goal.id.desc()).first())

    @staticmethod
    def list_goals(user_id):
        goals = (Goal.query.filter_by(user_id=user_id)
                 .order_by(Goal.created_at.desc(), Goal.id.desc()).all())

        result = []
        for goal in goals:
            monthly, daily = goal_rates(goal.target_amount, goal.months)
            result.append({
                'id': goal.id,
                'name': goal.name,
                'target_amount': float(goal.target_amount),
                'months': goal.months,
                'monthly_savings': round(monthly, 2),
                'daily_savings': round(daily, 2),
                'created_at': goal.created_at.isoformat()
            })
        return result

    @staticmethod
    def forecast(user_id, now=None):
        """
        Proyección de la meta más reciente según el ritmo de ahorro real
        (balance actual / meses transcurridos desde que se creó la meta).
        """
        goal = GoalService.latest_goal(user_id)
        if not goal:
            return "No hay metas registradas.", 404

        now = now or utcnow()
        elapsed_days = max((now - goal.created_at).total_seconds() / 86400, 1)
        elapsed_months = elapsed_days / DAYS_PER_MONTH

        balance = FinanceService.calculate_balance(user_id)['current_balance']
        monthly_rate = balance / elapsed_months
        if monthly_rate <= 0:
            monthly_rate = 0.01

        target = float(goal.target_amount)
        estimated_months = round(target / monthly_rate, 1)
        shortfall = target - monthly_rate * goal.months

        return {
            'goal_id': goal.id,
            'goal_name': goal.name,
            'monthly_savings_rate': round(monthly_rate, 2),
            'estimated_months_to_goal': estimated_months,
            'on_track': estimated_months <= goal.months,
            'shortfall_amount': round(shortfall) if shortfall > 0 else 0
        }, 200
