"""
Indicador diario de ahorro.

Compara el ahorro neto de hoy (ingresos - gastos) con el ahorro diario que
exige la meta más reciente y guarda el color resultante en el historial del
día. El día es el día calendario UTC: los movimientos se guardan como
instantes UTC y la ventana se calcula sobre la misma zona.
"""

from Modules.models import db, Transaction, DailySavingsStatus, utcnow
from Modules.goals import GoalService, DAYS_PER_MONTH
from datetime import datetime, time, timedelta
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
import structlog

logger = structlog.get_logger(__name__)

TOOLTIPS = {
    'gray': "Define una meta para seguir tu desempeño diario.",
    'red': "Hoy no alcanzaste tu meta de ahorro diaria.",
    'light_green': "Hoy cumpliste tu meta de ahorro diaria.",
    'dark_green': "Hoy ahorraste más del doble de tu meta diaria.",
}


def classify(income_per_day, goal_per_day):
    """Color del día según el ahorro neto frente al objetivo diario."""
    if income_per_day <= 0 or income_per_day < goal_per_day:
        return 'red'
    if income_per_day >= 2 * goal_per_day:
        return 'dark_green'
    return 'light_green'


def day_window(day):
    """Instantes UTC [00:00:00.000, 23:59:59.999] del día calendario."""
    start = datetime.combine(day, time.min)
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return start, end


class DailyPerformanceService:

    @staticmethod
    def net_savings(user_id, day):
        start, end = day_window(day)
        totals = dict(
            db.session.query(Transaction.type, func.sum(Transaction.amount))
            .filter(
                Transaction.user_id == user_id,
                Transaction.date >= start,
                Transaction.date <= end
            )
            .group_by(Transaction.type)
            .all()
        )
        return float(totals.get('income') or 0) - float(totals.get('expense') or 0)

    @staticmethod
    def find_status(user_id, day):
        return DailySavingsStatus.query.filter_by(user_id=user_id, date=day).first()

    @staticmethod
    def upsert_status(user_id, day, status):
        """
        Un registro por (usuario, día): si existe se sobrescribe. Si otra
        evaluación insertó el día entre la lectura y el commit, la
        restricción única lo rechaza y se reintenta como actualización.
        """
        record = DailyPerformanceService.find_status(user_id, day)
        if record:
            record.status_color = status
            db.session.commit()
            return record

        try:
            record = DailySavingsStatus(user_id=user_id, date=day, status_color=status)
            db.session.add(record)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.info("daily_status_insert_conflict", user_id=user_id, day=day.isoformat())
            record = DailySavingsStatus.query.filter_by(user_id=user_id, date=day).one()
            record.status_color = status
            db.session.commit()
        return record

    @staticmethod
    def evaluate(user_id, now=None):
        """
        Evalúa el día actual. Sin meta retorna 'gray' y no escribe historial.
        Los errores de base de datos se propagan (respuesta 500).
        """
        goal = GoalService.latest_goal(user_id)
        if not goal:
            return {'status': 'gray', 'tooltip': TOOLTIPS['gray']}

        today = (now or utcnow()).date()
        goal_per_day = float(goal.target_amount) / (goal.months * DAYS_PER_MONTH)
        income_per_day = DailyPerformanceService.net_savings(user_id, today)

        status = classify(income_per_day, goal_per_day)
        try:
            DailyPerformanceService.upsert_status(user_id, today, status)
        except SQLAlchemyError:
            db.session.rollback()
            raise

        logger.info("daily_performance_evaluated", user_id=user_id, day=today.isoformat(), status=status)
        return {
            'status': status,
            'goal_per_day': round(goal_per_day, 2),
            'income_per_day': round(income_per_day, 2),
            'tooltip': TOOLTIPS[status]
        }

    @staticmethod
    def history(user_id, year=None):
        """Historial del año (actual por defecto), en orden cronológico."""
        year = year or utcnow().year
        records = (
            DailySavingsStatus.query
            .filter(
                DailySavingsStatus.user_id == user_id,
                DailySavingsStatus.date >= datetime(year, 1, 1).date(),
                DailySavingsStatus.date <= datetime(year, 12, 31).date()
            )
            .order_by(DailySavingsStatus.date.asc())
            .all()
        )
        return [{'date': r.date.isoformat(), 'status_color': r.status_color} for r in records]
