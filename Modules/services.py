from Modules.models import db, Transaction, Domain, Goal, utcnow, TRANSACTION_TYPES, TRANSACTION_SOURCES
from Modules.planning import month_window
from datetime import timedelta
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
import structlog

logger = structlog.get_logger(__name__)

SMS_DESCRIPTION = 'Guardado vía simulación de SMS'


def _positive_amount(amount):
    """Convierte el monto a float; None si no es un número positivo."""
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


class FinanceService:
    """Servicio para manejar la lógica de negocio del libro de movimientos y los dominios."""

    # --- Dominios ---

    @staticmethod
    def list_domains(user_id):
        domains = Domain.query.filter_by(user_id=user_id).order_by(Domain.id).all()
        return [d.to_dict() for d in domains]

    @staticmethod
    def create_domain(user_id, name, expected_amount):
        """Crea un dominio (categoría de gasto) con su presupuesto esperado."""
        if not name or expected_amount is None:
            return "Faltan campos (name, expected_amount).", 400
        try:
            expected = float(expected_amount)
        except (TypeError, ValueError):
            return "Formato de monto esperado inválido.", 400
        if expected < 0:
            return "El monto esperado no puede ser negativo.", 400

        try:
            domain = Domain(user_id=user_id, name=name, expected_amount=expected)
            db.session.add(domain)
            db.session.commit()
            return domain, 201
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("domain_create_failed", user_id=user_id, error=str(e))
            return "Error de servidor.", 500

    # --- Movimientos ---

    @staticmethod
    def _validate_transaction(user_id, amount, type, domain_id, goal_id, source):
        """Retorna (monto, None) si es válido o (None, (mensaje, código))."""
        value = _positive_amount(amount)
        if value is None:
            return None, ("El monto debe ser un número positivo.", 400)
        if type not in TRANSACTION_TYPES:
            return None, ("El tipo debe ser 'income' o 'expense'.", 400)
        if source not in TRANSACTION_SOURCES:
            return None, ("Origen de transacción inválido.", 400)
        if type == 'expense' and not domain_id:
            return None, ("La categoría (domain_id) es obligatoria para un gasto.", 400)

        if domain_id:
            domain = db.session.get(Domain, domain_id)
            if not domain or domain.user_id != user_id:
                return None, ("Dominio no encontrado.", 404)
        if goal_id:
            goal = db.session.get(Goal, goal_id)
            if not goal or goal.user_id != user_id:
                return None, ("Meta no encontrada.", 404)
        return value, None

    @staticmethod
    def record_transaction(user_id, amount, type, domain_id=None, goal_id=None,
                           description='', source='manual', date=None):
        """Registra una nueva transacción (ingreso o gasto). Es inmutable una vez creada."""
        source = source or 'manual'
        value, error = FinanceService._validate_transaction(user_id, amount, type, domain_id, goal_id, source)
        if error:
            return error

        try:
            new_transaction = Transaction(
                user_id=user_id,
                amount=value,
                type=type,
                source=source,
                description=description or '',
                domain_id=domain_id or None,
                goal_id=goal_id or None,
                date=date if date else utcnow()
            )
            db.session.add(new_transaction)
            db.session.commit()
            return new_transaction, 201
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("transaction_record_failed", user_id=user_id, error=str(e))
            return "Error de servidor.", 500

    @staticmethod
    def record_sms_transaction(user_id, amount, type, domain_id=None, description=None, now=None):
        """
        Registra un movimiento detectado en un SMS.
        Rechaza (409) uno idéntico en monto y tipo guardado por SMS en la
        última ventana de SMS_DUPLICATE_WINDOW_SECONDS.
        """
        now = now or utcnow()
        value, error = FinanceService._validate_transaction(user_id, amount, type, domain_id, None, 'sms')
        if error:
            return error

        window = timedelta(seconds=current_app.config['SMS_DUPLICATE_WINDOW_SECONDS'])
        duplicate = Transaction.query.filter(
            Transaction.user_id == user_id,
            Transaction.amount == value,
            Transaction.type == type,
            Transaction.source == 'sms',
            Transaction.date >= now - window
        ).first()
        if duplicate:
            logger.info("sms_duplicate_rejected", user_id=user_id, amount=value, type=type)
            return "Transacción por SMS duplicada detectada recientemente.", 409

        return FinanceService.record_transaction(
            user_id, value, type,
            domain_id=domain_id,
            description=description or SMS_DESCRIPTION,
            source='sms',
            date=now
        )

    @staticmethod
    def list_transactions(user_id, month=None, year=None):
        """Movimientos del usuario, del más reciente al más antiguo, con filtro opcional por mes."""
        query = Transaction.query.filter_by(user_id=user_id)
        if month and year:
            start, end = month_window(int(month), int(year))
            query = query.filter(Transaction.date >= start, Transaction.date < end)
        transactions = query.order_by(Transaction.date.desc(), Transaction.id.desc()).all()
        return [t.to_dict() for t in transactions]

    # --- Resumen ---

    @staticmethod
    def domain_spent(user_id, domain_id):
        total = db.session.query(func.sum(Transaction.amount)).filter(
            Transaction.user_id == user_id,
            Transaction.type == 'expense',
            Transaction.domain_id == domain_id
        ).scalar()
        return float(total or 0)

    @staticmethod
    def budget_used_percent(transaction):
        """Porcentaje del presupuesto del dominio usado tras un gasto (None si no aplica)."""
        if transaction.type != 'expense' or not transaction.domain:
            return None
        expected = float(transaction.domain.expected_amount)
        if expected <= 0:
            return None
        spent = FinanceService.domain_spent(transaction.user_id, transaction.domain_id)
        return round((spent / expected) * 100)

    @staticmethod
    def calculate_balance(user_id):
        """Totales de ingresos y gastos agrupados por tipo."""
        totals = dict(
            db.session.query(Transaction.type, func.sum(Transaction.amount))
            .filter(Transaction.user_id == user_id)
            .group_by(Transaction.type)
            .all()
        )
        total_income = float(totals.get('income') or 0)
        total_expense = float(totals.get('expense') or 0)
        return {
            'total_income': round(total_income, 2),
            'total_expense': round(total_expense, 2),
            'current_balance': round(total_income - total_expense, 2)
        }

    @staticmethod
    def get_summary(user_id):
        """
        Resumen del tablero: totales, balance y desglose por dominio.
        Se recalcula completo en cada llamada.
        """
        summary = FinanceService.calculate_balance(user_id)

        spent_by_domain = dict(
            db.session.query(Transaction.domain_id, func.sum(Transaction.amount))
            .filter(
                Transaction.user_id == user_id,
                Transaction.type == 'expense',
                Transaction.domain_id.isnot(None)
            )
            .group_by(Transaction.domain_id)
            .all()
        )

        breakdown = []
        for domain in Domain.query.filter_by(user_id=user_id).order_by(Domain.id).all():
            expected = float(domain.expected_amount)
            spent = float(spent_by_domain.get(domain.id) or 0)
            breakdown.append({
                'id': domain.id,
                'name': domain.name,
                'expected_amount': expected,
                'spent_amount': round(spent, 2),
                # Puede ser negativo: el dominio está sobre el presupuesto
                'remaining_amount': round(expected - spent, 2)
            })

        summary['domain_breakdown'] = breakdown
        return summary
