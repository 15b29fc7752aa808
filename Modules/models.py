from flask_sqlalchemy import SQLAlchemy
from datetime import datetime
import pytz

# Inicializa SQLAlchemy. Se inicializará con la app en Main.py
db = SQLAlchemy()

TRANSACTION_TYPES = ('income', 'expense')
TRANSACTION_SOURCES = ('manual', 'voice', 'sms')
STATUS_COLORS = ('dark_green', 'light_green', 'red', 'gray')


def utcnow():
    """Instante actual en UTC, sin tzinfo (así se guarda en la base de datos)."""
    return datetime.now(pytz.utc).replace(tzinfo=None)


class User(db.Model):
    """Modelo de Usuario para la autenticación y preferencias."""
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(128), nullable=False)
    profile_photo = db.Column(db.Text, default='', nullable=False)
    theme = db.Column(db.String(20), default='light', nullable=False)
    language = db.Column(db.String(10), default='en', nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    # Relaciones
    domains = db.relationship('Domain', backref='owner', lazy=True)
    transactions = db.relationship('Transaction', backref='owner', lazy=True)
    goals = db.relationship('Goal', backref='owner', lazy=True)

    def to_profile(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'profile_photo': self.profile_photo,
            'language': self.language,
            'theme': self.theme
        }

class Domain(db.Model):
    """Categoría de gasto definida por el usuario, con su presupuesto esperado."""
    __tablename__ = 'domains'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String(80), nullable=False)
    expected_amount = db.Column(db.Numeric(12, 2), default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'expected_amount': float(self.expected_amount)
        }

class Transaction(db.Model):
    """Modelo para registrar Ingresos o Gastos. No se edita una vez creado."""
    __tablename__ = 'transactions'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    type = db.Column(db.String(10), nullable=False) # 'income' o 'expense'
    source = db.Column(db.String(10), default='manual', nullable=False) # 'manual', 'voice' o 'sms'
    description = db.Column(db.String(255), default='', nullable=True)
    date = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    # Relación con Dominio y Meta (opcionales)
    domain_id = db.Column(db.Integer, db.ForeignKey('domains.id'), nullable=True)
    domain = db.relationship('Domain', backref='transactions', lazy=True)
    goal_id = db.Column(db.Integer, db.ForeignKey('goals.id'), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'amount': float(self.amount),
            'date': self.date.isoformat(),
            'source': self.source or 'manual',
            'description': self.description or '',
            'domain_id': self.domain_id,
            'domain_name': self.domain.name if self.domain else '-',
            'goal_id': self.goal_id
        }

class Goal(db.Model):
    """Meta de ahorro: monto objetivo a reunir en una cantidad de meses."""
    __tablename__ = 'goals'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    target_amount = db.Column(db.Numeric(12, 2), nullable=False)
    months = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

class DailySavingsStatus(db.Model):
    """Resultado diario del evaluador. Un solo registro por usuario y día."""
    __tablename__ = 'daily_savings'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'date', name='uq_daily_savings_user_date'),
    )
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    date = db.Column(db.Date, nullable=False) # Día calendario UTC
    status_color = db.Column(db.String(12), nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

class BudgetPlan(db.Model):
    """Plan de presupuesto por dominios generado a partir del historial."""
    __tablename__ = 'budget_plans'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    total_budget = db.Column(db.Numeric(12, 2), nullable=False)
    days = db.Column(db.Integer, nullable=False)
    domains = db.Column(db.JSON, nullable=False) # Lista de ids de dominio
    plan_breakdown = db.Column(db.JSON, nullable=False)
    is_fallback = db.Column(db.Boolean, default=False, nullable=False)
    lookback_month = db.Column(db.Integer, nullable=True)
    lookback_year = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'total_budget': float(self.total_budget),
            'days': self.days,
            'domains': self.domains,
            'plan_breakdown': self.plan_breakdown,
            'is_fallback': self.is_fallback,
            'lookback_month': self.lookback_month,
            'lookback_year': self.lookback_year,
            'created_at': self.created_at.isoformat()
        }

class VoicePlan(db.Model):
    """Plan generado a partir de un monto y una duración dictados por voz."""
    __tablename__ = 'voice_plans'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    original_text = db.Column(db.Text, nullable=False)
    parsed_amount = db.Column(db.Float, nullable=False)
    parsed_duration = db.Column(db.Integer, nullable=False) # en días
    generated_plan = db.Column(db.JSON, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'original_text': self.original_text,
            'parsed_amount': self.parsed_amount,
            'parsed_duration': self.parsed_duration,
            'generated_plan': self.generated_plan,
            'created_at': self.created_at.isoformat()
        }
