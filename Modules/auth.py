from Modules.models import User, db
from Modules.extensions import bcrypt
from flask_jwt_extended import create_access_token
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
import structlog

logger = structlog.get_logger(__name__)

class AuthService:
    """Servicio para manejar la lógica de autenticación y el perfil del usuario."""

    @staticmethod
    def register_user(username, email, password):
        """
        Registra un nuevo usuario en la base de datos.
        Retorna (User, 201) si es exitoso, o (mensaje, código) si falla.
        """
        if not username or not email or not password:
            return "Todos los campos son obligatorios.", 400

        # 1. Validación: usuario o email ya registrados
        existing = User.query.filter(or_(User.username == username, User.email == email)).first()
        if existing:
            return "El usuario o el email ya existen.", 409

        # 2. Hashing de Contraseña
        password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

        new_user = User(
            username=username,
            email=email,
            password_hash=password_hash
        )

        # 3. Guardar en DB
        try:
            db.session.add(new_user)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("signup_failed", username=username, error=str(e))
            return "Error de servidor.", 500

        logger.info("user_registered", user_id=new_user.id)
        return new_user, 201

    @staticmethod
    def login_user(username, password):
        """
        Verifica las credenciales y emite un token firmado (24h).
        Retorna ((token, user), 200) o (mensaje, 401).
        """
        user = User.query.filter_by(username=username).first() if username else None

        if not user or not password or not bcrypt.check_password_hash(user.password_hash, password):
            return "Credenciales inválidas.", 401

        token = create_access_token(
            identity=str(user.id),
            additional_claims={"username": user.username}
        )
        logger.info("user_logged_in", user_id=user.id)
        return (token, user), 200

    @staticmethod
    def get_profile(user_id):
        user = db.session.get(User, user_id)
        if not user:
            return "Usuario no encontrado.", 404
        return user.to_profile(), 200

    @staticmethod
    def update_profile(user_id, language=None, theme=None, email=None, password=None, profile_photo=None):
        """Actualiza solo los campos enviados. El email debe seguir siendo único."""
        user = db.session.get(User, user_id)
        if not user:
            return "Usuario no encontrado.", 404

        if email and email != user.email:
            if User.query.filter(User.email == email, User.id != user.id).first():
                return "El email ya está registrado.", 409
            user.email = email
        if language:
            user.language = language
        if theme:
            user.theme = theme
        if profile_photo is not None:
            user.profile_photo = profile_photo
        if password:
            user.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("profile_update_failed", user_id=user_id, error=str(e))
            return "No se pudo actualizar el perfil.", 500
        return user, 200
