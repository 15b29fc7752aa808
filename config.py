import os
from datetime import timedelta
from dotenv import load_dotenv

# Carga las variables de entorno del archivo .env
load_dotenv()

class Config:
    """Clase base de configuración, aplica para todos los ambientes."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'pocketpilot_clave_secreta')

    # Base de datos en memoria por proceso; DATABASE_URL permite apuntar a otra
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///:memory:')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Configuración de JWT (Tokens)
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'pocketpilot_secret_key')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)
    JWT_HEADER_TYPE = 'Bearer'

    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Reglas de negocio
    SMS_DUPLICATE_WINDOW_SECONDS = int(os.getenv('SMS_DUPLICATE_WINDOW_SECONDS', 60))

class DevelopmentConfig(Config):
    """Configuración para el ambiente de desarrollo."""
    DEBUG = True
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')

class TestingConfig(Config):
    """Configuración para el ambiente de pruebas (usaremos SQLite en memoria)."""
    TESTING = True
    # Usar una base de datos SQLite en memoria para que las pruebas sean rápidas y aisladas
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    JWT_SECRET_KEY = 'clave-de-pruebas-pocketpilot-0123456789abcdef'
    LOG_LEVEL = 'WARNING'
