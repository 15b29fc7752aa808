from flask import Flask
from Modules.models import db
from Modules.extensions import bcrypt, jwt, cors
from Modules.api import api_bp
from Modules.errors import register_error_handlers
from Modules.logging_config import configure_logging
from config import DevelopmentConfig

def create_app(config_class=DevelopmentConfig):
    """Función de factoría para crear y configurar la aplicación Flask."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app)

    # Inicialización de extensiones
    db.init_app(app)
    bcrypt.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}})

    # Registro de Blueprints (rutas) y manejadores de error
    app.register_blueprint(api_bp)
    register_error_handlers(app)

    # La base de datos vive lo que dure el proceso; las tablas se crean al arrancar
    with app.app_context():
        db.create_all()

    return app

if __name__ == '__main__':
    # Usar el ambiente de desarrollo por defecto
    app = create_app(DevelopmentConfig)
    app.run(host='0.0.0.0', port=5000)
