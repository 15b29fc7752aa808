"""
Configuración de logs estructurados.

Todos los módulos obtienen su logger con ``structlog.get_logger(__name__)``;
aquí solo se conecta structlog con el logging estándar y se fija el nivel
a partir de ``LOG_LEVEL``.
"""

import logging
import sys

import structlog


def configure_logging(app):
    """Configura structlog (salida JSON) con el nivel definido en la app."""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)

    logging.basicConfig(format='%(message)s', stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
