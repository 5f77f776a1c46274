"""
Configuração da aplicação Django 'eventos'.

O método ready() registra os sinais de auditoria ao iniciar a aplicação.
"""

from django.apps import AppConfig


class EventoConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "eventos"

    def ready(self):
        # Registra sinais definidos no módulo signals.py
        from . import signals  # noqa: F401
