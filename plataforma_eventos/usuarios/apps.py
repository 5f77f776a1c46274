"""
Configuração do aplicativo Django para o app de usuários.
"""

from django.apps import AppConfig


class UsuariosConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "usuarios"

    def ready(self):
        """
        Registra os signal handlers do app: auditoria, transições de
        autenticação e materialização do cadastro pendente.
        """
        from . import signals  # noqa: F401
