"""
Configuração da aplicação Django 'notifications'.

Inicia o worker de envio de emails em background junto com o servidor.
"""

import os
import sys
import logging
from django.apps import AppConfig
from django.conf import settings


logger = logging.getLogger(__name__)


class NotificationsConfig(AppConfig):
    """
    Classe de configuração da app 'notifications'.
    - Inicia o worker de envio de emails em background ao iniciar o servidor.
    """
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'notifications'

    def ready(self):
        """
        Inicia o worker de emails apenas no processo principal do runserver/WSGI,
        nunca durante testes, migrações ou comandos de manutenção.
        """
        if not settings.PLATAFORMA.get('START_EMAIL_WORKER', True):
            return
        argv = sys.argv if hasattr(sys, 'argv') else []
        if any(cmd in argv for cmd in ('test', 'migrate', 'makemigrations', 'collectstatic', 'send_email_queue')):
            return
        if 'pytest' in sys.modules:
            return
        try:
            run_main = os.environ.get('RUN_MAIN')
            if run_main == 'true' or run_main is None:
                from .worker import start_background_worker
                start_background_worker(interval_seconds=5)
        except Exception:
            # Não interrompe a inicialização da app se o worker falhar
            logger.exception('Falha ao iniciar o worker de e-mail')
