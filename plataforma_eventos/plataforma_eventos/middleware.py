"""
Middlewares do projeto.

- PerfilNavegadorMiddleware: identifica o navegador por um cookie de longa
  duração compartilhado por todas as abas (`request.perfil_navegador`).
- AuditMiddleware: registra auditoria de consultas de API que retornam JSON.
"""

import uuid
import logging
from django.conf import settings
from usuarios.utils import log_audit


logger = logging.getLogger(__name__)

# dez anos: o perfil de navegador só muda se o usuário limpar os cookies
MAX_AGE_PERFIL = 10 * 365 * 24 * 60 * 60


class PerfilNavegadorMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response
        self.cookie = settings.PLATAFORMA.get('COOKIE_PERFIL_NAVEGADOR', 'perfil_navegador')

    def __call__(self, request):
        perfil = request.COOKIES.get(self.cookie, '')
        novo = not (len(perfil) == 32 and perfil.isalnum())
        if novo:
            perfil = uuid.uuid4().hex
        request.perfil_navegador = perfil

        response = self.get_response(request)

        if novo:
            response.set_cookie(
                self.cookie, perfil,
                max_age=MAX_AGE_PERFIL,
                httponly=True,
                samesite='Lax',
                secure=request.is_secure(),
            )
        return response


class AuditMiddleware:
    """
    Middleware que registra auditoria de consultas de API que retornam JSON.

    Regras:
    - Se a resposta for JSON, o método for GET e o path contiver 'eventos' ou '/api/', registra a consulta.
    - Nunca interrompe a requisição por falha de auditoria.
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        try:
            content_type = response.get('Content-Type', '') or ''
            if request.method == 'GET' and content_type.startswith('application/json'):
                path = request.path.lower()
                if 'eventos' in path or '/api/' in path:
                    user = getattr(request, 'user', None)
                    django_user = user if user is not None and user.is_authenticated else None
                    log_audit(
                        request=request,
                        django_user=django_user,
                        action='api_query_events',
                        object_type='Evento',
                        object_id=None,
                        description=f'API query: {request.path}?{request.META.get("QUERY_STRING", "")}'
                    )
        except Exception:
            # Nunca falha a requisição por erro de auditoria
            logger.debug('Falha ao auditar consulta %s', request.path, exc_info=True)

        return response
