"""
Utilitários compartilhados pelos apps.

Provides:
- resize_image(path): reduz imagens enviadas (perfil, banner, galeria) no lugar.
- validar_imagem(arquivo): confere tamanho e conteúdo de um upload antes de gravá-lo.
- normalizar_nome / criar_slug / ler_slug: o nome de exibição do usuário é a
    chave das URLs de perfil; espaços viram '_' no slug e voltam na leitura.
- log_audit(...): grava um AuditLog sem nunca propagar erro para a requisição.
"""

import os
import struct
import logging
from django.conf import settings
from PIL import Image, UnidentifiedImageError


logger = logging.getLogger(__name__)


class ErroUpload(Exception):
    """Upload de imagem recusado (tamanho ou formato). A mensagem é exibida ao usuário."""


def resize_image(path, max_size=(400, 400), quality=70):
    if not path or not os.path.exists(path):
        return
    with Image.open(path) as img:
        # Pillow 10+ usa Resampling.LANCZOS no lugar de ANTIALIAS
        img.thumbnail(max_size, Image.Resampling.LANCZOS)
        img.save(path, quality=quality)


def validar_imagem(arquivo):
    limite = settings.PLATAFORMA.get('MAX_BYTES_IMAGEM', 5 * 1024 * 1024)
    if arquivo is None:
        raise ErroUpload('Nenhuma imagem enviada.')
    if arquivo.size > limite:
        raise ErroUpload(f'Imagem muito grande (máx. {limite // (1024 * 1024)} MB).')
    try:
        with Image.open(arquivo) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, IndexError, struct.error, Image.DecompressionBombError):
        # verify() em arquivo truncado ou corrompido levanta erros variados do decoder
        raise ErroUpload('Arquivo enviado não é uma imagem válida.')
    finally:
        arquivo.seek(0)
    return arquivo


def normalizar_nome(nome):
    """Remove espaços nas pontas e colapsa espaços internos.

    `_` vale como espaço: é o separador do slug do perfil, então `Ana_Souza`
    e `Ana Souza` são o mesmo nome.
    """
    return ' '.join(str(nome or '').replace('_', ' ').split())


def criar_slug(nome):
    return normalizar_nome(nome).replace(' ', '_')


def ler_slug(slug):
    return normalizar_nome(slug)


def client_ip(request):
    if request is None:
        return None
    xff = request.META.get('HTTP_X_FORWARDED_FOR')
    if xff:
        return xff.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def log_audit(request=None, usuario=None, django_user=None, action=None, object_type=None, object_id=None, description=None, extra=None):
    """Cria um registro em AuditLog de forma segura (import tardio para evitar ciclos).

    Parâmetros:
    - request: objeto HttpRequest opcional (usado para extrair IP)
    - usuario: instância de usuarios.Usuario quando aplicável
    - django_user: instância de auth.User quando aplicável
    - action: string curta representando a ação
    - object_type/object_id: tipo e id do objeto afetado
    - description: texto adicional
    - extra: dicionário JSON-serializável com dados extras
    """
    if not action:
        return None

    try:
        # import tardio para evitar ciclos de import
        from .models import AuditLog
        AuditLog.objects.create(
            usuario=usuario,
            django_user=django_user,
            action=str(action),
            object_type=object_type,
            object_id=str(object_id) if object_id is not None else None,
            description=description,
            ip_address=client_ip(request),
            extra=extra
        )
    except Exception:
        # não propagar erros de auditoria para a aplicação
        logger.exception('Falha ao gravar AuditLog')
    return None
