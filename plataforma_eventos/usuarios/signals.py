"""
Sinais do app de usuários.

`estado_auth_alterado` é emitido a cada transição de autenticação observada
por uma aba (SIGNED_IN, SIGNED_OUT, TOKEN_REFRESHED, USER_UPDATED), com os
argumentos `evento`, `sessao` (SessaoAuth ou None), `perfil` (perfil de
navegador) e, quando a transição veio de uma requisição, `request` e `aba`.

Receivers registrados aqui:
- materialização do perfil pendente em SIGNED_IN;
- descarte do cliente de API do navegador em SIGNED_OUT;
- auditoria das transições e da criação de contas/perfis.
"""

import logging
from django.dispatch import Signal, receiver
from django.db.models.signals import post_save
from django.contrib.auth.models import User
from .models import Usuario
from .utils import log_audit
from .materializacao import (
    Desfecho, SessaoAuth, SIGNED_IN, SIGNED_OUT, materializacao_da_requisicao,
)
from .navegador import nova_aba


logger = logging.getLogger(__name__)

estado_auth_alterado = Signal()


def emitir_estado_auth(request, evento, user=None, aba=None):
    """Emite `estado_auth_alterado` para a aba da requisição.

    Retorna o `Desfecho` da materialização quando algum receiver o produziu.
    """
    user = user if user is not None else getattr(request, 'user', None)
    sessao = SessaoAuth.do_usuario(user)
    respostas = estado_auth_alterado.send(
        sender=Usuario,
        evento=evento,
        sessao=sessao,
        request=request,
        aba=aba,
        perfil=getattr(request, 'perfil_navegador', None),
    )
    for _receiver, resposta in respostas:
        if isinstance(resposta, Desfecho):
            return resposta
    return None


@receiver(estado_auth_alterado)
def materializar_perfil_ao_entrar(sender, evento, sessao, request=None, aba=None, **kwargs):
    """Executa o protocolo de materialização para a aba que viu o SIGNED_IN."""
    if evento != SIGNED_IN or request is None or sessao is None:
        return None
    materializacao = materializacao_da_requisicao(request, aba or nova_aba())
    return materializacao.ao_mudar_estado_auth(evento, sessao)


@receiver(estado_auth_alterado)
def descartar_cliente_ao_sair(sender, evento, perfil=None, **kwargs):
    if evento != SIGNED_OUT or not perfil:
        return None
    from .cliente import registro_clientes
    try:
        registro_clientes.get(perfil).sair()
    finally:
        registro_clientes.destroy(perfil)
    return None


@receiver(estado_auth_alterado)
def auditar_estado_auth(sender, evento, sessao=None, request=None, **kwargs):
    try:
        django_user = None
        if sessao is not None:
            django_user = User.objects.filter(pk=sessao.user_id).first()
        log_audit(
            request=request,
            django_user=django_user,
            action=f'auth_{evento.lower()}',
            object_type='auth.User',
            object_id=sessao.user_id if sessao else None,
            description=f'Transição de autenticação: {evento}',
        )
    except Exception:
        logger.exception('Falha ao auditar transição %s', evento)
    return None


@receiver(post_save, sender=Usuario)
def audit_usuario_created(sender, instance, created, **kwargs):
    """
    Registra auditoria quando um perfil Usuario é materializado.
    """
    try:
        if created:
            log_audit(usuario=instance, django_user=instance.user, action='create_usuario', object_type='Usuario', object_id=instance.id, description=f'Usuario criado: {instance.nome}')
    except Exception:
        pass


@receiver(post_save, sender=User)
def audit_authuser_created(sender, instance, created, **kwargs):
    """
    Registra auditoria quando uma conta auth.User é criada (ainda sem perfil).
    """
    try:
        if created:
            log_audit(django_user=instance, action='create_django_user', object_type='auth.User', object_id=instance.id, description=f'Auth User criado: {instance.username}')
    except Exception:
        pass
