"""
Signals para auditoria de operações em eventos, inscrições e avaliações.

Registra logs de auditoria sempre que esses objetos são criados, atualizados ou excluídos.
"""

from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
from .models import Evento, Inscricao, Review
from usuarios.utils import log_audit


@receiver(post_save, sender=Evento)
def audit_evento_saved(sender, instance, created, **kwargs):
    """
    Registra a criação ou atualização de um Evento, com o criador e o nome do evento.
    """
    try:
        action = 'create_event' if created else 'update_event'
        usuario = getattr(instance, 'criador', None)
        log_audit(usuario=usuario, action=action, object_type='Evento', object_id=instance.id, description=f'Evento {action}: {instance.nome}')
    except Exception:
        pass


@receiver(post_delete, sender=Evento)
def audit_evento_deleted(sender, instance, **kwargs):
    try:
        log_audit(action='delete_event', object_type='Evento', object_id=getattr(instance, 'id', None), description=f'Evento excluído: {instance.nome}')
    except Exception:
        pass


@receiver(post_save, sender=Inscricao)
def audit_inscricao_saved(sender, instance, created, **kwargs):
    """
    Registra a criação ou mudança de status de uma Inscricao.
    """
    try:
        action = 'create_inscription' if created else 'update_inscription'
        log_audit(
            usuario=instance.usuario,
            action=action,
            object_type='Inscricao',
            object_id=instance.id,
            description=f'Inscrição {action} em evento {getattr(instance.evento, "nome", "?")}',
            extra={'status': instance.status},
        )
    except Exception:
        pass


@receiver(post_delete, sender=Inscricao)
def audit_inscricao_deleted(sender, instance, **kwargs):
    try:
        log_audit(
            action='delete_inscription',
            object_type='Inscricao',
            object_id=getattr(instance, 'id', None),
            description=f'Inscrição excluída de evento {getattr(instance.evento, "nome", "?")}'
        )
    except Exception:
        pass


@receiver(post_save, sender=Review)
def audit_review_created(sender, instance, created, **kwargs):
    try:
        if created:
            log_audit(usuario=instance.autor, action='create_review', object_type='Review', object_id=instance.id, description=f'Review nota {instance.nota} em {instance.evento.nome}')
    except Exception:
        pass
