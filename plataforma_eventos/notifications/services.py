import logging
from django.template.loader import render_to_string
from django.conf import settings
from django.utils import timezone
from django.urls import reverse
from django.core.mail import EmailMultiAlternatives
from django.utils.http import urlsafe_base64_encode
from django.utils.encoding import force_bytes
from django.contrib.auth.tokens import default_token_generator
from .models import EmailJob
from .worker import push_job


logger = logging.getLogger(__name__)

SYSTEM_NAME = 'Plataforma de Eventos'


def _montar_mensagem(to_email, subject, text_body=None, html_body=None):
    sender = getattr(settings, 'DEFAULT_FROM_EMAIL', None) or getattr(settings, 'SERVER_EMAIL', None)
    msg = EmailMultiAlternatives(
        subject=subject,
        body=text_body or '',
        from_email=sender,
        to=[to_email],
    )
    if html_body:
        msg.attach_alternative(html_body, 'text/html')
    return msg


def enqueue_email(to_email: str, subject: str, *, text_body: str = None, html_body: str = None, when=None, send_now: bool = False):
    """Add a new email to the queue. A background worker (same process) will send it."""
    if send_now:
        msg = _montar_mensagem(to_email, subject, text_body, html_body)
        try:
            msg.send(fail_silently=False)
        except Exception as e:
            logger.error("Email send failed: subject=%s to=%s error=%s", subject, to_email, e, exc_info=True)
            # Re-raise to surface the error to caller flows (so UI can show message)
            raise
        return None

    job = EmailJob.objects.create(
        to_email=to_email,
        subject=subject,
        text_body=text_body or '',
        html_body=html_body or '',
        scheduled_at=when or timezone.now(),
    )
    # reivindicado antes do push para o poller não pegar o mesmo job
    claimed = EmailJob.reivindicar(job.pk)
    if claimed is not None and not push_job(job.id):
        # sem worker neste processo: fica para o poller / send_email_queue
        claimed.devolver()
    return job


def link_confirmacao(user):
    uid = urlsafe_base64_encode(force_bytes(user.pk))
    token = default_token_generator.make_token(user)
    path = reverse('confirmar_email', kwargs={'uidb64': uid, 'token': token})
    site_url = getattr(settings, 'SITE_URL', '').rstrip('/')
    return f"{site_url}{path}" if site_url else path


def queue_confirmacao_cadastro(user, nome, *, send_now: bool = True):
    """Envia o e-mail com o link de confirmação de uma conta recém-criada (inativa)."""
    if not user or not getattr(user, 'email', None):
        return None

    site_url = getattr(settings, 'SITE_URL', '').rstrip('/')
    ctx = {
        'nome': nome,
        'user': user,
        'confirm_url': link_confirmacao(user),
        'site_url': site_url,
        'system_name': SYSTEM_NAME,
    }
    primeiro_nome = (nome or '').split(' ')[0] or user.email
    subject = f"Bem-vindo à {SYSTEM_NAME}, {primeiro_nome}! Confirme seu e-mail"
    text = render_to_string('emails/confirmacao_cadastro.txt', ctx)
    html = render_to_string('emails/confirmacao_cadastro.html', ctx)
    return enqueue_email(user.email, subject, text_body=text, html_body=html, send_now=send_now)


def queue_inscricao_confirmada(inscricao, *, send_now: bool = False):
    """Avisa o inscrito de que o organizador confirmou sua vaga."""
    usuario = inscricao.usuario
    if not getattr(usuario, 'email', None):
        return None
    ctx = {
        'usuario': usuario,
        'evento': inscricao.evento,
        'site_url': getattr(settings, 'SITE_URL', '').rstrip('/'),
        'system_name': SYSTEM_NAME,
    }
    subject = f"Inscrição confirmada - {inscricao.evento.nome}"
    text = render_to_string('emails/inscricao_confirmada.txt', ctx)
    return enqueue_email(usuario.email, subject, text_body=text, send_now=send_now)
