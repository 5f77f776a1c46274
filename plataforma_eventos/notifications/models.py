"""
Fila de e-mails transacionais (confirmação de cadastro, inscrição confirmada).

Os jobs são reivindicados trocando `pending` por `sending` num UPDATE
condicional, de modo que a thread do servidor e o comando `send_email_queue`
possam consumir a mesma fila sem enviar duas vezes.
"""

from django.db import models
from django.utils import timezone


MAX_TENTATIVAS = 5


class EmailJob(models.Model):
    """
    Um e-mail a enviar.

    Campos:
        to_email: destinatário.
        subject / text_body / html_body: conteúdo já renderizado.
        status: pending, sending, sent ou failed.
        retries: tentativas que falharam.
        scheduled_at: não enviar antes deste instante (backoff).
    """
    PENDING = 'pending'
    SENDING = 'sending'
    SENT = 'sent'
    FAILED = 'failed'
    STATUS_CHOICES = (
        (PENDING, 'Pending'),
        (SENDING, 'Sending'),
        (SENT, 'Sent'),
        (FAILED, 'Failed'),
    )

    to_email = models.EmailField()
    subject = models.CharField(max_length=255)
    text_body = models.TextField(blank=True, null=True)
    html_body = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=PENDING, db_index=True)
    retries = models.PositiveSmallIntegerField(default=0)
    scheduled_at = models.DateTimeField(default=timezone.now, db_index=True)
    sent_at = models.DateTimeField(blank=True, null=True)
    last_error = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"EmailJob(to={self.to_email}, subject={self.subject}, status={self.status})"

    @classmethod
    def reivindicar(cls, pk):
        """Passa o job `pk` de pending para sending. Retorna o job ou None se outro consumidor já o pegou."""
        updated = cls.objects.filter(pk=pk, status=cls.PENDING).update(status=cls.SENDING, updated_at=timezone.now())
        if updated == 1:
            return cls.objects.get(pk=pk)
        return None

    @classmethod
    def reivindicar_proximo(cls):
        """Reivindica o pendente vencido mais antigo, se houver."""
        job = cls.objects.filter(status=cls.PENDING, scheduled_at__lte=timezone.now()).order_by('scheduled_at').first()
        if job is None:
            return None
        return cls.reivindicar(job.pk)

    def devolver(self):
        """Volta um job reivindicado para a fila (nenhum worker neste processo)."""
        EmailJob.objects.filter(pk=self.pk, status=self.SENDING).update(status=self.PENDING, updated_at=timezone.now())

    def marcar_enviado(self):
        self.status = self.SENT
        self.sent_at = timezone.now()
        self.last_error = ''
        self.save(update_fields=['status', 'sent_at', 'last_error', 'updated_at'])

    def marcar_falha(self, erro):
        """Agenda nova tentativa em 2^retries minutos; desiste após MAX_TENTATIVAS."""
        self.retries += 1
        self.status = self.PENDING if self.retries < MAX_TENTATIVAS else self.FAILED
        self.scheduled_at = timezone.now() + timezone.timedelta(minutes=2 ** min(self.retries, MAX_TENTATIVAS))
        self.last_error = str(erro)[:1000]
        self.save(update_fields=['retries', 'status', 'scheduled_at', 'last_error', 'updated_at'])
