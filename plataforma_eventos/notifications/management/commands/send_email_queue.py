"""
Comando Django customizado para processar a fila de e-mails pendentes (EmailJob).
Envia e-mails agendados, atualiza status e faz retentativas automáticas com backoff exponencial.
"""

from django.core.management.base import BaseCommand
from notifications.worker import _try_claim_one_pending, _send_job


class Command(BaseCommand):
    """
    Comando para processar e enviar e-mails pendentes da fila (EmailJob).
    Pode ser executado manualmente ou via agendamento (cron/task scheduler).
    """
    help = 'Processa fila de e-mails pendentes (EmailJob).'

    def add_arguments(self, parser):
        """
        Adiciona argumento opcional '--max' para limitar o número de e-mails processados por execução.
        """
        parser.add_argument('--max', type=int, default=50, help='Máximo de e-mails por execução')

    def handle(self, *args, **options):
        """
        Reivindica jobs pendentes um a um (status 'pending' -> 'sending') e os envia.
        Falhas voltam para 'pending' com backoff de 2^retries minutos, até 5 tentativas.
        """
        max_jobs = options['max']
        processed = 0
        while processed < max_jobs:
            job = _try_claim_one_pending()
            if job is None:
                break
            processed += 1
            _send_job(job)
            job.refresh_from_db()
            if job.status == 'sent':
                self.stdout.write(self.style.SUCCESS(f"Enviado: {job.to_email} - {job.subject}"))
            else:
                self.stderr.write(self.style.WARNING(f"Falha ao enviar para {job.to_email}: {job.last_error}"))

        self.stdout.write(self.style.NOTICE(f"Total processado: {processed}"))
