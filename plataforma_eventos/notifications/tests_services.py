from io import StringIO
from unittest.mock import patch
from django.test import TestCase
from django.core import mail
from django.core.management import call_command
from django.contrib.auth.models import User
from django.utils import timezone
from .models import EmailJob
from .services import enqueue_email, queue_confirmacao_cadastro, link_confirmacao
from .worker import send_job_now


class EnqueueEmailTests(TestCase):
    def test_sem_worker_o_job_fica_pendente(self):
        job = enqueue_email('maria@example.com', 'Assunto', text_body='corpo')
        job.refresh_from_db()
        self.assertEqual(job.status, EmailJob.PENDING)
        self.assertEqual(len(mail.outbox), 0)

    def test_send_job_now_envia_na_thread_atual(self):
        job = enqueue_email('maria@example.com', 'Assunto', text_body='corpo', html_body='<p>corpo</p>')
        self.assertTrue(send_job_now(job.pk))
        job.refresh_from_db()
        self.assertEqual(job.status, EmailJob.SENT)
        self.assertEqual(mail.outbox[0].to, ['maria@example.com'])
        self.assertEqual(mail.outbox[0].alternatives[0][1], 'text/html')
        self.assertEqual(mail.outbox[0].attachments, [])
        self.assertNotIn('attachments', [f.name for f in EmailJob._meta.get_fields()])

    @patch('django.core.mail.EmailMultiAlternatives.send', side_effect=OSError('smtp fora'))
    def test_falha_agenda_nova_tentativa(self, mock_send):
        job = enqueue_email('maria@example.com', 'Assunto', text_body='corpo')
        send_job_now(job.pk)
        job.refresh_from_db()
        self.assertEqual(job.status, EmailJob.PENDING)
        self.assertEqual(job.retries, 1)
        self.assertIn('smtp fora', job.last_error)
        self.assertGreater(job.scheduled_at, timezone.now())

    @patch('django.core.mail.EmailMultiAlternatives.send', side_effect=OSError('smtp fora'))
    def test_desiste_depois_de_cinco_tentativas(self, mock_send):
        job = enqueue_email('maria@example.com', 'Assunto', text_body='corpo')
        EmailJob.objects.filter(pk=job.pk).update(retries=4)
        send_job_now(job.pk)
        job.refresh_from_db()
        self.assertEqual(job.status, EmailJob.FAILED)

    @patch('django.core.mail.EmailMultiAlternatives.send', side_effect=OSError('smtp fora'))
    def test_send_now_propaga_erro(self, mock_send):
        with self.assertRaises(OSError):
            enqueue_email('maria@example.com', 'Assunto', text_body='corpo', send_now=True)
        self.assertFalse(EmailJob.objects.exists())

    def test_comando_processa_fila(self):
        enqueue_email('a@example.com', 'Um', text_body='1')
        enqueue_email('b@example.com', 'Dois', text_body='2')
        futuro = enqueue_email('c@example.com', 'Depois', text_body='3', when=timezone.now() + timezone.timedelta(hours=1))

        out = StringIO()
        call_command('send_email_queue', '--max', '10', stdout=out)

        self.assertEqual(sorted(m.to[0] for m in mail.outbox), ['a@example.com', 'b@example.com'])
        self.assertIn('Total processado: 2', out.getvalue())
        futuro.refresh_from_db()
        self.assertEqual(futuro.status, EmailJob.PENDING)


class ConfirmacaoCadastroEmailTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='maria@example.com', email='maria@example.com', password='segredo123', is_active=False)

    def test_envia_link_de_confirmacao(self):
        queue_confirmacao_cadastro(self.user, 'Maria Silva')
        self.assertEqual(len(mail.outbox), 1)
        msg = mail.outbox[0]
        self.assertIn('Maria', msg.subject)
        self.assertIn('/usuarios/confirmar/', msg.body)

    def test_link_aponta_para_confirmacao(self):
        self.assertIn('/usuarios/confirmar/', link_confirmacao(self.user))

    def test_usuario_sem_email(self):
        sem_email = User.objects.create_user(username='x', password='segredo123')
        self.assertIsNone(queue_confirmacao_cadastro(sem_email, 'X'))
        self.assertEqual(len(mail.outbox), 0)
