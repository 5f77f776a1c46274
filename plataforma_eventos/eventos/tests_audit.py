from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient
from usuarios.models import Usuario, AuditLog
from .models import Inscricao
from .tests_eventos_api import criar_perfil, criar_evento


class AuditTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.org = criar_perfil('Org Audit', tipo=Usuario.TIPO_ORGANIZADOR)

    def test_creating_event_generates_auditlog(self):
        # cria evento diretamente (sinal post_save deve registrar)
        ev = criar_evento(self.org, nome='Evento Audit')

        exists = AuditLog.objects.filter(action='create_event', object_type='Evento', object_id=str(ev.id)).exists()
        self.assertTrue(exists, 'Esperava AuditLog para criação de Evento')

    def test_inscription_status_change_generates_auditlog(self):
        ev = criar_evento(self.org)
        cliente = criar_perfil('Cliente Audit')
        insc = Inscricao.objects.create(evento=ev, usuario=cliente)
        insc.status = Inscricao.CONFIRMADA
        insc.save()

        log = AuditLog.objects.filter(action='update_inscription', object_id=str(insc.id)).first()
        self.assertIsNotNone(log)
        self.assertEqual(log.extra, {'status': Inscricao.CONFIRMADA})

    def test_approval_generates_auditlog(self):
        ev = criar_evento(self.org, aprovado=False)
        staff = criar_perfil('Equipe', staff=True)
        self.client.force_authenticate(user=staff.user)

        resp = self.client.post(reverse('eventos_api:evento-aprovar', args=[ev.id]))
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(AuditLog.objects.filter(action='approve_event', django_user=staff.user).exists())

    def test_api_query_generates_auditlog(self):
        ev = criar_evento(self.org)
        resp = self.client.get(reverse('eventos_api:evento-detalhe', args=[ev.id]))
        self.assertEqual(resp.status_code, 200)

        found = AuditLog.objects.filter(action='api_query_events', object_type='Evento').exists()
        self.assertTrue(found, 'Esperava AuditLog para consulta API de eventos')
