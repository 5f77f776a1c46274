from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient
from usuarios.models import Usuario, AuditLog
from .models import Inscricao, Review
from .tests_eventos_api import criar_perfil, criar_evento


class ReviewTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.org = criar_perfil('Org Um', tipo=Usuario.TIPO_ORGANIZADOR)
        self.ana = criar_perfil('Ana')
        self.evento = criar_evento(self.org, dias=-1, realizado=True)
        Inscricao.objects.create(evento=self.evento, usuario=self.ana, status=Inscricao.CONFIRMADA)
        self.url = reverse('eventos_api:evento-reviews', args=[self.evento.pk])

    def test_participante_confirmado_avalia(self):
        self.client.force_authenticate(user=self.ana.user)
        resp = self.client.post(self.url, {'nota': 5, 'comentario': 'Ótimo!'}, format='json')
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data['autor'], 'Ana')
        self.assertTrue(AuditLog.objects.filter(action='create_review', object_id=str(resp.data['id'])).exists())

        self.client.force_authenticate(user=None)
        publico = self.client.get(self.url)
        self.assertEqual([r['nota'] for r in publico.data], [5])

    def test_uma_avaliacao_por_autor(self):
        self.client.force_authenticate(user=self.ana.user)
        self.client.post(self.url, {'nota': 4}, format='json')
        resp = self.client.post(self.url, {'nota': 2}, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(Review.objects.count(), 1)

    def test_nota_fora_do_intervalo(self):
        self.client.force_authenticate(user=self.ana.user)
        self.assertEqual(self.client.post(self.url, {'nota': 6}, format='json').status_code, 400)
        self.assertEqual(self.client.post(self.url, {'nota': 0}, format='json').status_code, 400)

    def test_sem_inscricao_confirmada(self):
        bruno = criar_perfil('Bruno')
        Inscricao.objects.create(evento=self.evento, usuario=bruno, status=Inscricao.EXPIRADA)
        self.client.force_authenticate(user=bruno.user)
        self.assertEqual(self.client.post(self.url, {'nota': 3}, format='json').status_code, 403)

    def test_evento_ainda_nao_realizado(self):
        futuro = criar_evento(self.org)
        Inscricao.objects.create(evento=futuro, usuario=self.ana, status=Inscricao.CONFIRMADA)
        self.client.force_authenticate(user=self.ana.user)
        resp = self.client.post(reverse('eventos_api:evento-reviews', args=[futuro.pk]), {'nota': 5}, format='json')
        self.assertEqual(resp.status_code, 400)

    def test_minhas_reviews(self):
        Review.objects.create(evento=self.evento, autor=self.ana, nota=4)
        self.client.force_authenticate(user=self.ana.user)
        resp = self.client.get(reverse('eventos_api:minhas-reviews'))
        self.assertEqual([r['evento_nome'] for r in resp.data], ['Oficina de Python'])
