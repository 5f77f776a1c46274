from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient
from notifications.models import EmailJob
from usuarios.models import Usuario
from .models import Inscricao
from .tests_eventos_api import criar_perfil, criar_evento


class InscricaoTests(TestCase):
    """
    Inscrições e lista de espera:
    - clientes se inscrevem como pendentes, em ordem de chegada
    - o organizador confirma enquanto houver vaga
    - o inscrito ou o organizador podem remover a inscrição
    """

    def setUp(self):
        self.client = APIClient()
        self.org = criar_perfil('Org Um', tipo=Usuario.TIPO_ORGANIZADOR)
        self.ana = criar_perfil('Ana')
        self.bruno = criar_perfil('Bruno')
        self.evento = criar_evento(self.org, numero_vagas=1)

    def inscrever(self, perfil, evento=None):
        self.client.force_authenticate(user=perfil.user)
        return self.client.post(reverse('eventos_api:evento-inscricoes', args=[(evento or self.evento).pk]))

    def test_lista_de_espera_em_ordem(self):
        primeira = self.inscrever(self.ana)
        segunda = self.inscrever(self.bruno)
        self.assertEqual(primeira.status_code, 201)
        self.assertEqual(primeira.data['status'], Inscricao.PENDENTE)
        self.assertEqual(primeira.data['posicao_espera'], 1)
        self.assertEqual(segunda.data['posicao_espera'], 2)

    def test_inscricao_duplicada(self):
        self.inscrever(self.ana)
        resp = self.inscrever(self.ana)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(Inscricao.objects.filter(usuario=self.ana).count(), 1)

    def test_organizador_nao_se_inscreve(self):
        outro_org = criar_perfil('Org Dois', tipo=Usuario.TIPO_ORGANIZADOR)
        self.assertEqual(self.inscrever(outro_org).status_code, 403)

    def test_evento_fechado(self):
        nao_aprovado = criar_evento(self.org, aprovado=False)
        realizado = criar_evento(self.org, realizado=True)
        self.assertEqual(self.inscrever(self.ana, nao_aprovado).status_code, 400)
        self.assertEqual(self.inscrever(self.ana, realizado).status_code, 400)

    def test_confirmar_respeita_vagas_e_avisa_inscrito(self):
        ana = Inscricao.objects.create(evento=self.evento, usuario=self.ana)
        bruno = Inscricao.objects.create(evento=self.evento, usuario=self.bruno)
        self.client.force_authenticate(user=self.org.user)

        resp = self.client.post(reverse('eventos_api:inscricao-confirmar', args=[ana.pk]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['status'], Inscricao.CONFIRMADA)
        self.assertTrue(EmailJob.objects.filter(to_email=self.ana.email).exists())

        resp = self.client.post(reverse('eventos_api:inscricao-confirmar', args=[bruno.pk]))
        self.assertEqual(resp.status_code, 400)
        bruno.refresh_from_db()
        self.assertEqual(bruno.status, Inscricao.PENDENTE)

    def test_so_o_criador_confirma(self):
        ana = Inscricao.objects.create(evento=self.evento, usuario=self.ana)
        self.client.force_authenticate(user=self.bruno.user)
        resp = self.client.post(reverse('eventos_api:inscricao-confirmar', args=[ana.pk]))
        self.assertEqual(resp.status_code, 404)

    def test_criador_lista_inscricoes(self):
        Inscricao.objects.create(evento=self.evento, usuario=self.ana)
        self.client.force_authenticate(user=self.org.user)
        resp = self.client.get(reverse('eventos_api:evento-inscricoes', args=[self.evento.pk]))
        self.assertEqual([i['usuario'] for i in resp.data], ['Ana'])

        self.client.force_authenticate(user=self.ana.user)
        resp = self.client.get(reverse('eventos_api:evento-inscricoes', args=[self.evento.pk]))
        self.assertEqual(resp.status_code, 404)

    def test_cancelar_inscricao(self):
        ana = Inscricao.objects.create(evento=self.evento, usuario=self.ana)
        bruno = Inscricao.objects.create(evento=self.evento, usuario=self.bruno)

        self.client.force_authenticate(user=self.bruno.user)
        self.assertEqual(self.client.delete(reverse('eventos_api:inscricao', args=[ana.pk])).status_code, 403)

        self.client.force_authenticate(user=self.ana.user)
        self.assertEqual(self.client.delete(reverse('eventos_api:inscricao', args=[ana.pk])).status_code, 204)

        self.client.force_authenticate(user=self.org.user)
        self.assertEqual(self.client.delete(reverse('eventos_api:inscricao', args=[bruno.pk])).status_code, 204)
        self.assertFalse(Inscricao.objects.exists())

    def test_minhas_inscricoes_ignora_eventos_encerrados(self):
        Inscricao.objects.create(evento=self.evento, usuario=self.ana)
        realizado = criar_evento(self.org, realizado=True)
        Inscricao.objects.create(evento=realizado, usuario=self.ana)

        self.client.force_authenticate(user=self.ana.user)
        resp = self.client.get(reverse('eventos_api:minhas-inscricoes'))
        self.assertEqual([i['evento'] for i in resp.data], [self.evento.pk])
