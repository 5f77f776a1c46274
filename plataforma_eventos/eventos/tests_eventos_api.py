import datetime
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from django.contrib.auth.models import User
from rest_framework.test import APIClient
from usuarios.models import Usuario, Estado, Municipio, AuditLog
from .models import Evento, Inscricao


def criar_perfil(nome, tipo=Usuario.TIPO_CLIENTE, staff=False):
    email = f"{nome.lower().replace(' ', '.')}@example.com"
    user = User.objects.create_user(username=email, email=email, password='segredo123', is_staff=staff)
    return Usuario.objects.create(user=user, nome=nome, tipo_usuario=tipo)


def criar_evento(criador, dias=10, **extra):
    inicio = timezone.now() + datetime.timedelta(days=dias)
    dados = {
        'nome': 'Oficina de Python',
        'criador': criador,
        'data_realizacao': inicio,
        'data_encerramento': inicio + datetime.timedelta(hours=3),
        'aprovado': True,
    }
    dados.update(extra)
    return Evento.objects.create(**dados)


def payload_evento(**extra):
    inicio = timezone.now() + datetime.timedelta(days=10)
    dados = {
        'nome': 'Meetup de Dados',
        'descricao': 'Conversas sobre pipelines.',
        'numero_vagas': 30,
        'gratuito': True,
        'data_realizacao': inicio.isoformat(),
        'data_encerramento': (inicio + datetime.timedelta(hours=2)).isoformat(),
    }
    dados.update(extra)
    return dados


class EventoApiTests(TestCase):
    """
    Ciclo de vida de um evento pela API:
    - criação por organizador, aguardando aprovação
    - aprovação pela equipe e exibição no feed
    - edição no lugar, finalização e exclusão lógica
    """

    def setUp(self):
        self.client = APIClient()
        self.org = criar_perfil('Org Um', tipo=Usuario.TIPO_ORGANIZADOR)
        self.cliente = criar_perfil('Cliente Um')
        self.staff = User.objects.create_user(username='staff@example.com', password='segredo123', is_staff=True)
        sp = Estado.objects.create(codigo_uf=35, uf='SP', nome='São Paulo')
        self.santos = Municipio.objects.create(codigo_ibge=3548500, nome='Santos', estado=sp)

    def test_organizador_cria_evento_pendente(self):
        self.client.force_authenticate(user=self.org.user)
        resp = self.client.post(reverse('eventos_api:eventos'), payload_evento(cidade=self.santos.pk), format='json')
        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertFalse(resp.data['aprovado'])
        self.assertEqual(resp.data['criador'], 'Org Um')
        self.assertEqual(resp.data['cidade_nome'], 'Santos - SP')

        # não aparece no feed até ser aprovado
        self.client.force_authenticate(user=None)
        feed = self.client.get(reverse('eventos_api:eventos'))
        self.assertEqual(feed.data['count'], 0)

    def test_cliente_nao_cria_evento(self):
        self.client.force_authenticate(user=self.cliente.user)
        resp = self.client.post(reverse('eventos_api:eventos'), payload_evento(), format='json')
        self.assertEqual(resp.status_code, 403)

    def test_validacoes_de_criacao(self):
        self.client.force_authenticate(user=self.org.user)
        url = reverse('eventos_api:eventos')
        ontem = (timezone.now() - datetime.timedelta(days=1)).isoformat()
        casos = [
            payload_evento(data_realizacao=ontem),
            payload_evento(data_encerramento=(timezone.now() + datetime.timedelta(days=2)).isoformat()),
            payload_evento(descricao='x' * 501),
            payload_evento(numero_vagas=0),
            payload_evento(nome='   '),
        ]
        for dados in casos:
            resp = self.client.post(url, dados, format='json')
            self.assertEqual(resp.status_code, 400, dados)
        self.assertFalse(Evento.objects.exists())

    def test_aprovacao_pela_equipe(self):
        evento = criar_evento(self.org, aprovado=False)
        self.client.force_authenticate(user=self.staff)

        pendentes = self.client.get(reverse('eventos_api:eventos-pendentes'))
        self.assertEqual([e['id'] for e in pendentes.data], [evento.pk])

        resp = self.client.post(reverse('eventos_api:evento-aprovar', args=[evento.pk]))
        self.assertEqual(resp.status_code, 200)
        feed = self.client.get(reverse('eventos_api:eventos'))
        self.assertEqual([e['id'] for e in feed.data['results']], [evento.pk])

    def test_rejeicao_remove_evento(self):
        evento = criar_evento(self.org, aprovado=False)
        self.client.force_authenticate(user=self.staff)
        resp = self.client.post(reverse('eventos_api:evento-rejeitar', args=[evento.pk]))
        self.assertEqual(resp.status_code, 204)
        self.assertFalse(Evento.objects.filter(pk=evento.pk).exists())

    def test_aprovacao_exige_equipe(self):
        evento = criar_evento(self.org, aprovado=False)
        self.client.force_authenticate(user=self.org.user)
        resp = self.client.post(reverse('eventos_api:evento-aprovar', args=[evento.pk]))
        self.assertEqual(resp.status_code, 403)

    def test_feed_filtra_por_nome_e_cidade(self):
        python = criar_evento(self.org, nome='Oficina de Python', cidade=self.santos)
        criar_evento(self.org, nome='Feira de Livros', dias=20)
        criar_evento(self.org, nome='Python Oculto', aprovado=False)
        criar_evento(self.org, nome='Python Realizado', realizado=True)
        criar_evento(self.org, nome='Python Excluído', deletado=True)

        url = reverse('eventos_api:eventos')
        por_nome = self.client.get(url, {'tipo': 'nome', 'q': 'python'})
        self.assertEqual([e['id'] for e in por_nome.data['results']], [python.pk])

        por_cidade = self.client.get(url, {'tipo': 'cidade', 'cidade': self.santos.pk})
        self.assertEqual([e['id'] for e in por_cidade.data['results']], [python.pk])

        todos = self.client.get(url)
        self.assertEqual([e['nome'] for e in todos.data['results']], ['Oficina de Python', 'Feira de Livros'])

    def test_detalhe_de_evento_nao_aprovado_so_para_o_criador(self):
        evento = criar_evento(self.org, aprovado=False)
        url = reverse('eventos_api:evento-detalhe', args=[evento.pk])
        self.assertEqual(self.client.get(url).status_code, 404)
        self.client.force_authenticate(user=self.org.user)
        self.assertEqual(self.client.get(url).status_code, 200)

    def test_edicao_de_campo(self):
        evento = criar_evento(self.org)
        self.client.force_authenticate(user=self.org.user)
        url = reverse('eventos_api:evento-campo', args=[evento.pk])

        resp = self.client.post(url, {'campo': 'nome', 'valor': 'Oficina Avançada'}, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['valor'], 'Oficina Avançada')

        self.assertEqual(self.client.post(url, {'campo': 'numero_vagas', 'valor': 0}, format='json').status_code, 400)
        self.assertEqual(self.client.post(url, {'campo': 'criador', 'valor': 1}, format='json').status_code, 400)
        antes = (evento.data_realizacao - datetime.timedelta(days=1)).isoformat()
        self.assertEqual(self.client.post(url, {'campo': 'data_encerramento', 'valor': antes}, format='json').status_code, 400)

    def test_outro_organizador_nao_edita(self):
        evento = criar_evento(self.org)
        outro = criar_perfil('Org Dois', tipo=Usuario.TIPO_ORGANIZADOR)
        self.client.force_authenticate(user=outro.user)
        resp = self.client.post(reverse('eventos_api:evento-campo', args=[evento.pk]), {'campo': 'nome', 'valor': 'X'}, format='json')
        self.assertEqual(resp.status_code, 404)

    def test_finalizar_expira_lista_de_espera(self):
        evento = criar_evento(self.org)
        Inscricao.objects.create(evento=evento, usuario=self.cliente)
        confirmado = criar_perfil('Cliente Dois')
        Inscricao.objects.create(evento=evento, usuario=confirmado, status=Inscricao.CONFIRMADA)

        self.client.force_authenticate(user=self.org.user)
        resp = self.client.post(reverse('eventos_api:evento-finalizar', args=[evento.pk]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['inscricoes_expiradas'], 1)

        evento.refresh_from_db()
        self.assertTrue(evento.realizado)
        self.assertEqual(evento.inscricoes.get(usuario=self.cliente).status, Inscricao.EXPIRADA)
        self.assertEqual(evento.inscricoes.get(usuario=confirmado).status, Inscricao.CONFIRMADA)

        # evento realizado não pode mais ser editado nem finalizado de novo
        campo = self.client.post(reverse('eventos_api:evento-campo', args=[evento.pk]), {'campo': 'nome', 'valor': 'X'}, format='json')
        self.assertEqual(campo.status_code, 400)
        self.assertEqual(self.client.post(reverse('eventos_api:evento-finalizar', args=[evento.pk])).status_code, 400)

    def test_meus_eventos_separa_futuros_e_passados(self):
        futuro = criar_evento(self.org)
        passado = criar_evento(self.org, dias=-5)
        criar_evento(self.org, deletado=True)

        self.client.force_authenticate(user=self.org.user)
        resp = self.client.get(reverse('eventos_api:meus-eventos'))
        self.assertEqual([e['id'] for e in resp.data['futuros']], [futuro.pk])
        self.assertEqual([e['id'] for e in resp.data['passados']], [passado.pk])

    def test_exclusao_logica(self):
        evento = criar_evento(self.org)
        self.client.force_authenticate(user=self.org.user)
        resp = self.client.delete(reverse('eventos_api:evento-detalhe', args=[evento.pk]))
        self.assertEqual(resp.status_code, 204)
        evento.refresh_from_db()
        self.assertTrue(evento.deletado)

    def test_usuario_sem_perfil_materializado(self):
        pendente = User.objects.create_user(username='pendente@example.com', password='segredo123')
        self.client.force_authenticate(user=pendente)
        resp = self.client.get(reverse('eventos_api:meus-eventos'))
        self.assertEqual(resp.status_code, 403)

    def test_token_da_api(self):
        resp = self.client.post(reverse('eventos_api:api_token_auth'), {'username': self.org.user.username, 'password': 'segredo123'}, format='json')
        self.assertEqual(resp.status_code, 200)
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {resp.data['token']}")
        self.assertEqual(self.client.get(reverse('eventos_api:meus-eventos')).status_code, 200)

    def test_consulta_do_feed_gera_auditoria(self):
        criar_evento(self.org)
        resp = self.client.get(reverse('eventos_api:eventos'))
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(AuditLog.objects.filter(action='api_query_events', object_type='Evento').exists())
