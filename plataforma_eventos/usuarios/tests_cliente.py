from unittest.mock import patch
from django.test import TestCase, Client
from django.urls import reverse
from django.core.cache import caches
from django.core.cache.backends.locmem import LocMemCache
from django.contrib.auth.models import User
from django.dispatch import receiver
from rest_framework.authtoken.models import Token
from .navegador import ArmazenamentoNavegador
from .cliente import (
    ClienteBackend, RegistroClientes, CoordenadorVisibilidade, registro_clientes,
    CHAVE_TOKEN, OCULTO, VISIVEL, FOCO,
)
from .materializacao import TOKEN_REFRESHED
from .signals import estado_auth_alterado


class Relogio:
    def __init__(self, agora=1000.0):
        self.agora = agora

    def __call__(self):
        return self.agora


class ClienteBackendTests(TestCase):
    def setUp(self):
        self.cache = LocMemCache('tests-cliente', {'TIMEOUT': None})
        self.cache.clear()
        self.store = ArmazenamentoNavegador('perfil1', cache=self.cache)
        self.relogio = Relogio()
        self.cliente = ClienteBackend('perfil1', armazenamento=self.store, relogio=self.relogio, validade=60)
        self.user = User.objects.create_user(username='maria@example.com', email='maria@example.com', password='segredo123')

    def test_entrar_guarda_token_no_navegador(self):
        sessao = self.cliente.entrar(self.user)
        self.assertEqual(sessao.user_id, self.user.pk)
        self.assertEqual(self.store.get(CHAVE_TOKEN), Token.objects.get(user=self.user).key)

    def test_sessao_restaura_token_ausente(self):
        sessao = self.cliente.sessao(self.user)
        self.assertEqual(sessao.email, 'maria@example.com')
        self.assertIsNotNone(self.cliente.token)

    def test_sessao_sem_usuario_descarta_token(self):
        self.cliente.entrar(self.user)
        self.assertIsNone(self.cliente.sessao(None))
        self.assertIsNone(self.cliente.token)

    def test_renova_token_expirado_quando_renovacao_ativa(self):
        eventos = []

        @receiver(estado_auth_alterado, weak=False)
        def registrar(sender, evento, **kwargs):
            eventos.append(evento)

        try:
            self.cliente.entrar(self.user)
            antigo = self.cliente.token
            self.cliente.iniciar_renovacao()
            self.relogio.agora += 61
            self.cliente.sessao(self.user)
        finally:
            estado_auth_alterado.disconnect(registrar)

        self.assertNotEqual(self.cliente.token, antigo)
        self.assertIn(TOKEN_REFRESHED, eventos)

    def test_sem_renovacao_o_token_envelhece(self):
        self.cliente.entrar(self.user)
        antigo = self.cliente.token
        self.relogio.agora += 61
        self.cliente.sessao(self.user)
        self.assertEqual(self.cliente.token, antigo)

    def test_token_de_outra_conta_e_substituido(self):
        outro = User.objects.create_user(username='joao@example.com', password='segredo123')
        self.store.set(CHAVE_TOKEN, Token.objects.create(user=outro).key)
        self.cliente.sessao(self.user)
        self.assertEqual(self.cliente.token, Token.objects.get(user=self.user).key)


class RegistroClientesTests(TestCase):
    def setUp(self):
        self.cache = LocMemCache('tests-registro', {'TIMEOUT': None})
        self.registro = RegistroClientes(fabrica=lambda perfil: ClienteBackend(perfil, armazenamento=ArmazenamentoNavegador(perfil, cache=self.cache)))

    def test_get_reaproveita_cliente(self):
        self.assertIs(self.registro.get('p1'), self.registro.get('p1'))
        self.assertTrue(self.registro.get('p1').renovacao_ativa)

    def test_reset_troca_e_para_o_antigo(self):
        antigo = self.registro.get('p1')
        novo = self.registro.reset('p1')
        self.assertIsNot(antigo, novo)
        self.assertFalse(antigo.renovacao_ativa)
        self.assertIs(self.registro.get('p1'), novo)

    def test_destroy(self):
        c1 = self.registro.get('p1')
        self.registro.get('p2')
        self.registro.destroy('p1')
        self.assertNotIn('p1', self.registro)
        self.assertFalse(c1.renovacao_ativa)
        self.registro.destroy()
        self.assertEqual(len(self.registro), 0)


class CoordenadorVisibilidadeTests(TestCase):
    """
    Ciclo de visibilidade de uma aba:
    - hidden só marca a aba
    - visible/focus depois de hidden limpa os tokens, recria o cliente e consulta a sessão uma vez
    """

    def setUp(self):
        self.cache = LocMemCache('tests-visibilidade', {'TIMEOUT': None})
        self.cache.clear()
        self.store = ArmazenamentoNavegador('perfil1', cache=self.cache)
        self.registro = RegistroClientes(fabrica=lambda perfil: ClienteBackend(perfil, armazenamento=self.store))
        self.coordenador = CoordenadorVisibilidade('perfil1', 'aba1', registro=self.registro, armazenamento=self.store)
        self.user = User.objects.create_user(username='maria@example.com', email='maria@example.com', password='segredo123')

    def test_visible_sem_hidden_antes_nao_faz_nada(self):
        cliente = self.registro.get('perfil1')
        self.assertEqual(self.coordenador.notificar(VISIVEL, self.user), (False, None))
        self.assertIs(self.registro.get('perfil1'), cliente)

    def test_usa_o_registro_injetado_mesmo_vazio(self):
        self.assertEqual(len(self.registro), 0)
        self.assertIs(self.coordenador.registro, self.registro)
        self.assertIs(self.coordenador.armazenamento, self.store)

    def test_hidden_so_marca_a_aba(self):
        cliente = self.registro.get('perfil1')
        cliente.entrar(self.user)
        self.coordenador.notificar(OCULTO, self.user)
        self.assertTrue(cliente.renovacao_ativa)
        self.assertIs(self.registro.get('perfil1'), cliente)
        self.assertTrue(self.coordenador.estava_oculta)

    def test_volta_recria_cliente_e_consulta_sessao(self):
        antigo = self.registro.get('perfil1')
        antigo.entrar(self.user)
        self.store.set('plataforma.auth.token.outro', 'x')

        self.coordenador.notificar(OCULTO, self.user)
        recriado, sessao = self.coordenador.notificar(FOCO, self.user)

        self.assertTrue(recriado)
        self.assertEqual(sessao.user_id, self.user.pk)
        self.assertIsNot(self.registro.get('perfil1'), antigo)
        self.assertTrue(self.registro.get('perfil1').renovacao_ativa)
        self.assertIsNone(self.store.get('plataforma.auth.token.outro'))
        self.assertFalse(self.coordenador.estava_oculta)

    def test_falha_na_consulta_so_e_registrada(self):
        self.coordenador.notificar(OCULTO, self.user)
        with patch.object(ClienteBackend, 'sessao', side_effect=RuntimeError('rede')):
            with self.assertLogs('usuarios.cliente', level='ERROR'):
                recriado, sessao = self.coordenador.notificar(VISIVEL, self.user)
        self.assertTrue(recriado)
        self.assertIsNone(sessao)

    def test_estado_desconhecido(self):
        with self.assertRaises(ValueError):
            self.coordenador.notificar('minimized')


class VisibilidadeViewTests(TestCase):
    def setUp(self):
        caches['navegador'].clear()
        registro_clientes.destroy()
        self.client = Client()
        self.user = User.objects.create_user(username='maria@example.com', email='maria@example.com', password='segredo123')
        self.client.login(username='maria@example.com', password='segredo123')

    def test_ciclo_hidden_visible(self):
        url = reverse('visibilidade')
        resp = self.client.post(url, {'aba': 'aba1', 'estado': 'hidden'})
        self.assertEqual(resp.json(), {'recriado': False, 'sessao': None})

        resp = self.client.post(url, {'aba': 'aba1', 'estado': 'visible'})
        dados = resp.json()
        self.assertTrue(dados['recriado'])
        self.assertEqual(dados['sessao']['user_id'], self.user.pk)

    def test_estado_invalido(self):
        resp = self.client.post(reverse('visibilidade'), {'aba': 'aba1', 'estado': 'x'})
        self.assertEqual(resp.status_code, 400)

    def test_logout_descarta_cliente(self):
        self.client.post(reverse('visibilidade'), {'aba': 'aba1', 'estado': 'hidden'})
        perfil = self.client.cookies['perfil_navegador'].value
        self.assertIn(perfil, registro_clientes)
        self.client.get(reverse('logout'))
        self.assertNotIn(perfil, registro_clientes)
