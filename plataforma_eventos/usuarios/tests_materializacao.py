from django.test import SimpleTestCase, TestCase
from django.db import IntegrityError, transaction
from django.urls import reverse
from django.core.cache.backends.locmem import LocMemCache
from django.contrib.auth.models import User
from .navegador import ArmazenamentoNavegador, CanalBroadcast, Mensagem
from .materializacao import (
    MaterializacaoPerfil, RegistroPendente, SessaoAuth, Resultado, ErroMaterializacao,
    criar_perfil_de_registro,
    CHAVE_PENDENTE, CHAVE_TIMESTAMP, CHAVE_EXECUTADO, NOME_CANAL,
    EXECUTANDO, SUCESSO, SIGNED_IN, TOKEN_REFRESHED,
)
from .models import Usuario


class Relogio:
    def __init__(self, agora=1_000_000):
        self.agora = agora

    def __call__(self):
        return self.agora


class CriarPerfilFalso:
    """Registra as chamadas e devolve um objeto qualquer, ou levanta `erro`."""

    def __init__(self, erro=None):
        self.chamadas = []
        self.erro = erro

    def __call__(self, user_id, registro):
        self.chamadas.append((user_id, registro))
        if self.erro is not None:
            raise self.erro
        return object()


REGISTRO = RegistroPendente(nome='Maria Silva', email='maria@example.com', tipo_usuario='cliente')
SESSAO = SessaoAuth(user_id=7, email='maria@example.com', email_confirmado=True)


class MaterializacaoPerfilTests(SimpleTestCase):
    """
    Protocolo executado pelas abas de um mesmo navegador:
    - trava com janela de debounce entre execuções
    - anúncios EXECUTANDO/SUCESSO no canal
    - limpeza da trava em falha
    """

    def setUp(self):
        self.cache = LocMemCache('tests-materializacao', {'TIMEOUT': None})
        self.cache.clear()
        self.store = ArmazenamentoNavegador('perfil1', cache=self.cache)
        self.relogio = Relogio()
        self.criar = CriarPerfilFalso()

    def aba(self, nome, criar=None):
        canal = CanalBroadcast('perfil1', NOME_CANAL, cache=self.cache, ttl=60)
        canal.inscrever(nome)
        return MaterializacaoPerfil(self.store, canal, nome, criar_perfil=criar or self.criar, relogio=self.relogio, janela_ms=5000)

    def test_conclui_e_limpa_pendente(self):
        aba_b = self.aba('b')
        aba_b.salvar_pendente(REGISTRO)

        desfecho = aba_b.ao_mudar_estado_auth(SIGNED_IN, SESSAO)

        self.assertIs(desfecho.resultado, Resultado.CONCLUIDO)
        self.assertEqual(self.criar.chamadas, [(7, REGISTRO)])
        self.assertIsNone(self.store.get(CHAVE_PENDENTE))
        self.assertTrue(aba_b.executado())

    def test_anuncia_executando_e_sucesso(self):
        aba_a = self.aba('a')
        aba_b = self.aba('b')
        aba_b.salvar_pendente(REGISTRO)
        aba_b.ao_mudar_estado_auth(SIGNED_IN, SESSAO)

        self.assertEqual([m.tipo for m in aba_a.canal.receber('a')], [EXECUTANDO, SUCESSO])

    def test_segunda_aba_dentro_da_janela_desiste(self):
        # a trava foi gravada há 2s por outra aba, a inserção ainda não terminou
        aba_a = self.aba('a')
        aba_a.salvar_pendente(REGISTRO)
        self.store.set(CHAVE_TIMESTAMP, str(self.relogio.agora - 2000))

        desfecho = aba_a.ao_mudar_estado_auth(SIGNED_IN, SESSAO)

        self.assertIs(desfecho.resultado, Resultado.DESISTIU)
        self.assertEqual(self.criar.chamadas, [])

    def test_trava_antiga_nao_bloqueia(self):
        aba_a = self.aba('a')
        aba_a.salvar_pendente(REGISTRO)
        self.store.set(CHAVE_TIMESTAMP, str(self.relogio.agora - 5000))

        desfecho = aba_a.ao_mudar_estado_auth(SIGNED_IN, SESSAO)

        self.assertIs(desfecho.resultado, Resultado.CONCLUIDO)

    def test_falha_limpa_trava_e_mantem_pendente(self):
        aba_b = self.aba('b', criar=CriarPerfilFalso(erro=ErroMaterializacao('nome em uso')))
        aba_b.salvar_pendente(REGISTRO)

        desfecho = aba_b.ao_mudar_estado_auth(SIGNED_IN, SESSAO)

        self.assertIs(desfecho.resultado, Resultado.FALHOU)
        self.assertEqual(desfecho.mensagem, 'nome em uso')
        self.assertIsNone(self.store.get(CHAVE_TIMESTAMP))
        self.assertEqual(aba_b.ler_pendente(), REGISTRO)
        self.assertFalse(aba_b.executado())

        # nova tentativa logo em seguida não é bloqueada pela trava
        aba_b.criar_perfil = self.criar
        self.assertIs(aba_b.ao_mudar_estado_auth(SIGNED_IN, SESSAO).resultado, Resultado.CONCLUIDO)

    def test_erro_inesperado_vira_falhou_com_mensagem_generica(self):
        aba_b = self.aba('b', criar=CriarPerfilFalso(erro=RuntimeError('db caiu')))
        aba_b.salvar_pendente(REGISTRO)

        with self.assertLogs('usuarios.materializacao', level='ERROR'):
            desfecho = aba_b.ao_mudar_estado_auth(SIGNED_IN, SESSAO)

        self.assertIs(desfecho.resultado, Resultado.FALHOU)
        self.assertNotIn('db caiu', desfecho.mensagem)
        self.assertIsNone(self.store.get(CHAVE_TIMESTAMP))

    def test_sem_pendente_nao_faz_nada(self):
        aba_a = self.aba('a')
        desfecho = aba_a.ao_mudar_estado_auth(SIGNED_IN, SESSAO)
        self.assertIs(desfecho.resultado, Resultado.IGNORADO)
        self.assertEqual(self.criar.chamadas, [])
        self.assertIsNone(self.store.get(CHAVE_TIMESTAMP))

    def test_ignora_outros_eventos_e_email_nao_confirmado(self):
        aba_a = self.aba('a')
        aba_a.salvar_pendente(REGISTRO)
        nao_confirmado = SessaoAuth(user_id=7, email='maria@example.com', email_confirmado=False)

        self.assertIs(aba_a.ao_mudar_estado_auth(TOKEN_REFRESHED, SESSAO).resultado, Resultado.IGNORADO)
        self.assertIs(aba_a.ao_mudar_estado_auth(SIGNED_IN, None).resultado, Resultado.IGNORADO)
        self.assertIs(aba_a.ao_mudar_estado_auth(SIGNED_IN, nao_confirmado).resultado, Resultado.IGNORADO)
        self.assertEqual(self.criar.chamadas, [])

    def test_pendente_de_outra_conta_fica_intacto(self):
        aba_b = self.aba('b')
        aba_b.salvar_pendente(RegistroPendente(nome='João', email='joao@example.com'))

        desfecho = aba_b.ao_mudar_estado_auth(SIGNED_IN, SESSAO)

        self.assertIs(desfecho.resultado, Resultado.IGNORADO)
        self.assertEqual(self.criar.chamadas, [])
        self.assertEqual(aba_b.ler_pendente().email, 'joao@example.com')
        self.assertIsNone(self.store.get(CHAVE_TIMESTAMP))

        joao = SessaoAuth(user_id=8, email='Joao@Example.com', email_confirmado=True)
        self.assertIs(aba_b.ao_mudar_estado_auth(SIGNED_IN, joao).resultado, Resultado.CONCLUIDO)

    def test_mensagem_com_pendente_faz_aba_desistir(self):
        aba_a = self.aba('a')
        aba_a.salvar_pendente(REGISTRO)
        for tipo in (EXECUTANDO, SUCESSO):
            desfecho = aba_a.ao_receber_mensagem(Mensagem(tipo=tipo, origem='b', seq=1))
            self.assertIs(desfecho.resultado, Resultado.DESISTIU)

    def test_mensagem_sem_pendente_e_ignorada(self):
        aba_a = self.aba('a')
        desfecho = aba_a.ao_receber_mensagem(Mensagem(tipo=SUCESSO, origem='b', seq=1))
        self.assertIs(desfecho.resultado, Resultado.IGNORADO)

    def test_drenar_canal(self):
        aba_a = self.aba('a')
        aba_a.salvar_pendente(REGISTRO)
        aba_a.canal.publicar('b', EXECUTANDO)
        self.assertIs(aba_a.drenar_canal().resultado, Resultado.DESISTIU)
        self.assertIs(aba_a.drenar_canal().resultado, Resultado.IGNORADO)

    def test_pendente_ilegivel_e_descartado(self):
        aba_a = self.aba('a')
        self.store.set(CHAVE_PENDENTE, 'não é json')
        self.assertIsNone(aba_a.ler_pendente())
        self.assertIsNone(self.store.get(CHAVE_PENDENTE))

    def test_novo_cadastro_limpa_executado(self):
        aba_a = self.aba('a')
        self.store.set(CHAVE_EXECUTADO, 'true')
        aba_a.salvar_pendente(REGISTRO)
        self.assertFalse(aba_a.executado())


class CriarPerfilDeRegistroTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='maria@example.com', email='maria@example.com', password='segredo1')

    def test_cria_perfil(self):
        registro = RegistroPendente(nome='  Maria   Silva ', email='maria@example.com', tipo_usuario='organizador', data_nascimento='1990-05-01')
        perfil = criar_perfil_de_registro(self.user.pk, registro)
        self.assertEqual(perfil.nome, 'Maria Silva')
        self.assertTrue(perfil.is_organizador)
        self.assertEqual(perfil.data_nascimento.isoformat(), '1990-05-01')

    def test_segunda_insercao_para_mesma_conta_falha(self):
        criar_perfil_de_registro(self.user.pk, REGISTRO)
        outro = RegistroPendente(nome='Outro Nome', email='maria@example.com')
        with self.assertRaises(ErroMaterializacao):
            criar_perfil_de_registro(self.user.pk, outro)
        self.assertEqual(Usuario.objects.filter(user=self.user).count(), 1)

    def test_nome_em_uso(self):
        outro_user = User.objects.create_user(username='joao@example.com', email='joao@example.com', password='segredo1')
        Usuario.objects.create(user=outro_user, nome='Maria Silva')
        with self.assertRaisesMessage(ErroMaterializacao, 'já está em uso'):
            criar_perfil_de_registro(self.user.pk, REGISTRO)

    def test_variacao_de_caixa_do_nome_em_uso(self):
        outro_user = User.objects.create_user(username='joao@example.com', email='joao@example.com', password='segredo1')
        Usuario.objects.create(user=outro_user, nome='maria silva')
        with self.assertRaisesMessage(ErroMaterializacao, 'já está em uso'):
            criar_perfil_de_registro(self.user.pk, REGISTRO)
        self.assertFalse(Usuario.objects.filter(user=self.user).exists())

        resp = self.client.get(reverse('perfil_publico', kwargs={'slug': 'Maria_Silva'}))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.context['usuario'].user, outro_user)

    def test_banco_recusa_variacao_de_caixa(self):
        outro_user = User.objects.create_user(username='joao@example.com', email='joao@example.com', password='segredo1')
        Usuario.objects.create(user=outro_user, nome='Maria Silva')
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Usuario.objects.create(user=self.user, nome='MARIA SILVA')
