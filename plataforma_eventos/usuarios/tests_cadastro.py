import re
from django.test import TestCase, Client
from django.urls import reverse
from django.core import mail
from django.core.cache import caches
from django.contrib.auth.models import User
from .models import Usuario, Estado, Municipio
from .navegador import ArmazenamentoNavegador, CanalBroadcast
from .materializacao import CHAVE_PENDENTE, CHAVE_TIMESTAMP, CHAVE_EXECUTADO, NOME_CANAL, EXECUTANDO
from .cliente import registro_clientes


DADOS_CADASTRO = {
    'nome': 'Maria Silva',
    'email': 'maria@example.com',
    'senha': 'segredo123',
    'senha_confirm': 'segredo123',
    'numero_celular': '(11) 99613-5479',
    'data_nascimento': '1990-05-01',
    'tipo_usuario': 'cliente',
}


class CadastroFlowTests(TestCase):
    """
    Cadastro com confirmação de e-mail em duas abas do mesmo navegador:
    - aba A envia o formulário e fica consultando o estado
    - aba B abre o link do e-mail, confirma e materializa o perfil
    """

    def setUp(self):
        caches['navegador'].clear()
        registro_clientes.destroy()
        # o mesmo Client faz o papel do navegador: as abas compartilham cookies e sessão
        self.client = Client()

    def cadastrar(self, **extra):
        dados = dict(DADOS_CADASTRO, **extra)
        resp = self.client.post(reverse('cadastro'), dados)
        self.assertEqual(resp.status_code, 200)
        self.assertTemplateUsed(resp, 'usuarios/aguardando_confirmacao.html')
        return resp.context['aba']

    def link_do_email(self):
        self.assertEqual(len(mail.outbox), 1)
        match = re.search(r'(/usuarios/confirmar/[^/\s]+/[^/\s]+/)', mail.outbox[0].body)
        self.assertIsNotNone(match, 'link de confirmação ausente no e-mail')
        return match.group(1)

    @property
    def perfil_navegador(self):
        return self.client.cookies['perfil_navegador'].value

    def armazenamento(self):
        return ArmazenamentoNavegador(self.perfil_navegador)

    def estado(self, aba):
        resp = self.client.get(reverse('estado_cadastro'), {'aba': aba})
        self.assertEqual(resp.status_code, 200)
        return resp.json()

    def test_cadastro_cria_conta_inativa_e_guarda_pendente(self):
        aba_a = self.cadastrar()

        user = User.objects.get(username='maria@example.com')
        self.assertFalse(user.is_active)
        self.assertFalse(Usuario.objects.filter(user=user).exists())
        self.assertIn('Maria Silva', self.armazenamento().get(CHAVE_PENDENTE))
        self.assertEqual(self.estado(aba_a), {'acao': 'aguardar'})

    def test_confirmacao_materializa_e_aba_a_redireciona(self):
        aba_a = self.cadastrar()

        resp = self.client.get(self.link_do_email())
        self.assertRedirects(resp, reverse('painel'), fetch_redirect_response=False)

        perfil = Usuario.objects.get(user__username='maria@example.com')
        self.assertEqual(perfil.nome, 'Maria Silva')
        self.assertTrue(perfil.user.is_active)
        store = self.armazenamento()
        self.assertIsNone(store.get(CHAVE_PENDENTE))
        self.assertEqual(store.get(CHAVE_EXECUTADO), 'true')

        self.assertEqual(self.estado(aba_a), {'acao': 'redirecionar', 'url': reverse('painel')})
        self.assertEqual(Usuario.objects.filter(user=perfil.user).count(), 1)

    def test_dois_cadastros_no_mesmo_navegador(self):
        self.cadastrar()
        self.cadastrar(nome='João Souza', email='joao@example.com', numero_celular='(11) 91111-2222')
        links = [re.search(r'(/usuarios/confirmar/[^/\s]+/[^/\s]+/)', m.body).group(1) for m in mail.outbox]
        self.assertEqual(len(links), 2)

        # o pendente guardado é o do segundo cadastro; o link da Maria não o consome
        resp = self.client.get(links[0])
        self.assertRedirects(resp, reverse('painel'), fetch_redirect_response=False)
        self.assertFalse(Usuario.objects.exists())
        self.assertIn('João Souza', self.armazenamento().get(CHAVE_PENDENTE))

        self.client.get(links[1])
        perfil = Usuario.objects.get()
        self.assertEqual(perfil.user.username, 'joao@example.com')
        self.assertEqual(perfil.nome, 'João Souza')

    def test_aba_a_fecha_quando_outra_aba_esta_executando(self):
        aba_a = self.cadastrar()
        CanalBroadcast(self.perfil_navegador, NOME_CANAL).publicar('aba-b', EXECUTANDO)

        self.assertEqual(self.estado(aba_a), {'acao': 'fechar'})

    def test_falha_de_insercao_mostra_erro_e_permite_nova_tentativa(self):
        self.cadastrar()
        link = self.link_do_email()
        # outra conta pegou o nome entre o cadastro e a confirmação
        outro = User.objects.create_user(username='joao@example.com', email='joao@example.com', password='segredo123')
        ocupante = Usuario.objects.create(user=outro, nome='Maria Silva')

        resp = self.client.get(link)
        self.assertEqual(resp.status_code, 200)
        self.assertTemplateUsed(resp, 'erro.html')
        self.assertContains(resp, 'já está em uso')
        self.assertFalse(Usuario.objects.filter(user__username='maria@example.com').exists())
        store = self.armazenamento()
        self.assertIsNone(store.get(CHAVE_TIMESTAMP))
        self.assertIsNotNone(store.get(CHAVE_PENDENTE))

        ocupante.nome = 'João'
        ocupante.save()
        resp = self.client.post(reverse('materializar_cadastro'))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['resultado'], 'concluido')
        self.assertTrue(Usuario.objects.filter(user__username='maria@example.com', nome='Maria Silva').exists())

    def test_nova_tentativa_pelo_formulario_redireciona(self):
        self.cadastrar()
        link = self.link_do_email()
        outro = User.objects.create_user(username='joao@example.com', email='joao@example.com', password='segredo123')
        ocupante = Usuario.objects.create(user=outro, nome='Maria Silva')
        self.client.get(link)

        resp = self.client.post(reverse('materializar_cadastro'), HTTP_ACCEPT='text/html')
        self.assertRedirects(resp, reverse('painel'), fetch_redirect_response=False)
        self.assertFalse(Usuario.objects.filter(user__username='maria@example.com').exists())

        ocupante.delete()
        resp = self.client.post(reverse('materializar_cadastro'), HTTP_ACCEPT='text/html')
        self.assertRedirects(resp, reverse('painel'), fetch_redirect_response=False)
        self.assertTrue(Usuario.objects.filter(user__username='maria@example.com').exists())

    def test_reabrir_link_depois_da_falha(self):
        self.cadastrar()
        link = self.link_do_email()
        outro = User.objects.create_user(username='joao@example.com', email='joao@example.com', password='segredo123')
        ocupante = Usuario.objects.create(user=outro, nome='Maria Silva')
        self.client.get(link)

        ocupante.delete()
        resp = self.client.get(link)
        self.assertRedirects(resp, reverse('painel'), fetch_redirect_response=False)
        self.assertTrue(Usuario.objects.filter(user__username='maria@example.com').exists())

    def test_link_invalido(self):
        self.cadastrar()
        user = User.objects.get(username='maria@example.com')
        resp = self.client.get(reverse('confirmar_email', kwargs={'uidb64': 'xx', 'token': 'invalido'}))
        self.assertEqual(resp.status_code, 400)
        user.refresh_from_db()
        self.assertFalse(user.is_active)

    def test_login_depois_de_confirmar_em_outro_dispositivo_materializa(self):
        self.cadastrar()
        # confirmação feita fora deste navegador: a conta está ativa mas sem perfil
        User.objects.filter(username='maria@example.com').update(is_active=True)

        resp = self.client.post(reverse('login'), {'email': 'maria@example.com', 'senha': 'segredo123'})
        self.assertRedirects(resp, reverse('painel'), fetch_redirect_response=False)
        self.assertTrue(Usuario.objects.filter(user__username='maria@example.com').exists())

    def test_login_sem_confirmar(self):
        self.cadastrar()
        resp = self.client.post(reverse('login'), {'email': 'maria@example.com', 'senha': 'segredo123'})
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, 'Confirme seu e-mail')

    def test_reenviar_confirmacao(self):
        self.cadastrar()
        resp = self.client.post(reverse('reenviar_confirmacao'), {'email': 'maria@example.com'})
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()['enviado'])
        self.assertEqual(len(mail.outbox), 2)

    def test_estado_sem_aba(self):
        resp = self.client.get(reverse('estado_cadastro'))
        self.assertEqual(resp.status_code, 400)

    def test_cadastro_recusa_nome_em_uso_e_senhas_diferentes(self):
        outro = User.objects.create_user(username='joao@example.com', email='joao@example.com', password='segredo123')
        Usuario.objects.create(user=outro, nome='Maria Silva')
        resp = self.client.post(reverse('cadastro'), dict(DADOS_CADASTRO, senha_confirm='outra'))
        self.assertEqual(resp.status_code, 200)
        form = resp.context['form']
        self.assertIn('nome', form.errors)
        self.assertIn('senha_confirm', form.errors)
        self.assertFalse(User.objects.filter(username='maria@example.com').exists())
        self.assertEqual(len(mail.outbox), 0)


class ConsultasCadastroTests(TestCase):
    def setUp(self):
        caches['navegador'].clear()
        self.client = Client()
        sp = Estado.objects.create(codigo_uf=35, uf='SP', nome='São Paulo')
        Municipio.objects.create(codigo_ibge=3550308, nome='São Paulo', estado=sp)
        Municipio.objects.create(codigo_ibge=3548500, nome='Santos', estado=sp)

    def test_nome_disponivel(self):
        user = User.objects.create_user(username='maria@example.com', password='segredo123')
        Usuario.objects.create(user=user, nome='Maria Silva')

        resp = self.client.get(reverse('nome_disponivel'), {'nome': ' maria   silva '})
        self.assertEqual(resp.json(), {'nome': 'maria silva', 'disponivel': False})
        resp = self.client.get(reverse('nome_disponivel'), {'nome': 'Outra Pessoa'})
        self.assertTrue(resp.json()['disponivel'])

    def test_busca_municipios(self):
        resp = self.client.get(reverse('municipios'), {'q': 'san'})
        self.assertEqual(resp.json()['resultados'], [{'codigo_ibge': 3548500, 'nome': 'Santos', 'uf': 'SP'}])

    def test_busca_curta_nao_consulta(self):
        resp = self.client.get(reverse('municipios'), {'q': 's'})
        self.assertEqual(resp.json()['resultados'], [])
