import io
import struct
import shutil
import tempfile
import datetime
from unittest.mock import patch
from PIL import Image
from django.conf import settings
from django.test import TestCase, Client, override_settings
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from django.core.cache import caches
from django.contrib.auth.models import User
from django.utils import timezone
from .models import Usuario, Estado, Municipio
from .campos import CampoEditavel, CAMPOS_PERFIL, ErroCampo, campo_do_registro


class CampoEditavelTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='maria@example.com', email='maria@example.com', password='segredo123')
        self.perfil = Usuario.objects.create(user=self.user, nome='Maria Silva')

    def test_converte_tipos(self):
        self.assertEqual(CampoEditavel('n', 'N', 'inteiro').converter(' 12 '), 12)
        self.assertTrue(CampoEditavel('g', 'G', 'booleano').converter('true'))
        self.assertFalse(CampoEditavel('g', 'G', 'booleano').converter(''))
        self.assertEqual(CampoEditavel('d', 'D', 'date').converter('2020-01-02'), datetime.date(2020, 1, 2))
        quando = CampoEditavel('q', 'Q', 'datetime-local').converter('2030-01-02T10:30')
        self.assertTrue(timezone.is_aware(quando))

    def test_valores_invalidos(self):
        with self.assertRaises(ErroCampo):
            CampoEditavel('n', 'N', 'inteiro').converter('abc')
        with self.assertRaises(ErroCampo):
            CampoEditavel('d', 'D', 'date').converter('31/02/2020')
        with self.assertRaises(ErroCampo):
            CampoEditavel('t', 'T', 'text', max_length=3).converter('abcd')
        with self.assertRaises(ErroCampo):
            CampoEditavel('t', 'T', 'text', obrigatorio=True).converter('   ')

    def test_tipo_desconhecido(self):
        with self.assertRaises(ValueError):
            CampoEditavel('x', 'X', 'cor')

    def test_campo_fora_do_registro(self):
        with self.assertRaises(ErroCampo):
            campo_do_registro(CAMPOS_PERFIL, 'tipo_usuario')

    def test_salvar_grava_so_a_coluna(self):
        CAMPOS_PERFIL['numero_celular'].salvar(self.perfil, '(11) 91234-5678')
        self.perfil.refresh_from_db()
        self.assertEqual(self.perfil.numero_celular, '(11) 91234-5678')

    def test_cidade(self):
        sp = Estado.objects.create(codigo_uf=35, uf='SP', nome='São Paulo')
        santos = Municipio.objects.create(codigo_ibge=3548500, nome='Santos', estado=sp)
        CAMPOS_PERFIL['cidade'].salvar(self.perfil, '3548500')
        self.perfil.refresh_from_db()
        self.assertEqual(self.perfil.cidade, santos)
        self.assertEqual(CAMPOS_PERFIL['cidade'].valor_de(self.perfil), 3548500)
        with self.assertRaises(ErroCampo):
            CAMPOS_PERFIL['cidade'].converter('999')

    def test_nascimento_no_futuro(self):
        amanha = (timezone.localdate() + datetime.timedelta(days=1)).isoformat()
        with self.assertRaises(ErroCampo):
            CAMPOS_PERFIL['data_nascimento'].salvar(self.perfil, amanha)


class AtualizarCampoPerfilViewTests(TestCase):
    def setUp(self):
        caches['navegador'].clear()
        self.client = Client()
        self.user = User.objects.create_user(username='maria@example.com', email='maria@example.com', password='segredo123')
        self.perfil = Usuario.objects.create(user=self.user, nome='Maria Silva')
        self.client.login(username='maria@example.com', password='segredo123')

    def test_renomear_devolve_nova_url(self):
        resp = self.client.post(reverse('atualizar_campo_perfil'), {'campo': 'nome', 'valor': 'Maria  Souza'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['valor'], 'Maria Souza')
        self.assertEqual(resp.json()['url'], reverse('perfil_publico', kwargs={'slug': 'Maria_Souza'}))

    def test_nome_em_uso(self):
        outro = User.objects.create_user(username='joao@example.com', password='segredo123')
        Usuario.objects.create(user=outro, nome='João')
        resp = self.client.post(reverse('atualizar_campo_perfil'), {'campo': 'nome', 'valor': 'joão'})
        self.assertEqual(resp.status_code, 400)

    def test_campo_nao_editavel(self):
        resp = self.client.post(reverse('atualizar_campo_perfil'), {'campo': 'tipo_usuario', 'valor': 'organizador'}, content_type='application/json')
        self.assertEqual(resp.status_code, 400)
        self.perfil.refresh_from_db()
        self.assertFalse(self.perfil.is_organizador)

    def test_perfil_publico_pelo_slug(self):
        resp = self.client.get(reverse('perfil_publico', kwargs={'slug': 'Maria_Silva'}))
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.context['dono'])
        self.assertEqual([c['nome'] for c in resp.context['campos']], list(CAMPOS_PERFIL))

    def test_sublinhado_vale_como_espaco(self):
        resp = self.client.post(reverse('atualizar_campo_perfil'), {'campo': 'nome', 'valor': 'Ana_Souza'})
        self.assertEqual(resp.status_code, 200)
        self.perfil.refresh_from_db()
        self.assertEqual(self.perfil.nome, 'Ana Souza')
        self.assertFalse(Usuario.nome_disponivel('ana souza'))
        self.assertFalse(Usuario.nome_disponivel('ANA_SOUZA'))

        resp = self.client.get(reverse('perfil_publico', kwargs={'slug': 'Ana_Souza'}))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.context['usuario'], self.perfil)

    def test_sem_perfil_materializado(self):
        User.objects.create_user(username='novo@example.com', password='segredo123')
        self.client.login(username='novo@example.com', password='segredo123')
        resp = self.client.post(reverse('atualizar_campo_perfil'), {'campo': 'nome', 'valor': 'Novo'})
        self.assertEqual(resp.status_code, 404)


class ImagemPerfilTests(TestCase):
    def setUp(self):
        self.media = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media, ignore_errors=True)
        caches['navegador'].clear()
        self.client = Client()
        user = User.objects.create_user(username='maria@example.com', email='maria@example.com', password='segredo123')
        self.perfil = Usuario.objects.create(user=user, nome='Maria Silva')
        self.client.login(username='maria@example.com', password='segredo123')

    def png(self, tamanho=(800, 600)):
        buf = io.BytesIO()
        Image.new('RGB', tamanho, (200, 30, 30)).save(buf, format='PNG')
        return SimpleUploadedFile('foto.png', buf.getvalue(), content_type='image/png')

    def test_envio_redimensiona(self):
        with override_settings(MEDIA_ROOT=self.media):
            resp = self.client.post(reverse('enviar_imagem_perfil'), {'imagem': self.png()})
            self.assertEqual(resp.status_code, 200)
            self.perfil.refresh_from_db()
            self.assertEqual(self.perfil.imagem.name, f'imagens_perfil/{self.perfil.user_id}.png')
            with Image.open(self.perfil.imagem.path) as img:
                self.assertLessEqual(max(img.size), 400)

    def test_arquivo_que_nao_e_imagem(self):
        falso = SimpleUploadedFile('foto.png', b'nao sou uma imagem', content_type='image/png')
        with override_settings(MEDIA_ROOT=self.media):
            resp = self.client.post(reverse('enviar_imagem_perfil'), {'imagem': falso})
        self.assertEqual(resp.status_code, 400)
        self.perfil.refresh_from_db()
        self.assertFalse(self.perfil.imagem)

    def test_imagem_grande_demais(self):
        plataforma = dict(settings.PLATAFORMA, MAX_BYTES_IMAGEM=10)
        with override_settings(MEDIA_ROOT=self.media, PLATAFORMA=plataforma):
            resp = self.client.post(reverse('enviar_imagem_perfil'), {'imagem': self.png()})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('muito grande', resp.json()['detail'])

    def test_imagem_corrompida(self):
        for erro in (SyntaxError('broken PNG file'), struct.error('unpack requires a buffer of 8 bytes')):
            with self.subTest(erro=type(erro).__name__):
                with override_settings(MEDIA_ROOT=self.media), patch('PIL.PngImagePlugin.PngImageFile.verify', side_effect=erro):
                    resp = self.client.post(reverse('enviar_imagem_perfil'), {'imagem': self.png()})
                self.assertEqual(resp.status_code, 400)
                self.assertIn('não é uma imagem válida', resp.json()['detail'])
