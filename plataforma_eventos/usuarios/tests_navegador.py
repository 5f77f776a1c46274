from django.test import SimpleTestCase
from django.core.cache.backends.locmem import LocMemCache
from .navegador import ArmazenamentoNavegador, CanalBroadcast, ErroArmazenamento, Mensagem


def cache_isolado(nome):
    return LocMemCache(nome, {'TIMEOUT': None})


class ArmazenamentoNavegadorTests(SimpleTestCase):
    def setUp(self):
        self.cache = cache_isolado('tests-armazenamento')
        self.cache.clear()
        self.store = ArmazenamentoNavegador('perfil1', cache=self.cache)

    def test_set_get_remove(self):
        self.assertIsNone(self.store.get('x'))
        self.assertEqual(self.store.get('x', 'padrao'), 'padrao')
        self.store.set('x', '1')
        self.assertEqual(self.store.get('x'), '1')
        self.assertIn('x', self.store)
        self.store.remove('x')
        self.assertNotIn('x', self.store)

    def test_last_write_wins(self):
        self.store.set('x', 'a')
        self.store.set('x', 'b')
        self.assertEqual(self.store.get('x'), 'b')

    def test_only_strings(self):
        with self.assertRaises(ErroArmazenamento):
            self.store.set('x', 1)

    def test_perfis_nao_compartilham_chaves(self):
        outro = ArmazenamentoNavegador('perfil2', cache=self.cache)
        self.store.set('x', 'meu')
        self.assertIsNone(outro.get('x'))

    def test_remover_prefixo(self):
        # simula várias chaves de token e uma chave que deve sobreviver
        self.store.set('plataforma.auth.token', 'abc')
        self.store.set('plataforma.auth.token.emitido_em', '10')
        self.store.set('cadastro_pendente', '{}')
        removidas = self.store.remover_prefixo('plataforma.auth.token')
        self.assertEqual(removidas, ['plataforma.auth.token', 'plataforma.auth.token.emitido_em'])
        self.assertEqual(self.store.chaves(), ['cadastro_pendente'])

    def test_limpar(self):
        self.store.set('a', '1')
        self.store.set('b', '2')
        self.store.limpar()
        self.assertEqual(self.store.chaves(), [])
        self.assertIsNone(self.store.get('a'))

    def test_perfil_obrigatorio(self):
        with self.assertRaises(ErroArmazenamento):
            ArmazenamentoNavegador('', cache=self.cache)


class CanalBroadcastTests(SimpleTestCase):
    def setUp(self):
        self.cache = cache_isolado('tests-canal')
        self.cache.clear()
        self.canal = CanalBroadcast('perfil1', 'cadastro_channel', cache=self.cache, ttl=60)

    def test_outras_abas_recebem_e_origem_nao(self):
        self.canal.inscrever('a')
        self.canal.inscrever('b')
        seq = self.canal.publicar('b', 'EXECUTANDO')

        self.assertEqual(self.canal.receber('a'), [Mensagem(tipo='EXECUTANDO', origem='b', seq=seq)])
        self.assertEqual(self.canal.receber('b'), [])

    def test_entrega_no_maximo_uma_vez(self):
        self.canal.inscrever('a')
        self.canal.publicar('b', 'SUCESSO')
        self.assertEqual(len(self.canal.receber('a')), 1)
        self.assertEqual(self.canal.receber('a'), [])

    def test_inscricao_tardia_nao_recebe_mensagens_anteriores(self):
        self.canal.publicar('b', 'EXECUTANDO')
        self.canal.inscrever('a')
        self.assertEqual(self.canal.receber('a'), [])

    def test_aba_sem_cursor_e_inscrita_no_primeiro_receber(self):
        self.canal.publicar('b', 'EXECUTANDO')
        self.assertFalse(self.canal.inscrita('a'))
        self.assertEqual(self.canal.receber('a'), [])
        self.assertTrue(self.canal.inscrita('a'))
        self.canal.publicar('b', 'SUCESSO')
        self.assertEqual([m.tipo for m in self.canal.receber('a')], ['SUCESSO'])

    def test_mensagem_expirada_e_descartada(self):
        self.canal.inscrever('a')
        seq = self.canal.publicar('b', 'EXECUTANDO')
        self.cache.delete(f'canal:perfil1:cadastro_channel:msg:{seq}')
        self.canal.publicar('b', 'SUCESSO')
        self.assertEqual([m.tipo for m in self.canal.receber('a')], ['SUCESSO'])

    def test_canais_isolados_por_perfil(self):
        outro = CanalBroadcast('perfil2', 'cadastro_channel', cache=self.cache)
        outro.inscrever('a')
        self.canal.publicar('b', 'EXECUTANDO')
        self.assertEqual(outro.receber('a'), [])

    def test_fechar(self):
        self.canal.inscrever('a')
        self.canal.fechar('a')
        self.assertFalse(self.canal.inscrita('a'))
