"""
Estado do lado do navegador: armazenamento durável e canal entre abas.

Todas as abas de um mesmo navegador compartilham o cookie `perfil_navegador`
(ver `plataforma_eventos.middleware.PerfilNavegadorMiddleware`). Esse
identificador delimita:

- `ArmazenamentoNavegador`: um mapa string -> string que sobrevive a
    recarregamentos. Sem transação: a última escrita vence.
- `CanalBroadcast`: mensagens curtas publicadas por uma aba e lidas pelas
    demais abas do mesmo navegador no próximo poll. Entrega no máximo uma vez,
    sem ordem garantida entre publicadores e sem confirmação; a aba que se
    inscreve depois de uma publicação não a recebe, e mensagens expiram.

Ambos usam o cache `navegador` (arquivo por padrão, ver settings.CACHES).
"""

import uuid
import logging
from dataclasses import dataclass
from django.conf import settings
from django.core.cache import caches


logger = logging.getLogger(__name__)

ALIAS_CACHE = 'navegador'
# cursores e estado de aba não precisam viver para sempre
TTL_ABA_SEGUNDOS = 24 * 60 * 60


class ErroArmazenamento(Exception):
    """Valor inválido ou backend de cache indisponível."""


def nova_aba():
    """Identificador de aba, gerado a cada página renderizada."""
    return uuid.uuid4().hex


def perfil_da_requisicao(request):
    perfil = getattr(request, 'perfil_navegador', None)
    if not perfil:
        raise ErroArmazenamento('Requisição sem perfil de navegador (middleware ausente?).')
    return perfil


# ============================================================
# ARMAZENAMENTO DURÁVEL POR PERFIL DE NAVEGADOR
# ============================================================
class ArmazenamentoNavegador:
    """Mapa de strings com namespace por perfil de navegador.

    Mantém um índice das chaves gravadas para permitir listagem e remoção por
    prefixo (o cache do Django não lista chaves).
    """

    def __init__(self, perfil, cache=None):
        if not perfil:
            raise ErroArmazenamento('Perfil de navegador obrigatório.')
        self.perfil = str(perfil)
        self._cache = cache if cache is not None else caches[ALIAS_CACHE]

    @classmethod
    def da_requisicao(cls, request):
        return cls(perfil_da_requisicao(request))

    def _chave(self, nome):
        return f"nav:{self.perfil}:{nome}"

    @property
    def _chave_indice(self):
        return self._chave('__indice__')

    def _indice(self):
        return set(self._cache.get(self._chave_indice) or [])

    def _gravar_indice(self, nomes):
        self._cache.set(self._chave_indice, sorted(nomes), None)

    def get(self, nome, default=None):
        try:
            valor = self._cache.get(self._chave(nome))
        except Exception as e:
            raise ErroArmazenamento(f'Falha ao ler {nome!r}') from e
        return default if valor is None else valor

    def set(self, nome, valor):
        if not isinstance(valor, str):
            raise ErroArmazenamento(f'Valores armazenados devem ser strings ({nome!r} recebeu {type(valor).__name__}).')
        try:
            self._cache.set(self._chave(nome), valor, None)
            indice = self._indice()
            if nome not in indice:
                indice.add(nome)
                self._gravar_indice(indice)
        except Exception as e:
            raise ErroArmazenamento(f'Falha ao gravar {nome!r}') from e

    def remove(self, nome):
        try:
            self._cache.delete(self._chave(nome))
            indice = self._indice()
            if nome in indice:
                indice.discard(nome)
                self._gravar_indice(indice)
        except Exception as e:
            raise ErroArmazenamento(f'Falha ao remover {nome!r}') from e

    def __contains__(self, nome):
        return self.get(nome) is not None

    def chaves(self, prefixo=''):
        return sorted(n for n in self._indice() if n.startswith(prefixo))

    def remover_prefixo(self, prefixo):
        """Remove todas as chaves que começam com `prefixo`. Retorna os nomes removidos."""
        removidas = self.chaves(prefixo)
        for nome in removidas:
            self.remove(nome)
        return removidas

    def limpar(self):
        self.remover_prefixo('')


# ============================================================
# CANAL DE BROADCAST ENTRE ABAS
# ============================================================
@dataclass(frozen=True)
class Mensagem:
    tipo: str
    origem: str
    seq: int


class CanalBroadcast:
    """Canal nomeado, restrito às abas de um perfil de navegador.

    Cada publicação recebe um número de sequência; cada aba guarda um cursor
    com a última sequência que já viu. `receber()` devolve as mensagens
    posteriores ao cursor, exceto as publicadas pela própria aba e as que já
    expiraram, e avança o cursor.
    """

    def __init__(self, perfil, nome, cache=None, ttl=None):
        if not perfil:
            raise ErroArmazenamento('Perfil de navegador obrigatório.')
        self.perfil = str(perfil)
        self.nome = nome
        self._cache = cache if cache is not None else caches[ALIAS_CACHE]
        if ttl is None:
            ttl = settings.PLATAFORMA.get('TTL_MENSAGEM_CANAL_SEGUNDOS', 60)
        self.ttl = ttl

    def _chave(self, sufixo):
        return f"canal:{self.perfil}:{self.nome}:{sufixo}"

    def _seq_atual(self):
        return int(self._cache.get(self._chave('seq')) or 0)

    def inscrever(self, aba):
        """A aba passa a receber apenas o que for publicado a partir de agora."""
        self._cache.set(self._chave(f'cursor:{aba}'), self._seq_atual(), TTL_ABA_SEGUNDOS)

    def inscrita(self, aba):
        return self._cache.get(self._chave(f'cursor:{aba}')) is not None

    def publicar(self, aba, tipo):
        chave_seq = self._chave('seq')
        self._cache.add(chave_seq, 0, None)
        try:
            seq = self._cache.incr(chave_seq)
        except ValueError:
            # sequência expirou entre o add e o incr
            self._cache.set(chave_seq, 1, None)
            seq = 1
        self._cache.set(self._chave(f'msg:{seq}'), {'tipo': tipo, 'origem': aba}, self.ttl)
        logger.debug('canal %s/%s: aba %s publicou %s (seq=%s)', self.perfil, self.nome, aba, tipo, seq)
        return seq

    def receber(self, aba):
        chave_cursor = self._chave(f'cursor:{aba}')
        cursor = self._cache.get(chave_cursor)
        atual = self._seq_atual()
        if cursor is None:
            # aba que não estava ouvindo perde o que veio antes
            self._cache.set(chave_cursor, atual, TTL_ABA_SEGUNDOS)
            return []
        if atual <= cursor:
            return []
        chaves = {self._chave(f'msg:{seq}'): seq for seq in range(cursor + 1, atual + 1)}
        encontradas = self._cache.get_many(list(chaves))
        self._cache.set(chave_cursor, atual, TTL_ABA_SEGUNDOS)
        mensagens = []
        for chave, seq in chaves.items():
            dados = encontradas.get(chave)
            if not dados or dados.get('origem') == aba:
                continue
            mensagens.append(Mensagem(tipo=dados['tipo'], origem=dados['origem'], seq=seq))
        return mensagens

    def fechar(self, aba):
        self._cache.delete(self._chave(f'cursor:{aba}'))
