"""
Ciclo de vida do cliente de API por navegador.

`ClienteBackend` guarda o token de API (DRF `Token`) do navegador no
armazenamento durável, sob chaves com prefixo `plataforma.auth.token`, e o
renova quando passa da validade. A renovação automática fica ativa enquanto
o cliente estiver no registro; `reset` e `destroy` a param no cliente antigo.

`RegistroClientes` é o único dono dos clientes em cache no processo; o resto
do código usa apenas `get(perfil)` e `reset(perfil)`.

`CoordenadorVisibilidade` acompanha, por aba, se ela ficou oculta. Na volta
(visible/focus depois de hidden) descarta os tokens guardados, recria o
cliente e consulta a sessão uma vez. Não há backoff nem nova tentativa: uma
falha na consulta só é registrada no log.
"""

import time
import logging
import threading
from django.conf import settings
from rest_framework.authtoken.models import Token
from .navegador import ArmazenamentoNavegador
from .materializacao import SessaoAuth, TOKEN_REFRESHED


logger = logging.getLogger(__name__)

PREFIXO_TOKEN = 'plataforma.auth.token'
CHAVE_TOKEN = PREFIXO_TOKEN
CHAVE_TOKEN_EMITIDO = f'{PREFIXO_TOKEN}.emitido_em'

OCULTO = 'hidden'
VISIVEL = 'visible'
FOCO = 'focus'
ESTADOS_VISIBILIDADE = (OCULTO, VISIVEL, FOCO)


def _agora():
    return time.time()


# ============================================================
# CLIENTE
# ============================================================
class ClienteBackend:
    def __init__(self, perfil, armazenamento=None, relogio=None, validade=None):
        self.perfil = perfil
        self.armazenamento = armazenamento if armazenamento is not None else ArmazenamentoNavegador(perfil)
        self.relogio = relogio if relogio is not None else _agora
        if validade is None:
            validade = settings.PLATAFORMA.get('VALIDADE_TOKEN_SEGUNDOS', 3600)
        self.validade = validade
        self.renovacao_ativa = False

    def __repr__(self):
        return f"<ClienteBackend perfil={self.perfil} renovacao={'on' if self.renovacao_ativa else 'off'}>"

    def iniciar_renovacao(self):
        self.renovacao_ativa = True

    def parar_renovacao(self):
        self.renovacao_ativa = False

    @property
    def token(self):
        return self.armazenamento.get(CHAVE_TOKEN)

    def _guardar(self, token):
        self.armazenamento.set(CHAVE_TOKEN, token.key)
        self.armazenamento.set(CHAVE_TOKEN_EMITIDO, str(self.relogio()))

    def entrar(self, user):
        """Emite (ou reaproveita) o token do usuário e o guarda no navegador."""
        token, _ = Token.objects.get_or_create(user=user)
        self._guardar(token)
        return SessaoAuth.do_usuario(user)

    def sair(self):
        self.armazenamento.remover_prefixo(PREFIXO_TOKEN)

    def _renovar(self, user):
        Token.objects.filter(user=user).delete()
        token = Token.objects.create(user=user)
        self._guardar(token)
        logger.info('token do navegador %s renovado (user=%s)', self.perfil, user.pk)
        try:
            from .signals import estado_auth_alterado
            estado_auth_alterado.send(sender=self.__class__, evento=TOKEN_REFRESHED, sessao=SessaoAuth.do_usuario(user), perfil=self.perfil)
        except Exception:
            logger.exception('Falha ao notificar renovação de token')

    def _expirado(self):
        try:
            emitido = float(self.armazenamento.get(CHAVE_TOKEN_EMITIDO) or 0)
        except ValueError:
            emitido = 0
        return self.relogio() - emitido >= self.validade

    def sessao(self, user=None):
        """Resolve a sessão deste navegador.

        `user` é o usuário da sessão Django compartilhada pelas abas. Sem token
        guardado, um usuário autenticado recebe um novo (restauração de
        sessão); sem usuário autenticado, o token guardado é descartado.
        """
        if user is None or not getattr(user, 'is_authenticated', False):
            if self.token:
                self.sair()
            return None

        chave = self.token
        if not chave:
            return self.entrar(user)

        token = Token.objects.select_related('user').filter(key=chave).first()
        if token is None or token.user_id != user.pk:
            # token revogado ou de outra conta
            return self.entrar(user)

        if self.renovacao_ativa and self._expirado():
            self._renovar(user)
        return SessaoAuth.do_usuario(token.user)


# ============================================================
# REGISTRO DE CLIENTES (estado global do processo)
# ============================================================
class RegistroClientes:
    def __init__(self, fabrica=ClienteBackend):
        self._fabrica = fabrica
        self._clientes = {}
        self._lock = threading.Lock()

    def _criar(self, perfil):
        cliente = self._fabrica(perfil)
        cliente.iniciar_renovacao()
        self._clientes[perfil] = cliente
        return cliente

    def get(self, perfil):
        with self._lock:
            cliente = self._clientes.get(perfil)
            if cliente is None:
                cliente = self._criar(perfil)
            return cliente

    def reset(self, perfil):
        with self._lock:
            antigo = self._clientes.pop(perfil, None)
            if antigo is not None:
                antigo.parar_renovacao()
            return self._criar(perfil)

    def destroy(self, perfil=None):
        with self._lock:
            if perfil is None:
                alvos = list(self._clientes.values())
                self._clientes.clear()
            else:
                alvo = self._clientes.pop(perfil, None)
                alvos = [alvo] if alvo is not None else []
        for cliente in alvos:
            cliente.parar_renovacao()

    def __contains__(self, perfil):
        return perfil in self._clientes

    def __len__(self):
        return len(self._clientes)


registro_clientes = RegistroClientes()


# ============================================================
# VISIBILIDADE DA ABA
# ============================================================
class CoordenadorVisibilidade:
    def __init__(self, perfil, aba, registro=None, armazenamento=None):
        self.perfil = perfil
        self.aba = aba
        self.registro = registro if registro is not None else registro_clientes
        self.armazenamento = armazenamento if armazenamento is not None else ArmazenamentoNavegador(perfil)

    @property
    def _chave_oculta(self):
        return f'aba.{self.aba}.oculta'

    @property
    def estava_oculta(self):
        return self.armazenamento.get(self._chave_oculta) == 'true'

    def notificar(self, estado, user=None):
        """Trata uma mudança de visibilidade. Retorna (recriado, sessao)."""
        if estado not in ESTADOS_VISIBILIDADE:
            raise ValueError(f'estado de visibilidade desconhecido: {estado!r}')

        if estado == OCULTO:
            self.armazenamento.set(self._chave_oculta, 'true')
            return False, None

        if not self.estava_oculta:
            return False, None

        self.armazenamento.remover_prefixo(PREFIXO_TOKEN)
        cliente = self.registro.reset(self.perfil)
        self.armazenamento.remove(self._chave_oculta)
        logger.info('aba %s voltou a ficar visível; cliente do navegador %s recriado', self.aba, self.perfil)

        sessao = None
        try:
            sessao = cliente.sessao(user)
        except Exception:
            logger.exception('Falha ao consultar sessão após recriar cliente (aba %s)', self.aba)
        return True, sessao
