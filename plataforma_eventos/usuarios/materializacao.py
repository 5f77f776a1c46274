"""
Materialização do perfil após a confirmação de e-mail.

No cadastro, os dados do perfil ficam guardados no armazenamento do navegador
(`cadastro_pendente`) porque a conta ainda não está confirmada. Quando alguma
aba observa um SIGNED_IN com e-mail confirmado, ela tenta criar a linha de
`Usuario` a partir desses dados. Várias abas podem observar a mesma transição
(a aba do cadastro e a aba aberta pelo link de confirmação), então:

- `cadastro_timestamp` funciona como trava com janela de debounce: uma segunda
    execução dentro da janela é tratada como disparo duplicado e desiste;
- a aba que executa anuncia EXECUTANDO e depois SUCESSO em `cadastro_channel`;
    uma aba que recebe qualquer um dos dois enquanto ainda vê o cadastro
    pendente desiste (e fecha);
- em falha a trava é limpa e o cadastro pendente é mantido, para que a próxima
    tentativa (recarregar, reabrir o link, fazer login) não seja bloqueada.

A trava não é atômica: duas abas podem passar pela checagem ao mesmo tempo.
A unicidade de `Usuario.user` e de `Usuario.nome` no banco é o que de fato
impede o perfil duplicado; a segunda inserção falha e vira FALHOU.
"""

import json
import enum
import time
import logging
from dataclasses import dataclass, asdict
from datetime import date
from django.conf import settings
from django.db import IntegrityError, transaction


logger = logging.getLogger(__name__)

CHAVE_PENDENTE = 'cadastro_pendente'
CHAVE_TIMESTAMP = 'cadastro_timestamp'
CHAVE_EXECUTADO = 'cadastro_executado'
NOME_CANAL = 'cadastro_channel'

EXECUTANDO = 'EXECUTANDO'
SUCESSO = 'SUCESSO'

SIGNED_IN = 'SIGNED_IN'
SIGNED_OUT = 'SIGNED_OUT'
TOKEN_REFRESHED = 'TOKEN_REFRESHED'
USER_UPDATED = 'USER_UPDATED'


class ErroMaterializacao(Exception):
    """Falha ao inserir o perfil. A mensagem é exibida ao usuário."""


class Resultado(enum.Enum):
    IGNORADO = 'ignorado'
    DESISTIU = 'desistiu'
    CONCLUIDO = 'concluido'
    FALHOU = 'falhou'


@dataclass
class Desfecho:
    resultado: Resultado
    mensagem: str = ''
    perfil: object = None


@dataclass
class SessaoAuth:
    user_id: int
    email: str
    email_confirmado: bool

    @classmethod
    def do_usuario(cls, user):
        if user is None or not getattr(user, 'is_authenticated', False):
            return None
        return cls(user_id=user.pk, email=user.email, email_confirmado=bool(user.is_active))

    def as_dict(self):
        return asdict(self)


@dataclass
class RegistroPendente:
    nome: str
    email: str
    tipo_usuario: str = 'cliente'
    numero_celular: str = None
    data_nascimento: str = None
    cidade_id: int = None

    def to_json(self):
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, texto):
        dados = json.loads(texto)
        campos = cls.__dataclass_fields__
        return cls(**{k: v for k, v in dados.items() if k in campos})


def _agora_ms():
    return int(time.time() * 1000)


def criar_perfil_de_registro(user_id, registro):
    """Insere o `Usuario` com os dados pendentes e o id da conta confirmada."""
    from .models import Usuario, Municipio

    cidade = None
    if registro.cidade_id:
        cidade = Municipio.objects.filter(pk=registro.cidade_id).first()
    nascimento = date.fromisoformat(registro.data_nascimento) if registro.data_nascimento else None
    if not Usuario.nome_disponivel(registro.nome):
        if Usuario.objects.filter(user_id=user_id).exists():
            raise ErroMaterializacao('O perfil desta conta já foi criado.')
        raise ErroMaterializacao(f'O nome "{registro.nome}" já está em uso. Escolha outro e tente novamente.')
    try:
        with transaction.atomic():
            return Usuario.objects.create(
                user_id=user_id,
                nome=registro.nome,
                numero_celular=registro.numero_celular or None,
                tipo_usuario=registro.tipo_usuario or Usuario.TIPO_CLIENTE,
                data_nascimento=nascimento,
                cidade=cidade,
            )
    except IntegrityError as e:
        if Usuario.objects.filter(user_id=user_id).exists():
            raise ErroMaterializacao('O perfil desta conta já foi criado.') from e
        raise ErroMaterializacao(f'O nome "{registro.nome}" já está em uso. Escolha outro e tente novamente.') from e


class MaterializacaoPerfil:
    """Protocolo executado por uma aba.

    `armazenamento` e `canal` são os do perfil de navegador da aba;
    `criar_perfil(user_id, registro)` e `relogio()` (epoch em ms) podem ser
    substituídos em testes.
    """

    def __init__(self, armazenamento, canal, aba, criar_perfil=None, relogio=None, janela_ms=None):
        self.armazenamento = armazenamento
        self.canal = canal
        self.aba = aba
        self.criar_perfil = criar_perfil if criar_perfil is not None else criar_perfil_de_registro
        self.relogio = relogio if relogio is not None else _agora_ms
        if janela_ms is None:
            janela_ms = settings.PLATAFORMA.get('JANELA_DEBOUNCE_SEGUNDOS', 5) * 1000
        self.janela_ms = janela_ms

    # -------------------------------
    # Cadastro pendente
    # -------------------------------
    def salvar_pendente(self, registro):
        self.armazenamento.set(CHAVE_PENDENTE, registro.to_json())
        self.armazenamento.remove(CHAVE_EXECUTADO)

    def ler_pendente(self):
        texto = self.armazenamento.get(CHAVE_PENDENTE)
        if not texto:
            return None
        try:
            return RegistroPendente.from_json(texto)
        except (ValueError, TypeError):
            logger.warning('cadastro pendente ilegível no navegador %s; descartando', self.armazenamento.perfil)
            self.armazenamento.remove(CHAVE_PENDENTE)
            return None

    def executado(self):
        return self.armazenamento.get(CHAVE_EXECUTADO) == 'true'

    def _trava_recente(self):
        valor = self.armazenamento.get(CHAVE_TIMESTAMP)
        if valor is None:
            return False
        try:
            inicio = int(valor)
        except ValueError:
            return False
        return self.relogio() - inicio < self.janela_ms

    # -------------------------------
    # Gatilhos
    # -------------------------------
    def ao_mudar_estado_auth(self, evento, sessao):
        if evento != SIGNED_IN or sessao is None or not sessao.email_confirmado:
            return Desfecho(Resultado.IGNORADO)

        registro = self.ler_pendente()
        if registro is None:
            return Desfecho(Resultado.IGNORADO)

        if (registro.email or '').lower() != (sessao.email or '').lower():
            # o pendente é de outro cadastro feito neste navegador: fica para a conta dele
            logger.info('aba %s: cadastro pendente é de outra conta; ignorando login de %s', self.aba, sessao.email)
            return Desfecho(Resultado.IGNORADO)

        if self._trava_recente():
            logger.info('aba %s: materialização já iniciada há pouco; desistindo', self.aba)
            return Desfecho(Resultado.DESISTIU)

        self.armazenamento.set(CHAVE_TIMESTAMP, str(self.relogio()))
        self.canal.publicar(self.aba, EXECUTANDO)

        try:
            perfil = self.criar_perfil(sessao.user_id, registro)
        except ErroMaterializacao as e:
            self.armazenamento.remove(CHAVE_TIMESTAMP)
            logger.warning('aba %s: falha ao criar perfil de %s: %s', self.aba, sessao.email, e)
            return Desfecho(Resultado.FALHOU, mensagem=str(e))
        except Exception:
            self.armazenamento.remove(CHAVE_TIMESTAMP)
            logger.exception('aba %s: erro inesperado ao criar perfil de %s', self.aba, sessao.email)
            return Desfecho(Resultado.FALHOU, mensagem='Não foi possível concluir seu cadastro. Tente novamente.')

        self.armazenamento.remove(CHAVE_PENDENTE)
        self.armazenamento.set(CHAVE_EXECUTADO, 'true')
        self.canal.publicar(self.aba, SUCESSO)
        logger.info('aba %s: perfil %s criado para %s', self.aba, getattr(perfil, 'pk', None), sessao.email)
        return Desfecho(Resultado.CONCLUIDO, perfil=perfil)

    def ao_receber_mensagem(self, mensagem):
        if mensagem.tipo in (EXECUTANDO, SUCESSO) and self.ler_pendente() is not None:
            return Desfecho(Resultado.DESISTIU)
        return Desfecho(Resultado.IGNORADO)

    def drenar_canal(self):
        """Processa as mensagens pendentes da aba; para no primeiro DESISTIU."""
        for mensagem in self.canal.receber(self.aba):
            desfecho = self.ao_receber_mensagem(mensagem)
            if desfecho.resultado is Resultado.DESISTIU:
                return desfecho
        return Desfecho(Resultado.IGNORADO)


def materializacao_da_requisicao(request, aba, **kwargs):
    from .navegador import ArmazenamentoNavegador, CanalBroadcast

    armazenamento = ArmazenamentoNavegador.da_requisicao(request)
    canal = CanalBroadcast(armazenamento.perfil, NOME_CANAL)
    return MaterializacaoPerfil(armazenamento, canal, aba, **kwargs)
