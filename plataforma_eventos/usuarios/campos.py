"""
Campos editáveis individualmente (edição no lugar).

Cada `CampoEditavel` descreve uma coluna que pode ser alterada sozinha:
rótulo, tipo do valor, limites. As views de atualização recebem `campo` e
`valor`, procuram o descritor no registro do modelo e chamam `salvar()`, que
converte o valor bruto, atribui e grava só aquela coluna. Nomes fora do
registro são recusados.
"""

import logging
from datetime import date, datetime
from django.utils import timezone


logger = logging.getLogger(__name__)

TIPOS = ('text', 'tel', 'date', 'datetime-local', 'textarea', 'inteiro', 'booleano', 'cidade')


class ErroCampo(Exception):
    """Campo desconhecido ou valor inválido. A mensagem é exibida ao usuário."""


class CampoEditavel:
    def __init__(self, nome, rotulo, tipo='text', max_length=None, obrigatorio=False, validador=None):
        if tipo not in TIPOS:
            raise ValueError(f'tipo de campo desconhecido: {tipo!r}')
        self.nome = nome
        self.rotulo = rotulo
        self.tipo = tipo
        self.max_length = max_length
        self.obrigatorio = obrigatorio
        self.validador = validador

    def __repr__(self):
        return f"<CampoEditavel {self.nome} ({self.tipo})>"

    def as_dict(self):
        return {
            'nome': self.nome,
            'rotulo': self.rotulo,
            'tipo': self.tipo,
            'max_length': self.max_length,
            'obrigatorio': self.obrigatorio,
        }

    def valor_de(self, instancia):
        if self.tipo == 'cidade':
            return getattr(instancia, f'{self.nome}_id', None)
        valor = getattr(instancia, self.nome, None)
        if isinstance(valor, (date, datetime)):
            return valor.isoformat()
        return valor

    def converter(self, valor):
        if isinstance(valor, str):
            valor = valor.strip()
        if valor in (None, ''):
            if self.obrigatorio:
                raise ErroCampo(f'{self.rotulo} é obrigatório.')
            return False if self.tipo == 'booleano' else None

        if self.tipo in ('text', 'tel', 'textarea'):
            valor = str(valor)
            if self.max_length and len(valor) > self.max_length:
                raise ErroCampo(f'{self.rotulo}: máx. {self.max_length} caracteres.')
            return valor

        if self.tipo == 'date':
            try:
                return date.fromisoformat(str(valor))
            except ValueError:
                raise ErroCampo(f'{self.rotulo}: data inválida.')

        if self.tipo == 'datetime-local':
            try:
                convertido = datetime.fromisoformat(str(valor))
            except ValueError:
                raise ErroCampo(f'{self.rotulo}: data e hora inválidas.')
            if timezone.is_naive(convertido):
                convertido = timezone.make_aware(convertido)
            return convertido

        if self.tipo == 'inteiro':
            try:
                return int(valor)
            except (TypeError, ValueError):
                raise ErroCampo(f'{self.rotulo}: informe um número inteiro.')

        if self.tipo == 'booleano':
            if isinstance(valor, bool):
                return valor
            return str(valor).lower() in ('1', 'true', 'sim', 'on')

        # cidade: código IBGE de um município existente
        from .models import Municipio
        try:
            return Municipio.objects.get(pk=int(valor))
        except (TypeError, ValueError, Municipio.DoesNotExist):
            raise ErroCampo(f'{self.rotulo}: município não encontrado.')

    def salvar(self, instancia, valor):
        convertido = self.converter(valor)
        if self.validador is not None:
            self.validador(instancia, convertido)
        setattr(instancia, self.nome, convertido)
        instancia.save(update_fields=[self.nome, 'updated_at'])
        logger.debug('%s.%s atualizado (pk=%s)', type(instancia).__name__, self.nome, instancia.pk)
        return convertido


def campo_do_registro(registro, nome):
    campo = registro.get(nome)
    if campo is None:
        raise ErroCampo(f'Campo "{nome}" não pode ser editado.')
    return campo


# -------------------------------
# Validadores específicos
# -------------------------------
def _nome_livre(instancia, nome):
    if not type(instancia).nome_disponivel(nome, exceto=instancia):
        raise ErroCampo('Este nome já está em uso.')


def _nascimento_no_passado(instancia, data):
    if data and data > timezone.localdate():
        raise ErroCampo('Data de nascimento não pode estar no futuro.')


def _vagas_positivas(instancia, vagas):
    if vagas is not None and vagas <= 0:
        raise ErroCampo('Informe um número positivo.')


def _data_futura(instancia, quando):
    if quando and quando <= timezone.now():
        raise ErroCampo('A data deve estar no futuro.')


def _encerramento_apos_realizacao(instancia, quando):
    _data_futura(instancia, quando)
    if quando and instancia.data_realizacao and quando < instancia.data_realizacao:
        raise ErroCampo('Encerramento deve ser após realização.')


def _realizacao_antes_encerramento(instancia, quando):
    _data_futura(instancia, quando)
    if quando and instancia.data_encerramento and quando > instancia.data_encerramento:
        raise ErroCampo('Realização deve ser antes do encerramento.')


CAMPOS_PERFIL = {c.nome: c for c in [
    CampoEditavel('nome', 'Nome', 'text', max_length=150, obrigatorio=True, validador=_nome_livre),
    CampoEditavel('numero_celular', 'Celular', 'tel', max_length=20),
    CampoEditavel('data_nascimento', 'Data de nascimento', 'date', validador=_nascimento_no_passado),
    CampoEditavel('cidade', 'Cidade', 'cidade'),
]}

CAMPOS_EVENTO = {c.nome: c for c in [
    CampoEditavel('nome', 'Nome', 'text', max_length=200, obrigatorio=True),
    CampoEditavel('descricao', 'Descrição', 'textarea', max_length=500),
    CampoEditavel('numero_vagas', 'Número de vagas', 'inteiro', validador=_vagas_positivas),
    CampoEditavel('gratuito', 'Gratuito', 'booleano'),
    CampoEditavel('data_realizacao', 'Data de realização', 'datetime-local', obrigatorio=True, validador=_realizacao_antes_encerramento),
    CampoEditavel('data_encerramento', 'Data de encerramento', 'datetime-local', obrigatorio=True, validador=_encerramento_apos_realizacao),
    CampoEditavel('cidade', 'Cidade', 'cidade'),
]}
