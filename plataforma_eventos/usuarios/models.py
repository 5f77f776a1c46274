"""
Modelos de usuários, localidades e auditoria.

Decisões de projeto:

- O `User` do Django é a fonte de verdade da autenticação. A conta é criada
    inativa no cadastro e só é ativada pelo link de confirmação de e-mail;
    `is_active` é, portanto, o indicador de "e-mail confirmado".
- O perfil `Usuario` só passa a existir depois da confirmação (materialização
    do cadastro pendente). É um-para-um com o `User` e tem `nome` único, o que
    garante no banco que um cadastro gera no máximo um perfil.
- Estados e municípios são tabelas de consulta indexadas pelos códigos do IBGE.
"""

import os
import logging
from django.db import models
from django.db.models.functions import Lower
from django.conf import settings
from .utils import resize_image, normalizar_nome, criar_slug


logger = logging.getLogger(__name__)


# -----------------------------
# Localidades (tabelas de consulta do IBGE)
# -----------------------------
class Estado(models.Model):
    codigo_uf = models.PositiveSmallIntegerField(primary_key=True)
    uf = models.CharField(max_length=2, unique=True)
    nome = models.CharField(max_length=60)

    class Meta:
        ordering = ['nome']

    def __str__(self):
        return self.uf


class Municipio(models.Model):
    codigo_ibge = models.PositiveIntegerField(primary_key=True)
    nome = models.CharField(max_length=120, db_index=True)
    estado = models.ForeignKey(Estado, on_delete=models.PROTECT, related_name='municipios')

    class Meta:
        ordering = ['nome']

    def __str__(self):
        return f"{self.nome} - {self.estado.uf}"

    def as_dict(self):
        return {'codigo_ibge': self.codigo_ibge, 'nome': self.nome, 'uf': self.estado.uf}


def buscar_municipios(termo, limite=10):
    """Busca municípios pelo nome (substring, sem diferenciar maiúsculas).

    Termos com menos de 2 caracteres não consultam o banco. Falhas de consulta
    degradam para lista vazia: a busca de cidade é auxiliar e nunca deve
    impedir o preenchimento de um formulário.
    """
    termo = (termo or '').strip()
    if len(termo) < 2:
        return []
    try:
        qs = Municipio.objects.select_related('estado').filter(nome__icontains=termo).order_by('nome')[:limite]
        return [m.as_dict() for m in qs]
    except Exception:
        logger.warning('Falha na busca de municípios por %r', termo, exc_info=True)
        return []


# -----------------------------
# Usuário (perfil materializado após a confirmação)
# -----------------------------
def imagem_perfil_upload_to(instance, filename):
    """Caminho no bucket `imagens_perfil`: um arquivo por usuário, sobrescrito a cada envio."""
    ext = os.path.splitext(filename)[1].lower() or '.jpg'
    return f"imagens_perfil/{instance.user_id}{ext}"


class Usuario(models.Model):
    TIPO_CLIENTE = 'cliente'
    TIPO_ORGANIZADOR = 'organizador'
    TIPOS = [
        (TIPO_CLIENTE, 'Cliente'),
        (TIPO_ORGANIZADOR, 'Organizador'),
    ]

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='profile')
    nome = models.CharField(max_length=150, unique=True)
    numero_celular = models.CharField(max_length=20, blank=True, null=True)
    tipo_usuario = models.CharField(max_length=12, choices=TIPOS, default=TIPO_CLIENTE)
    data_nascimento = models.DateField(blank=True, null=True)
    cidade = models.ForeignKey(Municipio, on_delete=models.SET_NULL, null=True, blank=True, related_name='usuarios')
    imagem = models.ImageField(upload_to=imagem_perfil_upload_to, blank=True, null=True)
    deletado = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['nome']
        constraints = [
            models.UniqueConstraint(Lower('nome'), name='usuario_nome_unico_sem_caixa'),
        ]

    @property
    def slug(self):
        return criar_slug(self.nome)

    @property
    def email(self):
        return self.user.email if self.user_id else None

    @property
    def is_organizador(self):
        return self.tipo_usuario == self.TIPO_ORGANIZADOR

    @classmethod
    def nome_disponivel(cls, nome, exceto=None):
        nome = normalizar_nome(nome)
        if not nome:
            return False
        qs = cls.objects.filter(nome__iexact=nome)
        if exceto is not None:
            qs = qs.exclude(pk=exceto.pk)
        return not qs.exists()

    def save(self, *args, **kwargs):
        self.nome = normalizar_nome(self.nome)

        # Remove a imagem antiga se for substituir por outra extensão
        try:
            if self.pk and self.imagem:
                old = Usuario.objects.filter(pk=self.pk).only('imagem').first()
                if old and old.imagem and old.imagem.name != self.imagem.name:
                    old.imagem.delete(save=False)
        except Exception:
            logger.debug('Não foi possível remover imagem antiga do usuario %s', self.pk)

        super().save(*args, **kwargs)

        # Redimensiona a imagem
        try:
            if self.imagem and os.path.exists(self.imagem.path):
                resize_image(self.imagem.path, max_size=(400, 400), quality=70)
        except Exception:
            logger.warning('Falha ao redimensionar imagem do usuario %s', self.pk, exc_info=True)

    def __str__(self):
        return f"{self.nome} ({self.get_tipo_usuario_display()})"


# -----------------------------
# Registro de Auditoria
# -----------------------------
class AuditLog(models.Model):
    """
    Armazena ações críticas para rastreabilidade.

    Campos:
    - timestamp: quando ocorreu
    - usuario: vínculo com o `usuarios.Usuario` quando aplicável
    - django_user: vínculo com o `auth.User` quando aplicável
    - action: string curta identificando a ação (ex: create_event)
    - object_type: tipo do objeto afetado (ex: Evento, Inscricao)
    - object_id: id do objeto afetado (string para flexibilidade)
    - description: descrição legível
    - ip_address: IP do solicitante quando conhecido
    - extra: campo JSON para dados adicionais
    """
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)
    usuario = models.ForeignKey('usuarios.Usuario', on_delete=models.SET_NULL, null=True, blank=True)
    django_user = models.ForeignKey(
        'auth.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='audit_logs'
    )
    action = models.CharField(max_length=100)
    object_type = models.CharField(max_length=100, blank=True, null=True)
    object_id = models.CharField(max_length=100, blank=True, null=True)
    description = models.TextField(blank=True, null=True)
    ip_address = models.CharField(max_length=45, blank=True, null=True)
    extra = models.JSONField(blank=True, null=True)

    class Meta:
        ordering = ['-timestamp']

    def __str__(self):
        who = self.usuario.nome if self.usuario else (self.django_user.username if self.django_user else 'sistema')
        return f"[{self.timestamp}] {who} - {self.action} {self.object_type or ''} {self.object_id or ''}"
