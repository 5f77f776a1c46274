"""
Modelos de dados para eventos, imagens de galeria, inscrições e avaliações.

Regras principais:
- Um evento só aparece no feed depois de aprovado pela equipe e enquanto não
  foi realizado nem excluído (exclusão é lógica, campo `deletado`).
- `numero_vagas` nulo significa vagas ilimitadas; as vagas contam apenas
  inscrições confirmadas. Inscrições pendentes formam a lista de espera.
- Avaliações só para eventos realizados, por quem teve inscrição confirmada.
"""

import os
import logging
from django.db import models
from django.conf import settings
from django.utils import timezone
from usuarios.utils import resize_image


logger = logging.getLogger(__name__)


# ============================================================
# QUERYSETS
# ============================================================
class EventoQuerySet(models.QuerySet):
    def ativos(self):
        return self.filter(deletado=False)

    def feed(self):
        """Aprovados, não realizados e não excluídos, pela data de realização."""
        return self.filter(aprovado=True, realizado=False, deletado=False).order_by('data_realizacao', 'id')

    def pendentes_aprovacao(self):
        return self.filter(aprovado=False, realizado=False, deletado=False).order_by('-created_at', '-id')

    def do_criador(self, usuario):
        return self.filter(criador=usuario, deletado=False).order_by('data_realizacao')


# ============================================================
# MODELO: Evento
# ============================================================
def evento_banner_upload_to(instance, filename):
    """
    Bucket `imagens_banner`: nome fixo por evento, o envio seguinte substitui o anterior.
    """
    ext = os.path.splitext(filename)[1].lower() or '.jpg'
    return f'imagens_banner/evento_{instance.pk}/banner{ext}'


class Evento(models.Model):
    """
    Modelo que representa um evento no sistema.

    Campos:
        nome (CharField): Nome do evento.
        descricao (TextField): Descrição (até 500 caracteres).
        cidade (ForeignKey): Município onde acontece.
        numero_vagas (PositiveIntegerField): Limite de inscrições confirmadas (nulo = ilimitado).
        gratuito (BooleanField): Evento sem custo.
        data_realizacao (DateTimeField): Início do evento.
        data_encerramento (DateTimeField): Fim do evento.
        banner (ImageField): Imagem principal.
        criador (ForeignKey): Organizador que criou o evento.
        aprovado (BooleanField): Liberado pela equipe para o feed.
        realizado (BooleanField): Evento finalizado pelo organizador.
        deletado (BooleanField): Exclusão lógica.
    """

    MAX_DESCRICAO = 500

    nome = models.CharField(max_length=200)
    descricao = models.TextField(blank=True, null=True)
    cidade = models.ForeignKey('usuarios.Municipio', on_delete=models.SET_NULL, null=True, blank=True, related_name='eventos')
    numero_vagas = models.PositiveIntegerField(null=True, blank=True)
    gratuito = models.BooleanField(default=True)
    data_realizacao = models.DateTimeField()
    data_encerramento = models.DateTimeField()
    banner = models.ImageField(upload_to=evento_banner_upload_to, blank=True, null=True)
    criador = models.ForeignKey(
        'usuarios.Usuario',
        on_delete=models.CASCADE,
        related_name='eventos_criados'
    )
    aprovado = models.BooleanField(default=False)
    realizado = models.BooleanField(default=False)
    deletado = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = EventoQuerySet.as_manager()

    class Meta:
        ordering = ['data_realizacao']

    def __str__(self):
        return self.nome

    @property
    def ja_passou(self):
        return self.data_realizacao <= timezone.now()

    def vagas_confirmadas(self):
        return self.inscricoes.filter(status=Inscricao.CONFIRMADA).count()

    def tem_vaga(self):
        if self.numero_vagas is None:
            return True
        return self.vagas_confirmadas() < self.numero_vagas

    def aceita_inscricoes(self):
        return self.aprovado and not self.realizado and not self.deletado

    def save(self, *args, **kwargs):
        """
        Remove o banner antigo ao substituir e redimensiona o novo depois de salvar.
        """
        if self.pk and self.banner:
            try:
                old = Evento.objects.filter(pk=self.pk).only('banner').first()
                if old and old.banner and old.banner.name != self.banner.name:
                    old.banner.delete(save=False)
            except Exception:
                logger.debug('Não foi possível remover banner antigo do evento %s', self.pk)

        super().save(*args, **kwargs)

        if self.banner:
            try:
                if os.path.exists(self.banner.path):
                    resize_image(self.banner.path, max_size=(1200, 630), quality=80)
            except Exception:
                logger.warning('Erro ao redimensionar banner do evento %s', self.pk, exc_info=True)


# ============================================================
# MODELO: EventoImagem (galeria)
# ============================================================
def evento_imagem_upload_to(instance, filename):
    return f'imagens_evento/evento_{instance.evento_id}/{filename}'


class EventoImagem(models.Model):
    evento = models.ForeignKey(Evento, on_delete=models.CASCADE, related_name='imagens')
    imagem = models.ImageField(upload_to=evento_imagem_upload_to)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return f'Imagem {self.pk} de {self.evento}'

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        try:
            if self.imagem and os.path.exists(self.imagem.path):
                resize_image(self.imagem.path, max_size=(1200, 1200), quality=80)
        except Exception:
            logger.warning('Erro ao redimensionar imagem %s do evento %s', self.pk, self.evento_id, exc_info=True)

    def delete(self, *args, **kwargs):
        arquivo = self.imagem
        resultado = super().delete(*args, **kwargs)
        try:
            if arquivo:
                arquivo.delete(save=False)
        except Exception:
            logger.warning('Falha ao remover arquivo %s', getattr(arquivo, 'name', None))
        return resultado


# ============================================================
# MODELO: Inscricao
# ============================================================
class Inscricao(models.Model):
    """
    Inscrição de um usuário em um evento.

    Campos:
        evento (ForeignKey): Evento.
        usuario (ForeignKey): Usuário inscrito.
        status (CharField): pendente (lista de espera), confirmada ou expirada.
        created_at (DateTimeField): Ordem na lista de espera.
    """
    PENDENTE = 'pendente'
    CONFIRMADA = 'confirmada'
    EXPIRADA = 'expirada'
    STATUS_CHOICES = [
        (PENDENTE, 'Pendente'),
        (CONFIRMADA, 'Confirmada'),
        (EXPIRADA, 'Expirada'),
    ]

    evento = models.ForeignKey(Evento, on_delete=models.CASCADE, related_name='inscricoes')
    usuario = models.ForeignKey('usuarios.Usuario', on_delete=models.CASCADE, related_name='inscricoes')
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=PENDENTE, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at', 'id']
        constraints = [
            models.UniqueConstraint(fields=['evento', 'usuario'], name='inscricao_unica_por_evento'),
        ]

    def __str__(self):
        return f"{self.usuario.nome} em {self.evento.nome} ({self.status})"

    def posicao_espera(self):
        """Posição (1-based) na lista de espera; None se não estiver pendente."""
        if self.status != self.PENDENTE:
            return None
        anteriores = Inscricao.objects.filter(
            evento_id=self.evento_id, status=self.PENDENTE,
        ).filter(
            models.Q(created_at__lt=self.created_at) | models.Q(created_at=self.created_at, id__lt=self.id)
        ).count()
        return anteriores + 1


# ============================================================
# MODELO: Review
# ============================================================
class Review(models.Model):
    NOTAS = [(n, str(n)) for n in range(1, 6)]
    MAX_COMENTARIO = 500

    evento = models.ForeignKey(Evento, on_delete=models.CASCADE, related_name='reviews')
    autor = models.ForeignKey('usuarios.Usuario', on_delete=models.CASCADE, related_name='reviews')
    nota = models.PositiveSmallIntegerField(choices=NOTAS)
    comentario = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['evento', 'autor'], name='review_unica_por_autor'),
        ]

    def __str__(self):
        return f"{self.autor.nome} -> {self.evento.nome}: {self.nota}"
