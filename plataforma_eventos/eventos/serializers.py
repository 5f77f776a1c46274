"""
Serializers para conversão e validação de dados de eventos, inscrições e avaliações.

Inclui validações customizadas e métodos de representação para uso nas APIs.
"""

from django.utils import timezone
from rest_framework import serializers
from usuarios.models import Municipio
from .models import Evento, EventoImagem, Inscricao, Review


class EventoImagemSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()

    class Meta:
        model = EventoImagem
        fields = ['id', 'url', 'created_at']

    def get_url(self, obj):
        return obj.imagem.url if obj.imagem else None


class EventoSerializer(serializers.ModelSerializer):
    """
    Representação de leitura de um evento (feed, detalhe, meus eventos).
    """
    criador = serializers.CharField(source='criador.nome', read_only=True)
    cidade_nome = serializers.SerializerMethodField()
    banner_url = serializers.SerializerMethodField()
    imagens = EventoImagemSerializer(many=True, read_only=True)

    class Meta:
        model = Evento
        fields = [
            'id',
            'nome',
            'descricao',
            'cidade',
            'cidade_nome',
            'numero_vagas',
            'gratuito',
            'data_realizacao',
            'data_encerramento',
            'banner_url',
            'imagens',
            'criador',
            'aprovado',
            'realizado',
        ]
        read_only_fields = fields

    def get_cidade_nome(self, obj):
        return str(obj.cidade) if obj.cidade_id else None

    def get_banner_url(self, obj):
        return obj.banner.url if obj.banner else None


class EventoCreateSerializer(serializers.ModelSerializer):
    """
    Criação de evento por um organizador. As imagens são enviadas depois,
    nos endpoints de banner e galeria, quando o evento já tem id.
    """
    cidade = serializers.PrimaryKeyRelatedField(queryset=Municipio.objects.all(), required=False, allow_null=True)
    numero_vagas = serializers.IntegerField(required=False, allow_null=True)

    class Meta:
        model = Evento
        fields = ['nome', 'descricao', 'cidade', 'numero_vagas', 'gratuito', 'data_realizacao', 'data_encerramento']

    def validate_nome(self, value):
        value = (value or '').strip()
        if not value:
            raise serializers.ValidationError('Nome é obrigatório.')
        return value

    def validate_descricao(self, value):
        if value and len(value) > Evento.MAX_DESCRICAO:
            raise serializers.ValidationError(f'Descrição: máx. {Evento.MAX_DESCRICAO} caracteres.')
        return value

    def validate_numero_vagas(self, value):
        if value is not None and value <= 0:
            raise serializers.ValidationError('Informe um número positivo.')
        return value

    def validate_data_realizacao(self, value):
        if value <= timezone.now():
            raise serializers.ValidationError('Data de realização deve ser no futuro.')
        return value

    def validate_data_encerramento(self, value):
        if value <= timezone.now():
            raise serializers.ValidationError('Data de encerramento deve ser no futuro.')
        return value

    def validate(self, attrs):
        if attrs['data_encerramento'] < attrs['data_realizacao']:
            raise serializers.ValidationError({'data_encerramento': 'Encerramento deve ser após realização.'})
        return attrs

    def to_representation(self, instance):
        return EventoSerializer(instance, context=self.context).data


class InscricaoSerializer(serializers.ModelSerializer):
    """
    Inscrição vista pelo organizador (lista do evento) ou pelo próprio usuário.
    """
    usuario = serializers.CharField(source='usuario.nome', read_only=True)
    evento_nome = serializers.CharField(source='evento.nome', read_only=True)
    data_realizacao = serializers.DateTimeField(source='evento.data_realizacao', read_only=True)
    posicao_espera = serializers.SerializerMethodField()

    class Meta:
        model = Inscricao
        fields = ['id', 'evento', 'evento_nome', 'data_realizacao', 'usuario', 'status', 'posicao_espera', 'created_at']
        read_only_fields = fields

    def get_posicao_espera(self, obj):
        return obj.posicao_espera()


class ReviewSerializer(serializers.ModelSerializer):
    autor = serializers.CharField(source='autor.nome', read_only=True)
    evento_nome = serializers.CharField(source='evento.nome', read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'evento', 'evento_nome', 'autor', 'nota', 'comentario', 'created_at']
        read_only_fields = ['id', 'evento', 'evento_nome', 'autor', 'created_at']

    def validate_nota(self, value):
        if value < 1 or value > 5:
            raise serializers.ValidationError('A nota deve ser entre 1 e 5.')
        return value

    def validate_comentario(self, value):
        if value and len(value) > Review.MAX_COMENTARIO:
            raise serializers.ValidationError(f'Comentário: máx. {Review.MAX_COMENTARIO} caracteres.')
        return value


class CampoSerializer(serializers.Serializer):
    """Payload das edições no lugar: { "campo": <nome>, "valor": <valor bruto> }."""
    campo = serializers.CharField()
    valor = serializers.JSONField(required=False, allow_null=True)
