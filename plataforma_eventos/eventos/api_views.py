import logging
from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import generics, status, permissions
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.throttling import SimpleRateThrottle
from rest_framework.authtoken.models import Token
from rest_framework.authtoken.serializers import AuthTokenSerializer
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.permissions import AllowAny, IsAuthenticated, IsAdminUser
from usuarios.campos import CAMPOS_EVENTO, ErroCampo, campo_do_registro
from usuarios.utils import validar_imagem, ErroUpload, log_audit
from .models import Evento, EventoImagem, Inscricao, Review
from .serializers import (
    EventoSerializer, EventoCreateSerializer, EventoImagemSerializer,
    InscricaoSerializer, ReviewSerializer, CampoSerializer,
)


logger = logging.getLogger(__name__)


# ============================================================
# THROTTLES
# ============================================================
class FeedThrottle(SimpleRateThrottle):
    scope = 'feed'

    def get_cache_key(self, request, view):
        if request.user and request.user.is_authenticated:
            ident = request.user.pk
        else:
            ident = self.get_ident(request)
        return self.cache_format % {
            'scope': self.scope,
            'ident': ident
        }


class InscricaoThrottle(SimpleRateThrottle):
    scope = 'inscricao'

    def get_cache_key(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return None
        return self.cache_format % {
            'scope': self.scope,
            'ident': request.user.pk
        }


# ============================================================
# PERMISSÕES E HELPERS
# ============================================================
def perfil_de(request):
    """Perfil `Usuario` ativo do usuário autenticado, ou None (cadastro ainda não materializado)."""
    perfil = getattr(request.user, 'profile', None) if request.user.is_authenticated else None
    if perfil is None or perfil.deletado:
        return None
    return perfil


class TemPerfil(permissions.BasePermission):
    message = 'Perfil do usuário não encontrado. Conclua o cadastro.'

    def has_permission(self, request, view):
        return perfil_de(request) is not None


class IsOrganizador(permissions.BasePermission):
    message = 'Apenas organizadores podem criar eventos.'

    def has_permission(self, request, view):
        perfil = perfil_de(request)
        return perfil is not None and perfil.is_organizador


def evento_do_criador(request, pk):
    """Evento não excluído pertencente ao perfil autenticado (404 para os demais)."""
    return get_object_or_404(Evento.objects.ativos(), pk=pk, criador=perfil_de(request))


# ============================================================
# EVENTOS
# ============================================================
class EventoListCreateAPIView(generics.ListCreateAPIView):
    """Feed de eventos (GET, público) e criação de evento por organizadores (POST).

    Filtros do feed: ?tipo=nome&q=<trecho> ou ?tipo=cidade&cidade=<codigo_ibge>.
    """
    throttle_classes = [FeedThrottle]

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthenticated(), IsOrganizador()]
        return [AllowAny()]

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return EventoCreateSerializer
        return EventoSerializer

    def get_queryset(self):
        qs = Evento.objects.feed().select_related('cidade__estado', 'criador').prefetch_related('imagens')
        tipo = self.request.query_params.get('tipo')
        if tipo == 'nome':
            termo = (self.request.query_params.get('q') or '').strip()
            if termo:
                qs = qs.filter(nome__icontains=termo)
        elif tipo == 'cidade':
            cidade = self.request.query_params.get('cidade')
            if cidade:
                try:
                    qs = qs.filter(cidade_id=int(cidade))
                except ValueError:
                    qs = qs.none()
        return qs

    def perform_create(self, serializer):
        evento = serializer.save(criador=perfil_de(self.request))
        log_audit(request=self.request, usuario=evento.criador, django_user=self.request.user, action='api_create_event', object_type='Evento', object_id=evento.pk, description=f'Evento criado via API: {evento.nome}')


class EventoDetailAPIView(APIView):
    """Detalhe (GET) e exclusão lógica pelo criador (DELETE)."""

    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        return [IsAuthenticated(), TemPerfil()]

    def get(self, request, pk):
        evento = get_object_or_404(Evento.objects.ativos(), pk=pk)
        perfil = perfil_de(request)
        if not evento.aprovado and not request.user.is_staff and (perfil is None or evento.criador_id != perfil.pk):
            return Response({'detail': 'Evento não encontrado.'}, status=status.HTTP_404_NOT_FOUND)
        return Response(EventoSerializer(evento, context={'request': request}).data)

    def delete(self, request, pk):
        evento = evento_do_criador(request, pk)
        evento.deletado = True
        evento.save(update_fields=['deletado', 'updated_at'])
        return Response(status=status.HTTP_204_NO_CONTENT)


class EventoCampoAPIView(APIView):
    """Edição no lugar de um campo do evento pelo criador: { "campo": ..., "valor": ... }."""
    permission_classes = [IsAuthenticated, TemPerfil]

    def post(self, request, pk):
        evento = evento_do_criador(request, pk)
        if evento.realizado:
            return Response({'detail': 'Evento já realizado não pode ser editado.'}, status=status.HTTP_400_BAD_REQUEST)
        payload = CampoSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            campo = campo_do_registro(CAMPOS_EVENTO, payload.validated_data['campo'])
            campo.salvar(evento, payload.validated_data.get('valor'))
        except ErroCampo as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({'campo': campo.nome, 'valor': campo.valor_de(evento)})


class EventoBannerAPIView(APIView):
    """Envio do banner (substitui o anterior)."""
    permission_classes = [IsAuthenticated, TemPerfil]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request, pk):
        evento = evento_do_criador(request, pk)
        try:
            arquivo = validar_imagem(request.FILES.get('banner'))
        except ErroUpload as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        evento.banner = arquivo
        evento.save()
        return Response({'banner_url': evento.banner.url})


class EventoImagemListCreateAPIView(APIView):
    """Adiciona imagens à galeria do evento (campo `imagens`, múltiplos arquivos)."""
    permission_classes = [IsAuthenticated, TemPerfil]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request, pk):
        evento = evento_do_criador(request, pk)
        arquivos = request.FILES.getlist('imagens')
        if not arquivos:
            return Response({'detail': 'Nenhuma imagem enviada.'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            for arquivo in arquivos:
                validar_imagem(arquivo)
        except ErroUpload as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        criadas = [EventoImagem.objects.create(evento=evento, imagem=arquivo) for arquivo in arquivos]
        return Response(EventoImagemSerializer(criadas, many=True).data, status=status.HTTP_201_CREATED)


class EventoImagemDeleteAPIView(APIView):
    permission_classes = [IsAuthenticated, TemPerfil]

    def delete(self, request, pk, imagem_pk):
        evento = evento_do_criador(request, pk)
        imagem = get_object_or_404(EventoImagem, pk=imagem_pk, evento=evento)
        imagem.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


class EventoFinalizarAPIView(APIView):
    """Marca o evento como realizado e expira a lista de espera."""
    permission_classes = [IsAuthenticated, TemPerfil]

    def post(self, request, pk):
        evento = evento_do_criador(request, pk)
        if evento.realizado:
            return Response({'detail': 'Evento já foi finalizado.'}, status=status.HTTP_400_BAD_REQUEST)
        with transaction.atomic():
            evento.realizado = True
            evento.save(update_fields=['realizado', 'updated_at'])
            expiradas = evento.inscricoes.filter(status=Inscricao.PENDENTE).update(status=Inscricao.EXPIRADA, updated_at=timezone.now())
        log_audit(request=request, usuario=evento.criador, django_user=request.user, action='finalize_event', object_type='Evento', object_id=evento.pk, description=f'Evento finalizado: {evento.nome}', extra={'inscricoes_expiradas': expiradas})
        return Response({'realizado': True, 'inscricoes_expiradas': expiradas})


class MeusEventosAPIView(APIView):
    """Eventos do organizador divididos em futuros e passados."""
    permission_classes = [IsAuthenticated, TemPerfil]

    def get(self, request):
        agora = timezone.now()
        eventos = Evento.objects.do_criador(perfil_de(request)).select_related('cidade__estado', 'criador').prefetch_related('imagens')
        ctx = {'request': request}
        futuros = [e for e in eventos if e.data_realizacao >= agora]
        passados = [e for e in eventos if e.data_realizacao < agora]
        return Response({
            'futuros': EventoSerializer(futuros, many=True, context=ctx).data,
            'passados': EventoSerializer(passados, many=True, context=ctx).data,
        })


# ============================================================
# APROVAÇÃO (equipe)
# ============================================================
class EventosPendentesAPIView(generics.ListAPIView):
    serializer_class = EventoSerializer
    permission_classes = [IsAdminUser]
    pagination_class = None

    def get_queryset(self):
        return Evento.objects.pendentes_aprovacao().select_related('cidade__estado', 'criador')


@api_view(['POST'])
@permission_classes([IsAdminUser])
def aprovar_evento(request, pk):
    evento = get_object_or_404(Evento.objects.pendentes_aprovacao(), pk=pk)
    evento.aprovado = True
    evento.save(update_fields=['aprovado', 'updated_at'])
    log_audit(request=request, django_user=request.user, action='approve_event', object_type='Evento', object_id=evento.pk, description=f'Evento aprovado: {evento.nome}')
    return Response({'aprovado': True})


@api_view(['POST'])
@permission_classes([IsAdminUser])
def rejeitar_evento(request, pk):
    evento = get_object_or_404(Evento.objects.pendentes_aprovacao(), pk=pk)
    log_audit(request=request, django_user=request.user, action='reject_event', object_type='Evento', object_id=evento.pk, description=f'Evento rejeitado: {evento.nome}')
    evento.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


# ============================================================
# INSCRIÇÕES / LISTA DE ESPERA
# ============================================================
class InscricoesEventoAPIView(APIView):
    """GET: inscrições do evento (apenas o criador). POST: inscrever-se."""
    permission_classes = [IsAuthenticated, TemPerfil]

    def get_throttles(self):
        if self.request.method == 'POST':
            return [InscricaoThrottle()]
        return []

    def get(self, request, pk):
        evento = evento_do_criador(request, pk)
        inscricoes = evento.inscricoes.select_related('usuario', 'evento')
        return Response(InscricaoSerializer(inscricoes, many=True).data)

    def post(self, request, pk):
        perfil = perfil_de(request)
        evento = get_object_or_404(Evento.objects.ativos(), pk=pk)

        if perfil.tipo_usuario != perfil.TIPO_CLIENTE:
            return Response({'detail': 'Apenas clientes podem se inscrever.'}, status=status.HTTP_403_FORBIDDEN)
        if not evento.aceita_inscricoes():
            return Response({'detail': 'Evento não está aberto para inscrições.'}, status=status.HTTP_400_BAD_REQUEST)
        if evento.criador_id == perfil.pk:
            return Response({'detail': 'Criador do evento não pode se inscrever.'}, status=status.HTTP_400_BAD_REQUEST)
        if Inscricao.objects.filter(evento=evento, usuario=perfil).exists():
            return Response({'detail': 'Usuário já inscrito neste evento.'}, status=status.HTTP_400_BAD_REQUEST)

        try:
            with transaction.atomic():
                inscricao = Inscricao.objects.create(evento=evento, usuario=perfil)
        except IntegrityError:
            return Response({'detail': 'Usuário já inscrito neste evento.'}, status=status.HTTP_400_BAD_REQUEST)
        return Response(InscricaoSerializer(inscricao).data, status=status.HTTP_201_CREATED)


class MinhasInscricoesAPIView(generics.ListAPIView):
    serializer_class = InscricaoSerializer
    permission_classes = [IsAuthenticated, TemPerfil]
    pagination_class = None

    def get_queryset(self):
        return (Inscricao.objects
                .filter(usuario=perfil_de(self.request), evento__realizado=False, evento__deletado=False)
                .select_related('evento', 'usuario')
                .order_by('-created_at', '-id'))


class InscricaoDetailAPIView(APIView):
    """DELETE: o inscrito cancela a própria inscrição ou o criador a remove."""
    permission_classes = [IsAuthenticated, TemPerfil]

    def delete(self, request, pk):
        perfil = perfil_de(request)
        inscricao = get_object_or_404(Inscricao.objects.select_related('evento'), pk=pk)
        if perfil.pk not in (inscricao.usuario_id, inscricao.evento.criador_id):
            return Response({'detail': 'Sem permissão para remover esta inscrição.'}, status=status.HTTP_403_FORBIDDEN)
        inscricao.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, TemPerfil])
def confirmar_inscricao(request, pk):
    """Organizador confirma uma inscrição pendente ou expirada, se houver vaga."""
    perfil = perfil_de(request)
    inscricao = get_object_or_404(Inscricao.objects.select_related('evento', 'usuario__user'), pk=pk, evento__criador=perfil)
    if inscricao.status == Inscricao.CONFIRMADA:
        return Response({'detail': 'Inscrição já confirmada.'}, status=status.HTTP_400_BAD_REQUEST)
    with transaction.atomic():
        evento = Evento.objects.select_for_update().get(pk=inscricao.evento_id)
        if not evento.tem_vaga():
            return Response({'detail': 'Evento atingiu o número máximo de participantes.'}, status=status.HTTP_400_BAD_REQUEST)
        inscricao.status = Inscricao.CONFIRMADA
        inscricao.save(update_fields=['status', 'updated_at'])
    try:
        from notifications.services import queue_inscricao_confirmada
        queue_inscricao_confirmada(inscricao)
    except Exception:
        logger.exception('Falha ao enfileirar aviso de inscrição confirmada %s', inscricao.pk)
    return Response(InscricaoSerializer(inscricao).data)


# ============================================================
# AVALIAÇÕES
# ============================================================
class ReviewsEventoAPIView(APIView):
    """GET: avaliações do evento. POST: avaliar (evento realizado, inscrição confirmada)."""

    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        return [IsAuthenticated(), TemPerfil()]

    def get(self, request, pk):
        evento = get_object_or_404(Evento.objects.ativos(), pk=pk)
        reviews = evento.reviews.select_related('autor', 'evento')
        return Response(ReviewSerializer(reviews, many=True).data)

    def post(self, request, pk):
        perfil = perfil_de(request)
        evento = get_object_or_404(Evento.objects.ativos(), pk=pk)
        if not evento.realizado:
            return Response({'detail': 'Só é possível avaliar eventos já realizados.'}, status=status.HTTP_400_BAD_REQUEST)
        if not Inscricao.objects.filter(evento=evento, usuario=perfil, status=Inscricao.CONFIRMADA).exists():
            return Response({'detail': 'Apenas participantes confirmados podem avaliar.'}, status=status.HTTP_403_FORBIDDEN)
        if Review.objects.filter(evento=evento, autor=perfil).exists():
            return Response({'detail': 'Você já avaliou este evento.'}, status=status.HTTP_400_BAD_REQUEST)

        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            with transaction.atomic():
                review = serializer.save(evento=evento, autor=perfil)
        except IntegrityError:
            return Response({'detail': 'Você já avaliou este evento.'}, status=status.HTTP_400_BAD_REQUEST)
        return Response(ReviewSerializer(review).data, status=status.HTTP_201_CREATED)


class MinhasReviewsAPIView(generics.ListAPIView):
    serializer_class = ReviewSerializer
    permission_classes = [IsAuthenticated, TemPerfil]
    pagination_class = None

    def get_queryset(self):
        return Review.objects.filter(autor=perfil_de(self.request)).select_related('evento', 'autor')


# ============================================================
# TOKEN DE API
# ============================================================
# Public token obtain endpoint (AllowAny): not subject to global IsAuthenticated
@api_view(['POST'])
@permission_classes([AllowAny])
@authentication_classes([])
def api_obtain_auth_token(request):
    serializer = AuthTokenSerializer(data=request.data, context={'request': request})
    serializer.is_valid(raise_exception=True)
    user = serializer.validated_data['user']
    token, created = Token.objects.get_or_create(user=user)
    return Response({'token': token.key})
