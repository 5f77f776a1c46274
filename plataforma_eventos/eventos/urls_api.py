from django.urls import path
from . import api_views

app_name = 'eventos_api'

urlpatterns = [
    # Login to obtain token
    path('auth/token/', api_views.api_obtain_auth_token, name='api_token_auth'),

    # Feed (GET) and creation (POST)
    path('eventos/', api_views.EventoListCreateAPIView.as_view(), name='eventos'),
    path('eventos/meus/', api_views.MeusEventosAPIView.as_view(), name='meus-eventos'),
    path('eventos/pendentes/', api_views.EventosPendentesAPIView.as_view(), name='eventos-pendentes'),
    path('eventos/<int:pk>/', api_views.EventoDetailAPIView.as_view(), name='evento-detalhe'),
    path('eventos/<int:pk>/campo/', api_views.EventoCampoAPIView.as_view(), name='evento-campo'),
    path('eventos/<int:pk>/banner/', api_views.EventoBannerAPIView.as_view(), name='evento-banner'),
    path('eventos/<int:pk>/imagens/', api_views.EventoImagemListCreateAPIView.as_view(), name='evento-imagens'),
    path('eventos/<int:pk>/imagens/<int:imagem_pk>/', api_views.EventoImagemDeleteAPIView.as_view(), name='evento-imagem'),
    path('eventos/<int:pk>/finalizar/', api_views.EventoFinalizarAPIView.as_view(), name='evento-finalizar'),
    path('eventos/<int:pk>/aprovar/', api_views.aprovar_evento, name='evento-aprovar'),
    path('eventos/<int:pk>/rejeitar/', api_views.rejeitar_evento, name='evento-rejeitar'),

    # Registrations / waitlist
    path('eventos/<int:pk>/inscricoes/', api_views.InscricoesEventoAPIView.as_view(), name='evento-inscricoes'),
    path('inscricoes/minhas/', api_views.MinhasInscricoesAPIView.as_view(), name='minhas-inscricoes'),
    path('inscricoes/<int:pk>/', api_views.InscricaoDetailAPIView.as_view(), name='inscricao'),
    path('inscricoes/<int:pk>/confirmar/', api_views.confirmar_inscricao, name='inscricao-confirmar'),

    # Reviews
    path('eventos/<int:pk>/reviews/', api_views.ReviewsEventoAPIView.as_view(), name='evento-reviews'),
    path('reviews/minhas/', api_views.MinhasReviewsAPIView.as_view(), name='minhas-reviews'),
]
