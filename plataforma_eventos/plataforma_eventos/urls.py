"""
URL configuration for plataforma_eventos project.

- /usuarios/ : cadastro, confirmação, login, perfil e sessão (HTML + JSON)
- /api/      : eventos, inscrições, avaliações e token (Django REST Framework)
"""

from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static
from django.shortcuts import redirect
from django.contrib import messages
from .views import painel

urlpatterns = [
    path("admin/", admin.site.urls),
    path("", painel, name='painel'),
    path('usuarios/', include('usuarios.urls')),
    path('api/', include('eventos.urls_api')),
] + static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)


def custom_403(request, exception):
    messages.info(request, "Acesso negado (403).")
    return redirect('painel')


def custom_404(request, exception):
    messages.info(request, "A página que você tentou acessar não existe (404).")
    return redirect('painel')


handler403 = custom_403
handler404 = custom_404
