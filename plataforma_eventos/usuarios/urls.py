from django.urls import path
from . import views

urlpatterns = [
    path('cadastro/', views.cadastro, name='cadastro'),
    path('cadastro/estado/', views.estado_cadastro, name='estado_cadastro'),
    path('cadastro/materializar/', views.materializar, name='materializar_cadastro'),
    path('cadastro/reenviar/', views.reenviar_confirmacao, name='reenviar_confirmacao'),
    path('confirmar/<str:uidb64>/<str:token>/', views.confirmar_email, name='confirmar_email'),
    path('nome-disponivel/', views.nome_disponivel, name='nome_disponivel'),
    path('municipios/', views.municipios, name='municipios'),
    path('login/', views.login_usuario, name='login'),
    path('logout/', views.logout_usuario, name='logout'),
    path('perfil/', views.meu_perfil, name='perfil'),
    path('perfil/campo/', views.atualizar_campo_perfil, name='atualizar_campo_perfil'),
    path('perfil/imagem/', views.enviar_imagem_perfil, name='enviar_imagem_perfil'),
    path('perfil/excluir/', views.excluir_conta, name='excluir_conta'),
    path('perfil/<str:slug>/', views.perfil_publico, name='perfil_publico'),
    path('sessao/visibilidade/', views.visibilidade, name='visibilidade'),
]
