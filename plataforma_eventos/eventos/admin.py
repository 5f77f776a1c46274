"""
Configurações de administração do Django para os modelos de eventos.
"""

from django.contrib import admin
from .models import Evento, EventoImagem, Inscricao, Review


class EventoImagemInline(admin.TabularInline):
    model = EventoImagem
    extra = 0


# -------------------------------
# Admin para Evento
# -------------------------------
@admin.register(Evento)
class EventoAdmin(admin.ModelAdmin):
    """
    - list_display: campos principais do evento na listagem.
    - list_filter: aprovação, realização e exclusão.
    - actions: aprovação em lote, equivalente ao endpoint de aprovação.
    """
    list_display = ('nome', 'criador', 'cidade', 'data_realizacao', 'numero_vagas', 'aprovado', 'realizado', 'deletado')
    list_filter = ('aprovado', 'realizado', 'deletado', 'gratuito')
    search_fields = ('nome', 'criador__nome')
    inlines = [EventoImagemInline]
    actions = ['aprovar']

    @admin.action(description='Aprovar eventos selecionados')
    def aprovar(self, request, queryset):
        atualizados = queryset.filter(deletado=False).update(aprovado=True)
        self.message_user(request, f'{atualizados} evento(s) aprovado(s).')


# -------------------------------
# Admin para Inscricao
# -------------------------------
@admin.register(Inscricao)
class InscricaoAdmin(admin.ModelAdmin):
    list_display = ('evento', 'usuario', 'status', 'created_at')
    list_filter = ('status', 'evento')
    search_fields = ('usuario__nome', 'evento__nome')


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ('evento', 'autor', 'nota', 'created_at')
    list_filter = ('nota',)
    search_fields = ('autor__nome', 'evento__nome', 'comentario')
