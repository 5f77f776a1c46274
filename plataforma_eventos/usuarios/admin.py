"""
Configuração do Django Admin para usuários, localidades e logs de auditoria.
"""

from django.contrib import admin
from .models import Estado, Municipio, Usuario, AuditLog


@admin.register(Usuario)
class UsuarioAdmin(admin.ModelAdmin):
	list_display = ('nome', 'user', 'tipo_usuario', 'cidade', 'deletado', 'created_at')
	list_filter = ('tipo_usuario', 'deletado')
	search_fields = ('nome', 'user__email')
	raw_id_fields = ('cidade',)


@admin.register(Estado)
class EstadoAdmin(admin.ModelAdmin):
	list_display = ('codigo_uf', 'uf', 'nome')


@admin.register(Municipio)
class MunicipioAdmin(admin.ModelAdmin):
	list_display = ('codigo_ibge', 'nome', 'estado')
	list_filter = ('estado',)
	search_fields = ('nome',)


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
	"""
	Configuração da interface de administração para o modelo AuditLog.
	Permite visualizar, filtrar e buscar logs de auditoria do sistema.
	"""
	list_display = ('timestamp', 'usuario', 'django_user', 'action', 'object_type', 'object_id')
	list_filter = ('action', 'object_type', 'timestamp')
	search_fields = ('description', 'object_id')
	readonly_fields = ('timestamp',)
	date_hierarchy = 'timestamp'
