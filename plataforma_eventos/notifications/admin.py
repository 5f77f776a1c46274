from django.contrib import admin
from .models import EmailJob


@admin.register(EmailJob)
class EmailJobAdmin(admin.ModelAdmin):
    list_display = ('to_email', 'subject', 'status', 'retries', 'scheduled_at', 'sent_at')
    list_filter = ('status',)
    search_fields = ('to_email', 'subject')
