from django.contrib import admin

from modules.notifications.models import EmailLog


@admin.register(EmailLog)
class EmailLogAdmin(admin.ModelAdmin):
    list_display = ("order_id", "kind", "to_email", "status", "sent_at")
    list_filter = ("kind", "status")
    search_fields = ("order_id", "to_email")
