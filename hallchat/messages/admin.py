from django.contrib import admin

from .models import Message


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ("id", "kind", "owner", "receiver", "payload_type", "created_at")
    list_filter = ("kind", "payload_type")
    search_fields = ("text",)
    readonly_fields = ("created_at",)
