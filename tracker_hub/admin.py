"""Django admin configuration for the tracker hub."""
from django.contrib import admin

from .models import Document


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    """Admin interface for stored documents."""

    list_display: tuple[str, ...] = ('key', 'updated_at')
    search_fields: tuple[str, ...] = ('key',)
    readonly_fields: tuple[str, ...] = ('updated_at',)
