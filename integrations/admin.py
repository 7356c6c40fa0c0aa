"""
Integrations Admin Configuration

Django admin interface for the side-effect outbox.
"""

from django.contrib import admin
from django.utils.html import format_html

from .hooks import deliver
from .models import SideEffect


@admin.register(SideEffect)
class SideEffectAdmin(admin.ModelAdmin):
    """Admin for SideEffect model."""
    list_display = [
        'id', 'kind', 'event', 'entity_type', 'entity_id', 'status_badge',
        'retry_count', 'next_retry_at', 'created_at',
    ]
    list_filter = ['kind', 'status', 'entity_type']
    search_fields = ['dedupe_key', 'event']
    readonly_fields = [
        'kind', 'event', 'entity_type', 'entity_id', 'dedupe_key', 'payload',
        'status', 'retry_count', 'max_retries', 'next_retry_at', 'last_error',
        'created_at', 'delivered_at',
    ]
    actions = ['retry_delivery']

    def status_badge(self, obj):
        colors = {
            'pending': 'orange',
            'delivered': 'green',
            'retrying': 'blue',
            'failed': 'red',
        }
        color = colors.get(obj.status, 'gray')
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            color,
            obj.get_status_display()
        )
    status_badge.short_description = 'Status'

    @admin.action(description='Retry delivery of selected side effects')
    def retry_delivery(self, request, queryset):
        delivered = 0
        for side_effect in queryset.exclude(status=SideEffect.Status.DELIVERED):
            if deliver(side_effect):
                delivered += 1
        self.message_user(request, f'{delivered} side effect(s) delivered.')
