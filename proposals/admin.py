"""
Proposals Admin Configuration

Read-mostly admin for the proposal ledger. Proposals are append-only, so
terms are never editable here.
"""

from django.contrib import admin
from django.utils.html import format_html

from .models import NegotiationChain, Proposal, ProposalMilestone


class ProposalMilestoneInline(admin.TabularInline):
    """Inline for the milestone breakdown of a proposal."""
    model = ProposalMilestone
    extra = 0
    can_delete = False
    readonly_fields = ['position', 'title', 'amount_gross', 'duration_days']
    fields = readonly_fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(NegotiationChain)
class NegotiationChainAdmin(admin.ModelAdmin):
    list_display = ['id', 'job_id', 'client', 'freelancer', 'head', 'is_open', 'version', 'created_at']
    list_filter = ['is_open']
    search_fields = ['job_id', 'client__email', 'freelancer__email']
    readonly_fields = ['root', 'head', 'version', 'created_at', 'updated_at', 'closed_at']
    raw_id_fields = ['client', 'freelancer']


@admin.register(Proposal)
class ProposalAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'job_id', 'client', 'freelancer', 'offered_by',
        'total_gross', 'currency', 'status_badge', 'created_at',
    ]
    list_filter = ['status', 'offered_by', 'origin', 'currency']
    search_fields = ['job_id', 'conversation_ref', 'client__email', 'freelancer__email']
    readonly_fields = [
        'chain', 'root', 'supersedes', 'job_id', 'client', 'freelancer',
        'offered_by', 'origin', 'currency', 'total_gross', 'platform_fee_percent',
        'message', 'status', 'decided_at', 'valid_until', 'conversation_ref',
        'created_at', 'updated_at',
    ]
    inlines = [ProposalMilestoneInline]
    date_hierarchy = 'created_at'

    fieldsets = (
        (None, {
            'fields': ('chain', 'root', 'supersedes', 'job_id', 'client', 'freelancer'),
        }),
        ('Terms', {
            'fields': ('offered_by', 'origin', 'currency', 'total_gross', 'platform_fee_percent', 'message'),
        }),
        ('Negotiation', {
            'fields': ('status', 'decided_at', 'valid_until', 'conversation_ref'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    def has_delete_permission(self, request, obj=None):
        return False

    def status_badge(self, obj):
        colors = {
            'sent': 'blue',
            'pending': 'orange',
            'accepted': 'green',
            'rejected': 'red',
            'cancelled': 'gray',
            'withdrawn': 'gray',
            'superseded': 'purple',
        }
        color = colors.get(obj.status, 'gray')
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            color,
            obj.display_status
        )
    status_badge.short_description = 'Status'
