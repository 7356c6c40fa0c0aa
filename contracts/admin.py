"""
Contracts Admin Configuration
"""

from django.contrib import admin

from milestones.models import Milestone
from .models import Contract


class MilestoneInline(admin.TabularInline):
    model = Milestone
    extra = 0
    can_delete = False
    fields = ['position', 'title', 'amount_gross', 'status', 'due_at', 'client_confirm_deadline_at']
    readonly_fields = fields
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'job_id', 'client', 'freelancer', 'fees_total', 'currency',
        'status', 'created_at',
    ]
    list_filter = ['status', 'currency']
    search_fields = ['job_id', 'client__email', 'freelancer__email']
    readonly_fields = [
        'proposal', 'job_id', 'client', 'freelancer', 'currency', 'fees_total',
        'platform_fee_percent', 'confirmed_at', 'created_at', 'updated_at',
    ]
    inlines = [MilestoneInline]
