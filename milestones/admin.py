"""
Milestones Admin Configuration

Django admin for milestones, submissions, escrow and payouts.
"""

from django.contrib import admin

from .models import EscrowPayment, Milestone, MilestoneSubmission, Payout, Wallet


class MilestoneSubmissionInline(admin.TabularInline):
    model = MilestoneSubmission
    fk_name = 'milestone'
    extra = 0
    can_delete = False
    fields = ['version', 'submitted_by', 'submission_url', 'status', 'submitted_at', 'decided_at', 'decided_by']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Milestone)
class MilestoneAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'contract', 'position', 'title', 'amount_gross', 'status',
        'due_at', 'client_confirm_deadline_at',
    ]
    list_filter = ['status']
    search_fields = ['title', 'contract__job_id']
    readonly_fields = [
        'contract', 'position', 'amount_gross', 'status', 'submitted_at',
        'approved_at', 'rejected_at', 'latest_submission', 'version',
        'created_at', 'updated_at',
    ]
    inlines = [MilestoneSubmissionInline]


@admin.register(EscrowPayment)
class EscrowPaymentAdmin(admin.ModelAdmin):
    list_display = ['id', 'milestone', 'contract', 'amount', 'currency', 'status', 'captured_at']
    list_filter = ['status', 'currency']
    readonly_fields = [
        'milestone', 'contract', 'amount', 'currency', 'status', 'captured_at',
        'released_at', 'refunded_at', 'refund_reason', 'created_at', 'updated_at',
    ]


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    list_display = ['id', 'milestone', 'freelancer', 'amount_net', 'currency', 'provider', 'status', 'paid_at']
    list_filter = ['status', 'provider']
    search_fields = ['external_id', 'freelancer__email']
    readonly_fields = [
        'milestone', 'contract', 'freelancer', 'amount_gross', 'fee_amount',
        'amount_net', 'currency', 'provider', 'external_id', 'paid_at',
        'created_at', 'updated_at',
    ]


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ['user', 'role', 'balance', 'currency', 'stripe_account_id']
    list_filter = ['role', 'currency']
    search_fields = ['user__email', 'stripe_account_id']
    readonly_fields = ['balance', 'created_at', 'updated_at']
