"""
Milestones Models - delivery, review and payout of contracted work.

This module defines:
- Milestone: a payable unit of a contract, with its own status machine
- MilestoneSubmission: a versioned claim of delivered work
- EscrowPayment: funds held for a milestone until release or refund
- Payout: the net amount paid to the freelancer for a milestone
- Wallet: per-user, per-role balance credited by payouts and refunds
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.db import MoneyField, TimestampedModel, VersionedModel
from core.identity import PartyRole


# ============================================================================
# MILESTONES
# ============================================================================

class Milestone(VersionedModel):
    """
    A payable checkpoint of a contract.

    Status flow:
        pending -> submitted -> released (approval) | rejected
        rejected -> submitted (resubmission)
        pending | submitted | rejected -> refunded (auto-settlement)
    """

    class Status(models.TextChoices):
        PENDING = 'pending', _('Pending')
        SUBMITTED = 'submitted', _('Submitted')
        APPROVED = 'approved', _('Approved')
        RELEASED = 'released', _('Released')
        REJECTED = 'rejected', _('Rejected')
        REFUNDED = 'refunded', _('Refunded')

    # No further submissions once a milestone reaches one of these.
    CLOSED_FOR_SUBMISSION = (Status.APPROVED, Status.RELEASED, Status.REFUNDED)

    contract = models.ForeignKey(
        'contracts.Contract',
        on_delete=models.PROTECT,
        related_name='milestones'
    )
    position = models.PositiveIntegerField()
    title = models.CharField(max_length=255)
    amount_gross = MoneyField()

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )

    # Timeline
    due_at = models.DateTimeField(null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    client_confirm_deadline_at = models.DateTimeField(null=True, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)

    latest_submission = models.ForeignKey(
        'milestones.MilestoneSubmission',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    class Meta:
        verbose_name = _('Milestone')
        verbose_name_plural = _('Milestones')
        ordering = ['contract', 'position']
        constraints = [
            models.UniqueConstraint(
                fields=['contract', 'position'],
                name='milestones_position_unique_per_contract',
            ),
        ]
        indexes = [
            models.Index(fields=['status', 'due_at'], name='milestones_status_due_idx'),
        ]

    def __str__(self):
        return f"Milestone {self.position} of contract {self.contract_id}: {self.title} ({self.status})"

    @property
    def accepts_submissions(self):
        return self.status not in self.CLOSED_FOR_SUBMISSION

    @property
    def is_overdue(self):
        return bool(self.due_at) and self.due_at < timezone.now()


class SubmissionQuerySet(models.QuerySet):

    def latest_for(self, milestone):
        """
        The latest submission of ``milestone``.

        Versions only grow, so the highest version wins even when a host
        clock stamped an older submission later.
        """
        return self.filter(milestone=milestone).order_by('-version', '-submitted_at').first()


class MilestoneSubmission(models.Model):
    """
    A freelancer's claim of delivered work. Immutable once decided.
    """

    class Status(models.TextChoices):
        SUBMITTED = 'submitted', _('Submitted')
        APPROVED = 'approved', _('Approved')
        REJECTED = 'rejected', _('Rejected')

    milestone = models.ForeignKey(
        Milestone,
        on_delete=models.CASCADE,
        related_name='submissions'
    )
    version = models.PositiveIntegerField()
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='milestone_submissions'
    )
    submission_url = models.URLField(max_length=2000, blank=True)
    notes = models.TextField(blank=True)

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.SUBMITTED
    )
    submitted_at = models.DateTimeField(default=timezone.now)
    decided_at = models.DateTimeField(null=True, blank=True)
    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='decided_submissions'
    )
    decision_reason = models.TextField(blank=True)

    objects = SubmissionQuerySet.as_manager()

    class Meta:
        verbose_name = _('Milestone Submission')
        verbose_name_plural = _('Milestone Submissions')
        ordering = ['milestone', '-version']
        constraints = [
            models.UniqueConstraint(
                fields=['milestone', 'version'],
                name='milestones_submission_version_unique',
            ),
        ]

    def __str__(self):
        return f"Submission v{self.version} for milestone {self.milestone_id} ({self.status})"

    @property
    def is_decided(self):
        return self.status != self.Status.SUBMITTED


# ============================================================================
# ESCROW & PAYOUTS
# ============================================================================

class EscrowPayment(TimestampedModel):
    """Funds held for one milestone until they are released or refunded."""

    class Status(models.TextChoices):
        HELD = 'held', _('Held')
        RELEASED = 'released', _('Released')
        REFUNDED = 'refunded', _('Refunded')

    milestone = models.OneToOneField(
        Milestone,
        on_delete=models.PROTECT,
        related_name='escrow_payment'
    )
    contract = models.ForeignKey(
        'contracts.Contract',
        on_delete=models.PROTECT,
        related_name='escrow_payments'
    )
    amount = MoneyField()
    currency = models.CharField(max_length=3)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.HELD,
        db_index=True
    )
    captured_at = models.DateTimeField(null=True, blank=True)
    released_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    refund_reason = models.CharField(max_length=255, blank=True)

    class Meta:
        verbose_name = _('Escrow Payment')
        verbose_name_plural = _('Escrow Payments')
        ordering = ['-created_at']

    def __str__(self):
        return f"Escrow {self.amount} {self.currency} for milestone {self.milestone_id} ({self.status})"


class Payout(TimestampedModel):
    """Net payment to the freelancer for one released milestone."""

    class Status(models.TextChoices):
        PENDING = 'pending', _('Pending')
        PAID = 'paid', _('Paid')
        FAILED = 'failed', _('Failed')

    milestone = models.OneToOneField(
        Milestone,
        on_delete=models.PROTECT,
        related_name='payout'
    )
    contract = models.ForeignKey(
        'contracts.Contract',
        on_delete=models.PROTECT,
        related_name='payouts'
    )
    freelancer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='payouts'
    )
    amount_gross = MoneyField()
    fee_amount = MoneyField()
    amount_net = MoneyField()
    currency = models.CharField(max_length=3)

    provider = models.CharField(max_length=30, default='ledger')
    external_id = models.CharField(max_length=255, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING
    )
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _('Payout')
        verbose_name_plural = _('Payouts')
        ordering = ['-created_at']

    def __str__(self):
        return f"Payout {self.amount_net} {self.currency} for milestone {self.milestone_id}"


class Wallet(TimestampedModel):
    """A user's balance in one role."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='wallets'
    )
    role = models.CharField(max_length=20, choices=PartyRole.choices)
    balance = MoneyField(default=0)
    currency = models.CharField(max_length=3, default='EGP')
    stripe_account_id = models.CharField(
        max_length=255,
        blank=True,
        help_text=_('Stripe Connect account for payouts')
    )

    class Meta:
        verbose_name = _('Wallet')
        verbose_name_plural = _('Wallets')
        constraints = [
            models.UniqueConstraint(fields=['user', 'role'], name='milestones_wallet_per_user_role'),
        ]

    def __str__(self):
        return f"{self.user_id} ({self.role}): {self.balance} {self.currency}"
