"""
Proposals Models - append-only ledger of negotiated offers.

This module defines:
- NegotiationChain: one negotiation thread with a materialized head pointer
- Proposal: one revision of an offer inside a chain
- ProposalMilestone: the milestone breakdown of a proposal

Proposals are never deleted. A revision is either the live head of its
chain, superseded by a newer revision, or closed in a terminal status.
"""

from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from core.db import MoneyField, TimestampedModel, VersionedModel, net_of_fee
from core.identity import PartyRole, counterpart
from proposals.negotiation import (
    AwaitingConfirmation,
    Open,
    is_live,
    state_from_status,
)


# ============================================================================
# NEGOTIATION CHAINS
# ============================================================================

class NegotiationChain(VersionedModel):
    """
    One negotiation thread between a client and a freelancer for a job.

    The chain's version is the optimistic lock every negotiation action
    writes through, and ``head`` always points at the newest revision.
    At most one chain per (job, client, freelancer) is open at a time.
    """

    job_id = models.PositiveBigIntegerField(db_index=True)
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='client_negotiations'
    )
    freelancer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='freelancer_negotiations'
    )

    root = models.ForeignKey(
        'proposals.Proposal',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+',
        help_text=_('First proposal of the chain')
    )
    head = models.ForeignKey(
        'proposals.Proposal',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+',
        help_text=_('Newest revision of the chain')
    )

    is_open = models.BooleanField(default=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _('Negotiation Chain')
        verbose_name_plural = _('Negotiation Chains')
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['job_id', 'client', 'freelancer'],
                condition=Q(is_open=True),
                name='proposals_one_open_chain_per_tuple',
            ),
        ]
        indexes = [
            models.Index(fields=['job_id', 'is_open'], name='proposals_chain_job_open_idx'),
        ]

    def __str__(self):
        return f"Chain #{self.pk} job={self.job_id} ({'open' if self.is_open else 'closed'})"


# ============================================================================
# PROPOSALS
# ============================================================================

class ProposalQuerySet(models.QuerySet):

    def for_user(self, user):
        return self.filter(Q(client=user) | Q(freelancer=user))

    def live(self):
        return self.filter(status__in=Proposal.LIVE_STATUSES)

    def heads(self):
        """Revisions that are the current head of an open chain."""
        return self.live().filter(chain__is_open=True, chain__head=models.F('pk'))


class Proposal(TimestampedModel):
    """
    One revision of an offer.

    The negotiation state is stored as ``status`` and read back through
    ``state``; the acceptance flags are derived from it, never stored.
    """

    class Status(models.TextChoices):
        SENT = 'sent', _('Sent')
        PENDING = 'pending', _('Pending Confirmation')
        ACCEPTED = 'accepted', _('Accepted')
        REJECTED = 'rejected', _('Rejected')
        CANCELLED = 'cancelled', _('Cancelled')
        WITHDRAWN = 'withdrawn', _('Withdrawn')
        SUPERSEDED = 'superseded', _('Superseded')

    class Origin(models.TextChoices):
        CHAT = 'chat', _('Chat')
        JOB_POST = 'job_post', _('Job Post')
        INVITE = 'invite', _('Invite')

    LIVE_STATUSES = (Status.SENT, Status.PENDING)
    TERMINAL_STATUSES = (
        Status.ACCEPTED,
        Status.REJECTED,
        Status.CANCELLED,
        Status.WITHDRAWN,
    )

    chain = models.ForeignKey(
        NegotiationChain,
        on_delete=models.PROTECT,
        related_name='proposals'
    )
    root = models.ForeignKey(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='revisions'
    )
    supersedes = models.OneToOneField(
        'self',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='superseded_by',
        help_text=_('Revision this proposal replaced')
    )

    job_id = models.PositiveBigIntegerField(db_index=True)
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='client_proposals'
    )
    freelancer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='freelancer_proposals'
    )
    offered_by = models.CharField(max_length=20, choices=PartyRole.choices)
    origin = models.CharField(
        max_length=20,
        choices=Origin.choices,
        default=Origin.CHAT
    )

    # Terms
    currency = models.CharField(max_length=3, default='EGP')
    total_gross = MoneyField()
    platform_fee_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('10.00'),
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    message = models.TextField(blank=True)

    # Negotiation state
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.SENT,
        db_index=True
    )
    decided_at = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)
    conversation_ref = models.CharField(max_length=255, blank=True, db_index=True)

    objects = ProposalQuerySet.as_manager()

    class Meta:
        verbose_name = _('Proposal')
        verbose_name_plural = _('Proposals')
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['job_id', 'client', 'freelancer'], name='proposals_job_parties_idx'),
            models.Index(fields=['status', 'valid_until'], name='proposals_status_valid_idx'),
        ]

    def __str__(self):
        return f"Proposal #{self.pk} job={self.job_id} {self.total_gross} {self.currency} ({self.status})"

    @property
    def state(self):
        """The negotiation state variant for the stored status."""
        return state_from_status(self.status, self.offered_by)

    @property
    def receiver(self):
        return counterpart(self.offered_by)

    @property
    def accepted_by_client(self):
        return PartyRole.CLIENT in self.state.accepted_by

    @property
    def accepted_by_freelancer(self):
        return PartyRole.FREELANCER in self.state.accepted_by

    @property
    def is_live(self):
        return is_live(self.state)

    @property
    def display_status(self):
        """'countered' for an open revision, otherwise the stored status."""
        if isinstance(self.state, Open) and self.supersedes_id:
            return 'countered'
        return self.status

    @property
    def awaiting_confirmation(self):
        return isinstance(self.state, AwaitingConfirmation)

    @property
    def total_net(self):
        return net_of_fee(self.total_gross, self.platform_fee_percent)

    def party_id(self, role):
        if role == PartyRole.CLIENT:
            return self.client_id
        return self.freelancer_id


class ProposalMilestone(models.Model):
    """A payable unit of work inside a proposal."""

    proposal = models.ForeignKey(
        Proposal,
        on_delete=models.CASCADE,
        related_name='milestones'
    )
    position = models.PositiveIntegerField()
    title = models.CharField(max_length=255)
    amount_gross = MoneyField(validators=[MinValueValidator(Decimal('0.01'))])
    duration_days = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = _('Proposal Milestone')
        verbose_name_plural = _('Proposal Milestones')
        ordering = ['proposal', 'position']
        constraints = [
            models.UniqueConstraint(
                fields=['proposal', 'position'],
                name='proposals_milestone_position_unique',
            ),
        ]

    def __str__(self):
        return f"{self.position}. {self.title} ({self.amount_gross})"
