"""
Contracts Models - binding agreements created from accepted proposals.

A Contract snapshots the accepted proposal's total, currency and fee at
creation. Its milestones live in the milestones app.
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from core.db import MoneyField, TimestampedModel, net_of_fee


class ContractQuerySet(models.QuerySet):

    def for_user(self, user):
        return self.filter(Q(client=user) | Q(freelancer=user))

    def locking(self):
        return self.filter(status__in=Contract.LOCKING_STATUSES)


class Contract(TimestampedModel):
    """
    Binding agreement between a client and a freelancer for one job.

    Created by ContractMaterializer when a proposal reaches 'accepted'.
    Status may later move to completed or disputed through collaborators
    outside this engine; all three statuses keep the job locked.
    """

    class Status(models.TextChoices):
        ACTIVE = 'active', _('Active')
        COMPLETED = 'completed', _('Completed')
        DISPUTED = 'disputed', _('Disputed')

    LOCKING_STATUSES = (Status.ACTIVE, Status.COMPLETED, Status.DISPUTED)

    proposal = models.OneToOneField(
        'proposals.Proposal',
        on_delete=models.PROTECT,
        related_name='contract'
    )
    job_id = models.PositiveBigIntegerField(db_index=True)
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='client_contracts'
    )
    freelancer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='freelancer_contracts'
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True
    )

    # Snapshot of the accepted terms
    currency = models.CharField(max_length=3)
    fees_total = MoneyField(help_text=_('Gross contract value at creation'))
    platform_fee_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('10.00')
    )

    confirmed_at = models.DateTimeField(null=True, blank=True)
    client_confirm_grace_days = models.PositiveSmallIntegerField(
        default=3,
        help_text=_('Days after a milestone is due for the client to review it')
    )

    objects = ContractQuerySet.as_manager()

    class Meta:
        verbose_name = _('Contract')
        verbose_name_plural = _('Contracts')
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['job_id'],
                condition=Q(status__in=['active', 'completed', 'disputed']),
                name='contracts_one_locking_contract_per_job',
            ),
        ]
        indexes = [
            models.Index(fields=['client', 'status'], name='contracts_client_status_idx'),
            models.Index(fields=['freelancer', 'status'], name='contracts_freel_status_idx'),
        ]

    def __str__(self):
        return f"Contract #{self.pk} job={self.job_id} {self.fees_total} {self.currency} ({self.status})"

    @property
    def total_net(self):
        return net_of_fee(self.fees_total, self.platform_fee_percent)

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE
