"""
Integrations Models - side-effect outbox.

This module implements:
- SideEffect: one queued call to an external collaborator (payment hook,
  email, chat transport), written in the same transaction as the state
  change that caused it and delivered after commit, with retry tracking.
"""

from datetime import timedelta

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class SideEffect(models.Model):
    """
    Outbox row for a side effect of a committed engine transition.

    ``dedupe_key`` identifies the effect for its triggering entity, for
    example ``payment_release:milestone:42``; enqueueing the same key
    twice yields the same row.
    """

    class Kind(models.TextChoices):
        PAYMENT_RELEASE = 'payment_release', _('Payment Release')
        PAYMENT_REFUND = 'payment_refund', _('Payment Refund')
        NOTIFICATION = 'notification', _('Notification')
        CHAT_MESSAGE = 'chat_message', _('Chat Message')

    class Status(models.TextChoices):
        PENDING = 'pending', _('Pending')
        DELIVERED = 'delivered', _('Delivered')
        RETRYING = 'retrying', _('Retrying')
        FAILED = 'failed', _('Failed')

    kind = models.CharField(max_length=30, choices=Kind.choices, db_index=True)
    event = models.CharField(max_length=100, blank=True)
    entity_type = models.CharField(max_length=50)
    entity_id = models.PositiveBigIntegerField()
    dedupe_key = models.CharField(max_length=255, unique=True)
    payload = models.JSONField(default=dict, blank=True)

    # Delivery state
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    retry_count = models.PositiveIntegerField(default=0)
    max_retries = models.PositiveIntegerField(default=5)
    next_retry_at = models.DateTimeField(null=True, blank=True)
    last_error = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _('Side Effect')
        verbose_name_plural = _('Side Effects')
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['status', 'next_retry_at'], name='side_effect_retry_idx'),
            models.Index(fields=['entity_type', 'entity_id'], name='side_effect_entity_idx'),
        ]

    def __str__(self):
        return f"{self.kind} {self.dedupe_key} ({self.status})"

    @property
    def can_retry(self):
        """Check if delivery can be retried."""
        return self.retry_count < self.max_retries

    @property
    def is_delivered(self):
        return self.status == self.Status.DELIVERED

    def mark_delivered(self):
        self.status = self.Status.DELIVERED
        self.delivered_at = timezone.now()
        self.next_retry_at = None
        self.last_error = ''
        self.save(update_fields=['status', 'delivered_at', 'next_retry_at', 'last_error'])

    def mark_failed(self, message, schedule_retry=True):
        """Mark delivery as failed, scheduling a retry while the budget lasts."""
        self.status = self.Status.FAILED
        self.last_error = message[:2000]
        self.retry_count += 1
        self.next_retry_at = None

        if schedule_retry and self.can_retry:
            # Exponential backoff: 1, 2, 4, 8, 16 minutes
            backoff_minutes = 2 ** (self.retry_count - 1)
            self.next_retry_at = timezone.now() + timedelta(minutes=backoff_minutes)
            self.status = self.Status.RETRYING

        self.save(update_fields=['status', 'last_error', 'retry_count', 'next_retry_at'])
