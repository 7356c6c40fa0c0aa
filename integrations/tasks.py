"""
Integrations Celery Tasks

- deliver_side_effect: deliver one queued side effect after commit
- reconcile_side_effects: periodic retry of pending or failed side effects
"""

import logging
from datetime import timedelta

from celery import shared_task
from django.db.models import Q
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task(name='integrations.tasks.deliver_side_effect')
def deliver_side_effect(side_effect_id):
    """
    Deliver a side effect queued by integrations.hooks.enqueue.

    Failures are recorded on the row and left to the reconciler.
    """
    from .hooks import deliver
    from .models import SideEffect

    try:
        side_effect = SideEffect.objects.get(pk=side_effect_id)
    except SideEffect.DoesNotExist:
        logger.error(f"Side effect not found: {side_effect_id}")
        return False

    return deliver(side_effect)


@shared_task(name='integrations.tasks.reconcile_side_effects')
def reconcile_side_effects(batch_size=100):
    """
    Retry side effects whose delivery never happened or failed.

    Picks rows that are due for retry, plus pending rows older than a
    minute whose after-commit dispatch was lost (worker restart, broker
    outage). Runs every 5 minutes via Celery Beat.
    """
    from .hooks import deliver
    from .models import SideEffect

    now = timezone.now()
    due = SideEffect.objects.filter(
        Q(status=SideEffect.Status.RETRYING, next_retry_at__lte=now) |
        Q(status=SideEffect.Status.PENDING, created_at__lte=now - timedelta(minutes=1))
    ).order_by('created_at')[:batch_size]

    delivered = failed = 0
    for side_effect in due:
        if deliver(side_effect):
            delivered += 1
        else:
            failed += 1

    if delivered or failed:
        logger.info(f"Reconciled side effects: {delivered} delivered, {failed} failed")
    return {'delivered': delivered, 'failed': failed}
