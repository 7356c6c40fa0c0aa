"""
Milestones Celery Tasks

- auto_settle_milestones: hourly release/refund of held escrow payments
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(name='milestones.tasks.auto_settle_milestones')
def auto_settle_milestones(limit=200):
    """
    Release or refund held escrow payments that are due.

    Runs hourly via Celery Beat.
    """
    from .settlement import AutoSettlementService

    return AutoSettlementService.run(limit=limit)
