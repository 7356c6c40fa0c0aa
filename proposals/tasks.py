"""
Proposals Celery Tasks

- expire_stale_proposals: hourly cancellation of offers past valid_until
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(name='proposals.tasks.expire_stale_proposals')
def expire_stale_proposals():
    """System-cancel open offers whose valid_until has passed."""
    from .services import NegotiationService

    expired = NegotiationService.expire_stale()
    return {'expired': expired}
