"""
Contracts Celery Tasks.

- sync_contract_milestones: rebuild a contract's milestone batch
"""

import logging

from celery import shared_task
from django.db import DatabaseError

from core.exceptions import NotFoundError, StateError

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    name='contracts.tasks.sync_contract_milestones',
    max_retries=5,
    default_retry_delay=60,
)
def sync_contract_milestones(self, contract_id):
    """
    Repair a contract created without its milestones.

    Idempotent; retried when the database is unavailable.
    """
    from contracts.services import ContractMaterializer

    try:
        milestones = ContractMaterializer.sync(contract_id)
    except (NotFoundError, StateError) as e:
        logger.error(f"Cannot sync milestones for contract {contract_id}: {e}")
        return {'status': 'error', 'contract_id': contract_id, 'error': str(e)}
    except DatabaseError as e:
        logger.warning(f"Milestone sync for contract {contract_id} failed, retrying: {e}")
        raise self.retry(exc=e)

    return {'status': 'success', 'contract_id': contract_id, 'milestones': len(milestones)}
