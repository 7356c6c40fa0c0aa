"""
Lock Coordinator - at most one live contract per job.

Once a job has a contract in a locking status, no new offers may be made
on it, and every other open negotiation for that job is force-cancelled
when the contract is created. The conditional unique constraint on
Contract.job_id is the final guard if two confirmations race anyway.
"""

import logging

from django.utils import timezone

from contracts.models import Contract
from core.db import ConcurrentModificationError
from core.exceptions import StateError
from proposals.models import NegotiationChain, Proposal
from proposals.negotiation import Action, transition

logger = logging.getLogger(__name__)


class LockCoordinator:
    """Job-level locking for the negotiation engine."""

    @staticmethod
    def is_locked(job_id) -> bool:
        return Contract.objects.locking().filter(job_id=job_id).exists()

    @staticmethod
    def assert_unlocked(job_id) -> None:
        """
        Raises:
            StateError: If the job already has a live contract.
        """
        if LockCoordinator.is_locked(job_id):
            raise StateError('job locked', code='JOB_LOCKED', extra={'job_id': job_id})

    @staticmethod
    def lock_job(contract: Contract) -> int:
        """
        Cancel every other open negotiation for the contract's job.

        Runs inside the transaction that creates the contract. Returns
        the number of chains closed.
        """
        now = timezone.now()
        chains = (
            NegotiationChain.objects
            .select_related('head')
            .filter(job_id=contract.job_id, is_open=True)
            .exclude(pk=contract.proposal.chain_id)
        )

        closed = 0
        for chain in chains:
            head = chain.head
            chain.compare_and_swap(is_open=False, closed_at=now)
            if head is None:
                continue
            new_state = transition(head.state, Action.CANCEL, None)
            updated = Proposal.objects.filter(pk=head.pk, status=head.status).update(
                status=new_state.status,
                decided_at=now,
                updated_at=now,
            )
            if not updated:
                raise ConcurrentModificationError(
                    model_name='Proposal',
                    object_id=head.pk,
                    message=f'Proposal {head.pk} changed status while locking job {contract.job_id}.',
                )
            closed += 1
            logger.info(
                f"Cancelled proposal {head.pk} (chain {chain.pk}): job {contract.job_id} "
                f"locked by contract {contract.pk}"
            )

        return closed
