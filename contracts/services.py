"""
Contracts Services - the Contract Materializer.

ContractMaterializer turns an accepted proposal into a Contract, its
ordered Milestones and one held escrow payment per milestone. It runs
inside the confirming transaction and is idempotent per proposal: a
second call returns the contract that already exists.

If the milestone batch fails, the contract is kept and the batch is
rebuilt later by sync() through the sync_contract_milestones task.
"""

import logging
from datetime import timedelta
from typing import List, Optional

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from contracts.locks import LockCoordinator
from contracts.models import Contract
from core.exceptions import NotFoundError, StateError
from core.identity import Actor, assert_party
from integrations import hooks
from milestones.models import EscrowPayment, Milestone

logger = logging.getLogger(__name__)


def _build_milestones(contract: Contract) -> List[Milestone]:
    """
    Create the contract's milestones from its source proposal.

    due_at is the contract's creation time plus the running sum of
    duration_days in position order.
    """
    source = contract.proposal.milestones.order_by('position')
    grace = timedelta(days=contract.client_confirm_grace_days)
    now = timezone.now()

    elapsed_days = 0
    milestones = []
    for item in source:
        elapsed_days += item.duration_days
        due_at = contract.created_at + timedelta(days=elapsed_days)
        milestone = Milestone.objects.create(
            contract=contract,
            position=item.position,
            title=item.title,
            amount_gross=item.amount_gross,
            status=Milestone.Status.PENDING,
            due_at=due_at,
            due_date=due_at.date(),
            client_confirm_deadline_at=due_at + grace,
        )
        EscrowPayment.objects.create(
            milestone=milestone,
            contract=contract,
            amount=milestone.amount_gross,
            currency=contract.currency,
            status=EscrowPayment.Status.HELD,
            captured_at=now,
        )
        milestones.append(milestone)
    return milestones


class ContractMaterializer:
    """Creates contracts from accepted proposals, exactly once."""

    @staticmethod
    @transaction.atomic
    def materialize(proposal) -> Contract:
        """
        Return the contract for ``proposal``, creating it if needed.

        Raises:
            StateError: The proposal is not accepted, or another contract
                already locks its job ("job locked").
        """
        existing = Contract.objects.filter(proposal=proposal).first()
        if existing is not None:
            return existing

        if proposal.status != proposal.Status.ACCEPTED:
            raise StateError(
                'Only an accepted proposal can become a contract.',
                code='PROPOSAL_NOT_ACCEPTED',
                extra={'proposal_id': proposal.pk, 'status': proposal.status},
            )

        now = timezone.now()
        try:
            with transaction.atomic():
                contract = Contract.objects.create(
                    proposal=proposal,
                    job_id=proposal.job_id,
                    client_id=proposal.client_id,
                    freelancer_id=proposal.freelancer_id,
                    status=Contract.Status.ACTIVE,
                    currency=proposal.currency,
                    fees_total=proposal.total_gross,
                    platform_fee_percent=proposal.platform_fee_percent,
                    confirmed_at=now,
                    client_confirm_grace_days=settings.NETWORKK_CLIENT_CONFIRM_GRACE_DAYS,
                    created_at=now,
                )
        except IntegrityError:
            existing = Contract.objects.filter(proposal=proposal).first()
            if existing is not None:
                return existing
            logger.warning(
                f"Proposal {proposal.pk} lost the race for job {proposal.job_id}: job already locked"
            )
            raise StateError('job locked', code='JOB_LOCKED', extra={'job_id': proposal.job_id})

        LockCoordinator.lock_job(contract)

        try:
            with transaction.atomic():
                milestones = _build_milestones(contract)
        except DatabaseError as e:
            logger.exception(
                f"Milestone batch failed for contract {contract.pk}; queued for sync: {e}"
            )
            from contracts.tasks import sync_contract_milestones
            transaction.on_commit(lambda: sync_contract_milestones.delay(contract.pk))
            milestones = []

        logger.info(
            f"Contract {contract.pk} created from proposal {proposal.pk} "
            f"(job {contract.job_id}, {len(milestones)} milestones, "
            f"{contract.fees_total} {contract.currency})"
        )
        hooks.announce_contract(contract)
        return contract

    @staticmethod
    @transaction.atomic
    def sync(contract_id, actor: Optional[Actor] = None) -> List[Milestone]:
        """
        Rebuild a contract's milestones from its source proposal.

        No-op when the contract already has milestones.

        Raises:
            NotFoundError: Unknown contract.
            AuthorizationError: ``actor`` is not a party (or staff).
            StateError: The source proposal has no milestones.
        """
        try:
            contract = Contract.objects.select_related('proposal').get(pk=contract_id)
        except (Contract.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(
                f'Contract {contract_id} not found.',
                extra={'contract_id': contract_id},
            )
        if actor is not None:
            assert_party(actor, contract.client_id, contract.freelancer_id, allow_staff=True)

        existing = list(contract.milestones.order_by('position'))
        if existing:
            return existing

        if not contract.proposal.milestones.exists():
            raise StateError(
                'The source proposal has no milestones.',
                code='NO_SOURCE_MILESTONES',
                extra={'contract_id': contract.pk},
            )

        try:
            with transaction.atomic():
                milestones = _build_milestones(contract)
        except IntegrityError:
            # A concurrent sync created them first.
            return list(contract.milestones.order_by('position'))

        logger.info(f"Synced {len(milestones)} milestones for contract {contract.pk}")
        return milestones


def contract_for_job(job_id) -> Optional[Contract]:
    """The contract currently locking ``job_id``, if any."""
    return Contract.objects.locking().filter(job_id=job_id).first()
