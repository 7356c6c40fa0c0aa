"""
Tests for the Contract Materializer and the Lock Coordinator.
"""

from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import DatabaseError

from conftest import ProposalFactory, UserFactory
from contracts.locks import LockCoordinator
from contracts.models import Contract
from contracts.services import ContractMaterializer, contract_for_job
from contracts.tasks import sync_contract_milestones
from core.exceptions import AuthorizationError, NotFoundError, StateError
from core.identity import Actor
from milestones.models import EscrowPayment, Milestone
from proposals.models import Proposal
from proposals.services import NegotiationService


@pytest.mark.django_db
class TestContractMaterializer:

    def test_snapshot_of_accepted_terms(self, contract, proposal):
        assert contract.proposal_id == proposal.pk
        assert contract.client_id == proposal.client_id
        assert contract.freelancer_id == proposal.freelancer_id
        assert contract.currency == 'EGP'
        assert contract.fees_total == Decimal('5000.00')
        assert contract.platform_fee_percent == Decimal('10.00')
        assert contract.total_net == Decimal('4500.00')
        assert contract.confirmed_at is not None

    def test_one_held_escrow_per_milestone(self, contract):
        escrows = EscrowPayment.objects.filter(contract=contract).order_by('milestone__position')
        assert [e.amount for e in escrows] == [Decimal('2000.00'), Decimal('3000.00')]
        assert {e.status for e in escrows} == {EscrowPayment.Status.HELD}

    def test_idempotent(self, contract, proposal):
        proposal.refresh_from_db()
        again = ContractMaterializer.materialize(proposal)

        assert again.pk == contract.pk
        assert Contract.objects.count() == 1
        assert Milestone.objects.filter(contract=contract).count() == 2

    def test_requires_accepted_proposal(self, proposal):
        with pytest.raises(StateError) as exc_info:
            ContractMaterializer.materialize(proposal)
        assert exc_info.value.code == 'PROPOSAL_NOT_ACCEPTED'

    def test_second_contract_for_job_is_refused(self, contract, client_user):
        """The unique constraint on locking contracts is the last guard."""
        rival = ProposalFactory(client=client_user, freelancer=UserFactory(), job_id=43)
        Proposal.objects.filter(pk=rival.pk).update(status=Proposal.Status.ACCEPTED, job_id=42)
        rival.refresh_from_db()

        with pytest.raises(StateError) as exc_info:
            ContractMaterializer.materialize(rival)
        assert exc_info.value.message == 'job locked'
        assert Contract.objects.filter(job_id=42).count() == 1

    def test_announces_contract_to_both_parties(self, contract, client_user, freelancer_user):
        from integrations.models import SideEffect

        recipients = {
            side_effect.payload['recipient_id']
            for side_effect in SideEffect.objects.filter(event='contract_started')
        }
        assert recipients == {client_user.pk, freelancer_user.pk}


@pytest.mark.django_db
class TestMilestoneSync:

    def _accept_without_milestones(self, proposal, client_actor, freelancer_actor):
        NegotiationService.accept(freelancer_actor, proposal.pk)
        with patch('contracts.services._build_milestones', side_effect=DatabaseError('disk full')):
            NegotiationService.confirm(client_actor, proposal.pk)
        return Contract.objects.get(proposal=proposal)

    def test_contract_survives_failed_milestone_batch(
        self, proposal, client_actor, freelancer_actor, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks() as callbacks:
            contract = self._accept_without_milestones(proposal, client_actor, freelancer_actor)

        assert contract.status == Contract.Status.ACTIVE
        assert not contract.milestones.exists()

        # The repair task is queued for after commit.
        for callback in callbacks:
            callback()
        assert contract.milestones.count() == 2

    def test_sync_rebuilds_milestones(self, proposal, client_actor, freelancer_actor):
        contract = self._accept_without_milestones(proposal, client_actor, freelancer_actor)

        milestones = ContractMaterializer.sync(contract.pk, actor=client_actor)

        assert [m.position for m in milestones] == [1, 2]
        assert [m.title for m in milestones] == ['Design', 'Build']
        assert EscrowPayment.objects.filter(contract=contract).count() == 2

    def test_sync_is_noop_with_milestones(self, contract, client_actor):
        before = list(contract.milestones.order_by('position'))
        after = ContractMaterializer.sync(contract.pk, actor=client_actor)

        assert after == before
        assert Milestone.objects.count() == 2

    def test_sync_requires_party_or_staff(self, contract, staff_user):
        with pytest.raises(AuthorizationError):
            ContractMaterializer.sync(contract.pk, actor=Actor.client(UserFactory()))

        staff = Actor(user_id=staff_user.pk, role='client', is_staff=True)
        assert len(ContractMaterializer.sync(contract.pk, actor=staff)) == 2

    def test_sync_unknown_contract(self):
        with pytest.raises(NotFoundError):
            ContractMaterializer.sync(424242)

    def test_task_reports_errors(self, db):
        result = sync_contract_milestones(424242)
        assert result['status'] == 'error'

    def test_task_success(self, contract):
        result = sync_contract_milestones(contract.pk)
        assert result == {'status': 'success', 'contract_id': contract.pk, 'milestones': 2}


@pytest.mark.django_db
class TestLockCoordinator:

    def test_is_locked(self, contract):
        assert LockCoordinator.is_locked(42)
        assert not LockCoordinator.is_locked(43)
        assert contract_for_job(42) == contract
        assert contract_for_job(43) is None

    def test_disputed_contract_still_locks(self, contract):
        Contract.objects.filter(pk=contract.pk).update(status=Contract.Status.DISPUTED)

        with pytest.raises(StateError) as exc_info:
            LockCoordinator.assert_unlocked(42)
        assert exc_info.value.extra == {'job_id': 42}

    def test_lock_job_counts_closed_chains(self, proposal, client_user, client_actor, freelancer_actor):
        rivals = [
            ProposalFactory(client=client_user, freelancer=UserFactory(), job_id=42)
            for _ in range(2)
        ]
        NegotiationService.accept(freelancer_actor, proposal.pk)
        NegotiationService.confirm(client_actor, proposal.pk)

        for rival in rivals:
            rival.refresh_from_db()
            assert rival.status == Proposal.Status.CANCELLED
            assert rival.decided_at is not None
        # Nothing left to close.
        assert LockCoordinator.lock_job(Contract.objects.get(proposal=proposal)) == 0
