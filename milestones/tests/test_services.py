"""
Tests for the milestone settlement workflow.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from conftest import UserFactory
from contracts.models import Contract
from core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from core.identity import Actor
from integrations.models import SideEffect
from milestones.models import Milestone, MilestoneSubmission
from milestones.services import SettlementService, latest_submission


@pytest.fixture
def milestone(contract):
    return contract.milestones.get(position=1)


@pytest.mark.django_db
class TestSubmit:

    def test_first_submission(self, milestone, freelancer_actor, freelancer_user):
        submission = SettlementService.submit(
            freelancer_actor, milestone.pk, url='https://example.com/design.fig', notes='v1'
        )
        milestone.refresh_from_db()

        assert submission.version == 1
        assert submission.status == MilestoneSubmission.Status.SUBMITTED
        assert submission.submitted_by_id == freelancer_user.pk
        assert milestone.status == Milestone.Status.SUBMITTED
        assert milestone.submitted_at == submission.submitted_at
        assert milestone.latest_submission_id == submission.pk
        assert milestone.version == 2

    def test_notes_only(self, milestone, freelancer_actor):
        submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='See the repo')
        assert submission.submission_url == ''

    def test_requires_url_or_notes(self, milestone, freelancer_actor):
        with pytest.raises(ValidationError):
            SettlementService.submit(freelancer_actor, milestone.pk, url='  ', notes='')

    def test_rejects_bad_url(self, milestone, freelancer_actor):
        with pytest.raises(ValidationError) as exc_info:
            SettlementService.submit(freelancer_actor, milestone.pk, url='not a url')
        assert 'url' in exc_info.value.errors

    def test_only_freelancer_submits(self, milestone, client_actor):
        with pytest.raises(AuthorizationError):
            SettlementService.submit(client_actor, milestone.pk, notes='done')

    def test_other_freelancer_cannot_submit(self, milestone):
        with pytest.raises(AuthorizationError):
            SettlementService.submit(Actor.freelancer(UserFactory()), milestone.pk, notes='done')

    def test_unknown_milestone(self, freelancer_actor, db):
        with pytest.raises(NotFoundError):
            SettlementService.submit(freelancer_actor, 999999, notes='done')

    def test_inactive_contract(self, milestone, contract, freelancer_actor):
        Contract.objects.filter(pk=contract.pk).update(status=Contract.Status.COMPLETED)

        with pytest.raises(StateError) as exc_info:
            SettlementService.submit(freelancer_actor, milestone.pk, notes='done')
        assert exc_info.value.code == 'CONTRACT_NOT_ACTIVE'

    def test_released_milestone_is_closed(self, milestone, freelancer_actor, client_actor):
        submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='done')
        SettlementService.approve(client_actor, milestone.pk, submission.pk)

        with pytest.raises(StateError) as exc_info:
            SettlementService.submit(freelancer_actor, milestone.pk, notes='one more')
        assert exc_info.value.code == 'MILESTONE_CLOSED'

    def test_notifies_client(self, milestone, freelancer_actor, client_user):
        submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='done')

        notification = SideEffect.objects.get(event='milestone_submitted')
        assert notification.entity_id == submission.pk
        assert notification.payload['recipient_id'] == client_user.pk


@pytest.mark.django_db
class TestLatestSubmission:

    def test_version_breaks_timestamp_tie(self, milestone, freelancer_user):
        """Two submissions at the same instant resolve to the higher version."""
        instant = timezone.now()
        MilestoneSubmission.objects.create(
            milestone=milestone, version=2, submitted_by=freelancer_user,
            notes='second', submitted_at=instant,
        )
        MilestoneSubmission.objects.create(
            milestone=milestone, version=1, submitted_by=freelancer_user,
            notes='first', submitted_at=instant,
        )

        assert MilestoneSubmission.objects.latest_for(milestone).version == 2
        assert latest_submission(milestone).version == 2

    def test_version_wins_over_skewed_clock(self, milestone, freelancer_user):
        now = timezone.now()
        MilestoneSubmission.objects.create(
            milestone=milestone, version=1, submitted_by=freelancer_user,
            notes='late clock', submitted_at=now + timedelta(seconds=5),
        )
        MilestoneSubmission.objects.create(
            milestone=milestone, version=2, submitted_by=freelancer_user,
            notes='early clock', submitted_at=now,
        )

        assert MilestoneSubmission.objects.latest_for(milestone).version == 2

    def test_resubmission_after_skewed_rejection_can_be_approved(
        self, milestone, client_actor, freelancer_actor
    ):
        """v1 stamped by a fast clock must not shadow v2 after rejection."""
        first = SettlementService.submit(freelancer_actor, milestone.pk, notes='v1')
        MilestoneSubmission.objects.filter(pk=first.pk).update(
            submitted_at=timezone.now() + timedelta(minutes=5)
        )
        SettlementService.reject(client_actor, milestone.pk, first.pk, reason='Missing files')

        second = SettlementService.submit(freelancer_actor, milestone.pk, notes='v2')
        milestone.refresh_from_db()
        assert milestone.latest_submission_id == second.pk
        assert milestone.status == Milestone.Status.SUBMITTED

        result = SettlementService.approve(client_actor, milestone.pk, second.pk)

        assert result.status == Milestone.Status.RELEASED
        second.refresh_from_db()
        assert second.status == MilestoneSubmission.Status.APPROVED

    def test_pointer_is_used_when_set(self, milestone, freelancer_actor):
        submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='done')
        milestone.refresh_from_db()

        assert latest_submission(milestone) == submission


@pytest.mark.django_db
@pytest.mark.workflow
class TestDecide:

    def test_approve_releases(self, milestone, freelancer_actor, client_actor, client_user):
        submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='done')
        result = SettlementService.approve(client_actor, milestone.pk, submission.pk)

        submission.refresh_from_db()
        assert result.status == Milestone.Status.RELEASED
        assert result.approved_at is not None
        assert result.rejected_at is None
        assert submission.status == MilestoneSubmission.Status.APPROVED
        assert submission.decided_by_id == client_user.pk
        assert submission.decided_at is not None

    def test_approve_queues_one_payment_release(self, milestone, freelancer_actor, client_actor):
        submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='done')
        SettlementService.approve(client_actor, milestone.pk, submission.pk)

        releases = SideEffect.objects.filter(kind=SideEffect.Kind.PAYMENT_RELEASE)
        assert releases.count() == 1
        assert releases.get().dedupe_key == f'payment_release:milestone:{milestone.pk}'

    def test_reject_then_resubmit_and_approve(self, milestone, freelancer_actor, client_actor):
        """Each resubmission strictly increments the version."""
        first = SettlementService.submit(freelancer_actor, milestone.pk, notes='v1')
        rejected = SettlementService.reject(client_actor, milestone.pk, first.pk, reason='Wrong colours')

        assert rejected.status == Milestone.Status.REJECTED
        assert rejected.rejected_at is not None
        assert rejected.approved_at is None
        first.refresh_from_db()
        assert first.decision_reason == 'Wrong colours'

        second = SettlementService.submit(freelancer_actor, milestone.pk, notes='v2')
        assert second.version == first.version + 1

        released = SettlementService.approve(client_actor, milestone.pk, second.pk)
        assert released.status == Milestone.Status.RELEASED
        assert released.rejected_at is None

    def test_stale_submission_conflicts(self, milestone, freelancer_actor, client_actor):
        first = SettlementService.submit(freelancer_actor, milestone.pk, notes='v1')
        SettlementService.submit(freelancer_actor, milestone.pk, notes='v2')

        with pytest.raises(ConflictError) as exc_info:
            SettlementService.approve(client_actor, milestone.pk, first.pk)
        assert exc_info.value.code == 'STALE_SUBMISSION'

    def test_decided_submission(self, milestone, freelancer_actor, client_actor):
        submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='v1')
        SettlementService.reject(client_actor, milestone.pk, submission.pk)

        with pytest.raises(StateError) as exc_info:
            SettlementService.approve(client_actor, milestone.pk, submission.pk)
        assert exc_info.value.code == 'SUBMISSION_DECIDED'

    def test_freelancer_cannot_approve(self, milestone, freelancer_actor):
        submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='v1')

        with pytest.raises(AuthorizationError):
            SettlementService.approve(freelancer_actor, milestone.pk, submission.pk)

    def test_staff_can_decide(self, milestone, freelancer_actor, staff_user):
        submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='v1')
        staff = Actor(user_id=staff_user.pk, role='client', is_staff=True)

        assert SettlementService.reject(staff, milestone.pk, submission.pk).status == Milestone.Status.REJECTED

    def test_submission_of_other_milestone(self, contract, freelancer_actor, client_actor):
        first, second = contract.milestones.order_by('position')
        submission = SettlementService.submit(freelancer_actor, first.pk, notes='v1')

        with pytest.raises(NotFoundError):
            SettlementService.approve(client_actor, second.pk, submission.pk)

    def test_decide_dispatch(self, milestone, freelancer_actor, client_actor):
        submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='v1')

        with pytest.raises(ValidationError):
            SettlementService.decide(milestone.pk, client_actor, submission.pk, 'maybe')

        result = SettlementService.decide(milestone.pk, client_actor, submission.pk, 'APPROVE')
        assert result.status == Milestone.Status.RELEASED

    def test_decision_notifies_freelancer(self, milestone, freelancer_actor, client_actor, freelancer_user):
        submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='v1')
        SettlementService.reject(client_actor, milestone.pk, submission.pk, reason='Try again')

        notification = SideEffect.objects.get(event='milestone_rejected')
        assert notification.payload['recipient_id'] == freelancer_user.pk
        assert notification.payload['context']['reason'] == 'Try again'
