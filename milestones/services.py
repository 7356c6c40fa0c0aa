"""
Milestones Services - the settlement workflow.

SettlementService governs each milestone after its contract is created:

- submit: the freelancer delivers work as a new, versioned submission
- approve: the client accepts the latest submission and the payment is
  released
- reject: the client sends the latest submission back; the freelancer may
  submit again
- decide: dispatcher used by the API

Concurrent actions on one milestone are serialized by the milestone's
version (compare-and-swap), retried transparently a few times.
"""

import logging
from typing import Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import URLValidator
from django.db import IntegrityError, transaction
from django.db.models import Max
from django.utils import timezone

from core.db import ConcurrentModificationError, retry_on_conflict
from core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from core.identity import Actor, PartyRole, assert_role
from integrations import hooks
from milestones.models import Milestone, MilestoneSubmission

logger = logging.getLogger(__name__)

DECISIONS = ('approve', 'reject')


def get_milestone(milestone_id) -> Milestone:
    try:
        return Milestone.objects.select_related('contract').get(pk=milestone_id)
    except (Milestone.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(
            f'Milestone {milestone_id} not found.',
            extra={'milestone_id': milestone_id},
        )


def latest_submission(milestone: Milestone) -> Optional[MilestoneSubmission]:
    """The milestone's latest submission, from its pointer when set."""
    if milestone.latest_submission_id:
        return milestone.latest_submission
    return MilestoneSubmission.objects.latest_for(milestone)


class SettlementService:
    """Service for milestone submission, review and release."""

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def submit(
        actor: Actor,
        milestone_id: int,
        url: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> MilestoneSubmission:
        """
        Record a new submission for review.

        Raises:
            AuthorizationError: The actor is not the contract's freelancer.
            ValidationError: Neither url nor notes given, or a bad url.
            StateError: The contract is not active or the milestone is
                closed for submissions.
        """
        milestone = get_milestone(milestone_id)
        contract = milestone.contract
        if actor.is_system:
            raise AuthorizationError('Only the freelancer can submit work.')
        assert_role(actor, PartyRole.FREELANCER, contract.client_id, contract.freelancer_id)

        url = (url or '').strip()
        notes = (notes or '').strip()
        if not url and not notes:
            raise ValidationError(
                'Provide a submission URL or notes.',
                errors={'url': ['Provide a submission URL or notes.']},
            )
        if url:
            try:
                URLValidator()(url)
            except DjangoValidationError:
                raise ValidationError('Enter a valid URL.', errors={'url': ['Enter a valid URL.']})

        if not contract.is_active:
            raise StateError(
                f'The contract is {contract.status}; no more submissions are accepted.',
                code='CONTRACT_NOT_ACTIVE',
            )
        if not milestone.accepts_submissions:
            raise StateError(
                f'Milestone is {milestone.status} and accepts no more submissions.',
                code='MILESTONE_CLOSED',
                extra={'status': milestone.status},
            )

        last_version = milestone.submissions.aggregate(v=Max('version'))['v'] or 0
        now = timezone.now()
        try:
            with transaction.atomic():
                submission = MilestoneSubmission.objects.create(
                    milestone=milestone,
                    version=last_version + 1,
                    submitted_by_id=actor.user_id,
                    submission_url=url,
                    notes=notes,
                    submitted_at=now,
                )
        except IntegrityError:
            raise ConcurrentModificationError(
                model_name='Milestone',
                object_id=milestone.pk,
                message=f'Milestone {milestone.pk} received a concurrent submission.',
            )

        milestone.compare_and_swap(
            status=Milestone.Status.SUBMITTED,
            submitted_at=now,
            latest_submission=submission,
        )

        logger.info(
            f"Milestone {milestone.pk} submission v{submission.version} by {actor}"
        )
        hooks.announce_submission(submission, contract)
        return submission

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def _decide(actor, milestone_id, submission_id, approve, reason=''):
        milestone = get_milestone(milestone_id)
        contract = milestone.contract
        assert_role(
            actor,
            PartyRole.CLIENT,
            contract.client_id,
            contract.freelancer_id,
            allow_staff=True,
        )

        try:
            submission = milestone.submissions.get(pk=submission_id)
        except (MilestoneSubmission.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(
                f'Submission {submission_id} not found for milestone {milestone.pk}.',
                extra={'milestone_id': milestone.pk, 'submission_id': submission_id},
            )

        latest = latest_submission(milestone)
        if latest is None or latest.pk != submission.pk:
            raise ConflictError(
                'A newer submission exists; review the latest one.',
                code='STALE_SUBMISSION',
                extra={'submission_id': submission.pk, 'latest_id': getattr(latest, 'pk', None)},
            )
        if submission.is_decided:
            raise StateError(
                f'Submission was already {submission.status}.',
                code='SUBMISSION_DECIDED',
            )
        if milestone.status != Milestone.Status.SUBMITTED:
            raise StateError(
                f'Milestone is {milestone.status}, not awaiting review.',
                code='MILESTONE_NOT_SUBMITTED',
            )

        now = timezone.now()
        if approve:
            milestone.compare_and_swap(
                status=Milestone.Status.RELEASED,
                approved_at=now,
                rejected_at=None,
            )
            new_status = MilestoneSubmission.Status.APPROVED
        else:
            milestone.compare_and_swap(
                status=Milestone.Status.REJECTED,
                rejected_at=now,
                approved_at=None,
            )
            new_status = MilestoneSubmission.Status.REJECTED

        decision = {
            'status': new_status,
            'decided_at': now,
            'decided_by_id': actor.user_id,
            'decision_reason': (reason or '').strip(),
        }
        updated = MilestoneSubmission.objects.filter(
            pk=submission.pk, status=MilestoneSubmission.Status.SUBMITTED
        ).update(**decision)
        if not updated:
            raise ConcurrentModificationError(
                model_name='MilestoneSubmission',
                object_id=submission.pk,
                message=f'Submission {submission.pk} was decided concurrently.',
            )
        for field, value in decision.items():
            setattr(submission, field, value)

        if approve:
            hooks.request_payment_release(milestone)
        hooks.announce_decision(submission, contract)

        logger.info(
            f"Milestone {milestone.pk} submission v{submission.version} {new_status} by {actor}"
        )
        return milestone

    @staticmethod
    def approve(actor: Actor, milestone_id: int, submission_id: int) -> Milestone:
        """
        Approve the latest submission; the milestone is released and its
        payment queued once the transaction commits.
        """
        return SettlementService._decide(actor, milestone_id, submission_id, approve=True)

    @staticmethod
    def reject(actor: Actor, milestone_id: int, submission_id: int, reason: Optional[str] = None) -> Milestone:
        """Reject the latest submission so the freelancer can submit again."""
        return SettlementService._decide(
            actor, milestone_id, submission_id, approve=False, reason=reason
        )

    @staticmethod
    def decide(
        milestone_id: int,
        actor: Actor,
        submission_id: int,
        decision: str,
        reason: Optional[str] = None,
    ) -> Milestone:
        """Dispatch approve | reject."""
        decision = str(decision or '').strip().lower()
        if decision not in DECISIONS:
            raise ValidationError(
                "decision must be 'approve' or 'reject'.",
                errors={'decision': ['Unknown decision.']},
            )
        if decision == 'approve':
            return SettlementService.approve(actor, milestone_id, submission_id)
        return SettlementService.reject(actor, milestone_id, submission_id, reason)
