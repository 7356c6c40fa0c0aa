"""
Auto-settlement of held escrow payments.

Runs periodically (milestones.tasks.auto_settle_milestones). For each
milestone whose escrow is still held:

- release when the milestone was approved on a submission made on time
  and its due time has passed;
- refund the client when the due time passed without an on-time
  submission, or when the client-confirm deadline passed after a
  submission that was never approved;
- otherwise leave it alone.

An approved milestone is never refunded.
"""

import logging
from datetime import datetime, time, timedelta, timezone as dt_timezone

from django.db import transaction
from django.utils import timezone

from core.db import retry_on_conflict
from core.exceptions import ConflictError
from integrations import hooks
from milestones.models import EscrowPayment, Milestone
from milestones.services import latest_submission

logger = logging.getLogger(__name__)

RELEASED = 'released'
REFUNDED = 'refunded'
SKIPPED = 'skipped'


def due_time(milestone: Milestone):
    """due_at, or the end of due_date when only the date is known."""
    if milestone.due_at:
        return milestone.due_at
    if milestone.due_date:
        return timezone.make_aware(
            datetime.combine(milestone.due_date, time.max),
            dt_timezone.utc,
        )
    return None


def confirm_deadline(milestone: Milestone, due_at):
    if milestone.client_confirm_deadline_at:
        return milestone.client_confirm_deadline_at
    if due_at:
        return due_at + timedelta(days=milestone.contract.client_confirm_grace_days)
    return None


def settlement_outcome(milestone: Milestone, now):
    """
    Decide what auto-settlement does with a held milestone.

    Returns an (outcome, reason) pair.
    """
    due_at = due_time(milestone)
    latest = latest_submission(milestone)
    submitted_at = latest.submitted_at if latest else milestone.submitted_at
    approved = bool(milestone.approved_at) or (
        latest is not None and latest.status == latest.Status.APPROVED
    )

    if submitted_at and due_at:
        submitted_on_time = submitted_at <= due_at
    else:
        submitted_on_time = bool(submitted_at)

    if approved:
        if submitted_on_time and (due_at is None or now >= due_at):
            return RELEASED, 'approved'
        return SKIPPED, ''

    overdue_without_submission = bool(due_at) and now >= due_at and not submitted_on_time
    deadline = confirm_deadline(milestone, due_at)
    confirm_expired = bool(deadline) and bool(submitted_at) and now >= deadline

    if overdue_without_submission:
        return REFUNDED, 'overdue without an on-time submission'
    if confirm_expired:
        return REFUNDED, 'client confirmation expired'
    return SKIPPED, ''


class AutoSettlementService:
    """Releases or refunds held escrow payments that are due."""

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def settle(escrow_id, now=None) -> str:
        now = now or timezone.now()
        escrow = (
            EscrowPayment.objects
            .select_related('milestone', 'milestone__contract')
            .get(pk=escrow_id)
        )
        if escrow.status != EscrowPayment.Status.HELD:
            return SKIPPED

        milestone = escrow.milestone
        outcome, reason = settlement_outcome(milestone, now)

        if outcome == RELEASED:
            if milestone.status != Milestone.Status.RELEASED:
                milestone.compare_and_swap(
                    status=Milestone.Status.RELEASED,
                    approved_at=milestone.approved_at or now,
                )
            side_effect = hooks.request_payment_release(milestone)
            hooks.redeliver(side_effect)
            logger.info(f"Auto-settle released milestone {milestone.pk}")

        elif outcome == REFUNDED:
            if milestone.status != Milestone.Status.REFUNDED:
                milestone.compare_and_swap(
                    status=Milestone.Status.REFUNDED,
                    rejected_at=milestone.rejected_at or now,
                )
            side_effect = hooks.request_payment_refund(milestone, reason=reason)
            hooks.redeliver(side_effect)
            logger.info(f"Auto-settle refunded milestone {milestone.pk} ({reason})")

        return outcome

    @staticmethod
    def run(now=None, limit=200) -> dict:
        """
        Settle up to ``limit`` held escrow payments.

        Returns counts of released, refunded and skipped payments.
        """
        now = now or timezone.now()
        escrow_ids = list(
            EscrowPayment.objects
            .filter(status=EscrowPayment.Status.HELD)
            .order_by('pk')
            .values_list('pk', flat=True)[:limit]
        )

        summary = {RELEASED: 0, REFUNDED: 0, SKIPPED: 0}
        for escrow_id in escrow_ids:
            try:
                outcome = AutoSettlementService.settle(escrow_id, now=now)
            except ConflictError as e:
                logger.warning(f"Auto-settle skipped escrow {escrow_id}: {e}")
                outcome = SKIPPED
            summary[outcome] += 1

        logger.info(
            f"Auto-settle run: {summary[RELEASED]} released, "
            f"{summary[REFUNDED]} refunded, {summary[SKIPPED]} skipped"
        )
        return summary
