"""
Side-effect hooks.

Engine services call these functions inside their own transaction. Each
one writes a SideEffect outbox row (deduplicated by key) and schedules its
delivery for after the transaction commits, so a failing email, chat
transport or payment processor can never roll back the transition that
caused it. Failed deliveries are picked up by reconcile_side_effects.
"""

import logging

from django.conf import settings
from django.db import transaction

from core.identity import PartyRole, counterpart
from integrations.models import SideEffect

logger = logging.getLogger(__name__)

# Which party hears about each proposal event: the one receiving the
# offer, or the one who made it.
PROPOSAL_EVENT_AUDIENCE = {
    'proposal_received': 'receiver',
    'counter_received': 'receiver',
    'proposal_accepted': 'offerer',
    'proposal_rejected': 'offerer',
    'proposal_withdrawn': 'receiver',
    'proposal_cancelled': 'both',
}


# =============================================================================
# OUTBOX
# =============================================================================

def enqueue(kind, entity_type, entity_id, dedupe_key=None, event='', payload=None) -> SideEffect:
    """
    Queue a side effect, once per ``dedupe_key``.

    Must be called inside the transaction of the triggering change.
    """
    dedupe_key = dedupe_key or f"{kind}:{entity_type}:{entity_id}"
    side_effect, created = SideEffect.objects.get_or_create(
        dedupe_key=dedupe_key,
        defaults={
            'kind': kind,
            'event': event,
            'entity_type': entity_type,
            'entity_id': entity_id,
            'payload': payload or {},
            'max_retries': getattr(settings, 'NETWORKK_SIDE_EFFECT_MAX_RETRIES', 5),
        },
    )
    if created:
        from integrations.tasks import deliver_side_effect
        side_effect_id = side_effect.pk
        transaction.on_commit(lambda: deliver_side_effect.delay(side_effect_id))
        logger.debug(f"Queued side effect {dedupe_key}")
    return side_effect


def _handlers():
    from integrations import notifications, payments

    return {
        SideEffect.Kind.PAYMENT_RELEASE: payments.release_milestone,
        SideEffect.Kind.PAYMENT_REFUND: payments.refund_milestone,
        SideEffect.Kind.NOTIFICATION: notifications.send_notification,
        SideEffect.Kind.CHAT_MESSAGE: notifications.post_chat_message,
    }


def deliver(side_effect: SideEffect) -> bool:
    """
    Run a side effect's handler and record the outcome.

    Never raises: a failure is logged and the row is scheduled for retry
    with exponential backoff until its retry budget is spent.
    """
    if side_effect.is_delivered:
        return True

    handler = _handlers().get(side_effect.kind)
    if handler is None:
        side_effect.mark_failed(
            f"No handler for side effect kind '{side_effect.kind}'", schedule_retry=False
        )
        logger.error(f"No handler for side effect {side_effect.dedupe_key}")
        return False

    try:
        handler(side_effect)
    except Exception as e:
        logger.exception(f"Side effect {side_effect.dedupe_key} failed: {e}")
        side_effect.mark_failed(str(e) or e.__class__.__name__)
        return False

    side_effect.mark_delivered()
    logger.info(f"Side effect {side_effect.dedupe_key} delivered")
    return True


# =============================================================================
# ENGINE EVENTS
# =============================================================================

def _notify(event, entity_type, entity_id, recipient_id, context):
    return enqueue(
        SideEffect.Kind.NOTIFICATION,
        entity_type,
        entity_id,
        dedupe_key=f"notification:{event}:{entity_type}:{entity_id}:{recipient_id}",
        event=event,
        payload={'recipient_id': recipient_id, 'context': context},
    )


def announce_proposal(proposal, event):
    """Notify the relevant party and, for new offers, post the chat card."""
    audience = PROPOSAL_EVENT_AUDIENCE.get(event, 'both')
    if audience == 'both':
        roles = [PartyRole.CLIENT, PartyRole.FREELANCER]
    elif audience == 'offerer':
        roles = [proposal.offered_by]
    else:
        roles = [counterpart(proposal.offered_by)]

    context = {
        'proposal_id': proposal.pk,
        'job_id': proposal.job_id,
        'total': str(proposal.total_gross),
        'currency': proposal.currency,
        'offered_by': proposal.offered_by,
    }
    for role in roles:
        _notify(event, 'proposal', proposal.pk, proposal.party_id(role), context)

    if event in ('proposal_received', 'counter_received') and proposal.conversation_ref:
        enqueue(
            SideEffect.Kind.CHAT_MESSAGE,
            'proposal',
            proposal.pk,
            event=event,
            payload={
                'conversation_ref': proposal.conversation_ref,
                'sender_id': proposal.party_id(proposal.offered_by),
                'body': f"[[proposal]]:{proposal.pk}",
            },
        )


def announce_contract(contract):
    context = {
        'contract_id': contract.pk,
        'job_id': contract.job_id,
        'total': str(contract.fees_total),
        'currency': contract.currency,
    }
    for recipient_id in (contract.client_id, contract.freelancer_id):
        _notify('contract_started', 'contract', contract.pk, recipient_id, context)


def announce_submission(submission, contract):
    _notify(
        'milestone_submitted',
        'submission',
        submission.pk,
        contract.client_id,
        {
            'milestone_id': submission.milestone_id,
            'contract_id': contract.pk,
            'version': submission.version,
            'url': submission.submission_url,
        },
    )


def announce_decision(submission, contract):
    _notify(
        f"milestone_{submission.status}",
        'submission',
        submission.pk,
        contract.freelancer_id,
        {
            'milestone_id': submission.milestone_id,
            'contract_id': contract.pk,
            'version': submission.version,
            'reason': submission.decision_reason,
        },
    )


def request_payment_release(milestone):
    """Queue the payout for an approved milestone, once per milestone."""
    return enqueue(
        SideEffect.Kind.PAYMENT_RELEASE,
        'milestone',
        milestone.pk,
        payload={'contract_id': milestone.contract_id, 'amount_gross': str(milestone.amount_gross)},
    )


def request_payment_refund(milestone, reason=''):
    """Queue the refund of a milestone's escrow to the client."""
    return enqueue(
        SideEffect.Kind.PAYMENT_REFUND,
        'milestone',
        milestone.pk,
        payload={'contract_id': milestone.contract_id, 'reason': reason},
    )


def redeliver(side_effect):
    """Dispatch a failed or retrying side effect again after commit."""
    if side_effect.status not in (SideEffect.Status.RETRYING, SideEffect.Status.FAILED):
        return
    from integrations.tasks import deliver_side_effect
    side_effect_id = side_effect.pk
    transaction.on_commit(lambda: deliver_side_effect.delay(side_effect_id))
