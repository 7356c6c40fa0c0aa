"""
Notification hook: emails to the parties and chat system messages.

Both handlers raise on failure so the outbox retries them.
"""

import hashlib
import hmac
import json
import logging

import requests
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.utils import timezone

logger = logging.getLogger(__name__)

EMAIL_MESSAGES = {
    'proposal_received': (
        'New offer for job #{job_id}',
        'You received an offer of {total} {currency} for job #{job_id}.',
    ),
    'counter_received': (
        'Counter-offer for job #{job_id}',
        'Your offer for job #{job_id} was countered with {total} {currency}.',
    ),
    'proposal_accepted': (
        'Your offer for job #{job_id} was accepted',
        'Your offer of {total} {currency} was accepted. Confirm it to start the contract.',
    ),
    'proposal_rejected': (
        'Your offer for job #{job_id} was declined',
        'Your offer of {total} {currency} for job #{job_id} was declined.',
    ),
    'proposal_withdrawn': (
        'Offer withdrawn for job #{job_id}',
        'The offer of {total} {currency} for job #{job_id} was withdrawn.',
    ),
    'proposal_cancelled': (
        'Negotiation cancelled for job #{job_id}',
        'The negotiation for job #{job_id} was cancelled.',
    ),
    'contract_started': (
        'Contract started for job #{job_id}',
        'Contract #{contract_id} for {total} {currency} is now active.',
    ),
    'milestone_submitted': (
        'Milestone submitted for review',
        'Version {version} of milestone #{milestone_id} is ready for your review.',
    ),
    'milestone_approved': (
        'Milestone approved',
        'Milestone #{milestone_id} was approved and its payment released.',
    ),
    'milestone_rejected': (
        'Milestone needs changes',
        'Version {version} of milestone #{milestone_id} was rejected. {reason}',
    ),
}


def render_message(event, context):
    try:
        subject, body = EMAIL_MESSAGES[event]
    except KeyError:
        raise ValueError(f"Unknown notification event '{event}'")
    return subject.format(**context), body.format(**context).strip()


def send_notification(side_effect):
    """Email the recipient named in the side effect's payload."""
    User = get_user_model()
    payload = side_effect.payload
    recipient = User.objects.filter(pk=payload.get('recipient_id')).first()
    if recipient is None or not recipient.email:
        logger.info(f"No email address for notification {side_effect.dedupe_key}; skipped")
        return

    subject, message = render_message(side_effect.event, payload.get('context', {}))
    send_mail(
        subject=subject,
        message=message,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient.email],
        fail_silently=False,
    )


def post_chat_message(side_effect):
    """
    Post a system message into the conversation through the chat webhook.

    Disabled when NETWORKK_CHAT_WEBHOOK_URL is empty.
    """
    url = getattr(settings, 'NETWORKK_CHAT_WEBHOOK_URL', '')
    if not url:
        logger.debug(f"Chat webhook disabled; dropping {side_effect.dedupe_key}")
        return

    payload_json = json.dumps({
        'event_id': side_effect.dedupe_key,
        'event_type': side_effect.event,
        'timestamp': timezone.now().isoformat(),
        'data': side_effect.payload,
    }, default=str)

    headers = {
        'Content-Type': 'application/json',
        'X-Webhook-ID': str(side_effect.pk),
        'User-Agent': 'Networkk-Engine/1.0',
    }
    secret = getattr(settings, 'NETWORKK_CHAT_WEBHOOK_SECRET', '')
    if secret:
        signature = hmac.new(secret.encode(), payload_json.encode(), hashlib.sha256).hexdigest()
        headers['X-Webhook-Signature'] = f"sha256={signature}"

    response = requests.post(
        url,
        data=payload_json,
        headers=headers,
        timeout=getattr(settings, 'NETWORKK_CHAT_WEBHOOK_TIMEOUT', 10),
    )
    response.raise_for_status()
