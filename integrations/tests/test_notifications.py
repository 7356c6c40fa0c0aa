"""
Tests for the notification and chat-message handlers.
"""

import hashlib
import hmac
import json
from unittest.mock import MagicMock, patch

import pytest
import requests
from django.core import mail
from django.test import override_settings

from conftest import UserFactory
from integrations import hooks
from integrations.models import SideEffect
from integrations.notifications import post_chat_message, render_message, send_notification


class TestRenderMessage:

    def test_known_event(self):
        subject, body = render_message(
            'proposal_received',
            {'job_id': 42, 'total': '5000.00', 'currency': 'EGP'},
        )
        assert subject == 'New offer for job #42'
        assert body == 'You received an offer of 5000.00 EGP for job #42.'

    def test_unknown_event(self):
        with pytest.raises(ValueError):
            render_message('proposal_exploded', {})


@pytest.mark.django_db
class TestSendNotification:

    def test_sends_email(self):
        user = UserFactory(email='freelancer@example.com')
        side_effect = hooks.enqueue(
            SideEffect.Kind.NOTIFICATION,
            'proposal',
            5,
            event='proposal_accepted',
            payload={
                'recipient_id': user.pk,
                'context': {'job_id': 42, 'total': '5000.00', 'currency': 'EGP'},
            },
        )

        send_notification(side_effect)

        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ['freelancer@example.com']
        assert mail.outbox[0].subject == 'Your offer for job #42 was accepted'

    def test_recipient_without_email_is_skipped(self):
        user = UserFactory(email='')
        side_effect = hooks.enqueue(
            SideEffect.Kind.NOTIFICATION,
            'proposal',
            5,
            event='proposal_accepted',
            payload={'recipient_id': user.pk, 'context': {}},
        )

        send_notification(side_effect)
        assert mail.outbox == []

    def test_delivered_after_commit(self, proposal, freelancer_user, django_capture_on_commit_callbacks):
        from core.identity import Actor
        from proposals.services import NegotiationService

        with django_capture_on_commit_callbacks(execute=True):
            NegotiationService.withdraw(Actor.client(proposal.client), proposal.pk)

        assert [m.to for m in mail.outbox] == [[freelancer_user.email]]
        assert mail.outbox[0].subject == 'Offer withdrawn for job #42'


@pytest.mark.django_db
class TestPostChatMessage:

    def _chat_effect(self):
        return hooks.enqueue(
            SideEffect.Kind.CHAT_MESSAGE,
            'proposal',
            9,
            event='proposal_received',
            payload={'conversation_ref': 'conv-1', 'sender_id': 1, 'body': '[[proposal]]:9'},
        )

    @override_settings(NETWORKK_CHAT_WEBHOOK_URL='')
    def test_disabled_without_url(self):
        with patch('integrations.notifications.requests.post') as post:
            post_chat_message(self._chat_effect())
        post.assert_not_called()

    @override_settings(
        NETWORKK_CHAT_WEBHOOK_URL='https://chat.example.com/hooks/system',
        NETWORKK_CHAT_WEBHOOK_SECRET='s3cret',
    )
    def test_signed_post(self):
        side_effect = self._chat_effect()
        with patch('integrations.notifications.requests.post') as post:
            post.return_value = MagicMock(status_code=200)
            post_chat_message(side_effect)

        args, kwargs = post.call_args
        assert args[0] == 'https://chat.example.com/hooks/system'
        body = json.loads(kwargs['data'])
        assert body['event_id'] == 'chat_message:proposal:9'
        assert body['data']['body'] == '[[proposal]]:9'

        expected = hmac.new(b's3cret', kwargs['data'].encode(), hashlib.sha256).hexdigest()
        assert kwargs['headers']['X-Webhook-Signature'] == f'sha256={expected}'

    @override_settings(NETWORKK_CHAT_WEBHOOK_URL='https://chat.example.com/hooks/system')
    def test_http_error_is_retried(self):
        side_effect = self._chat_effect()
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError('502 Bad Gateway')

        with patch('integrations.notifications.requests.post', return_value=response):
            assert hooks.deliver(side_effect) is False

        side_effect.refresh_from_db()
        assert side_effect.status == SideEffect.Status.RETRYING
        assert '502' in side_effect.last_error
