"""
Tests for the payment release hook backends.
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.test import override_settings

from integrations.models import SideEffect
from integrations.payments import (
    LedgerPaymentBackend,
    PaymentBackendError,
    StripeTransferBackend,
    get_payment_backend,
)
from milestones.models import EscrowPayment, Payout, Wallet
from milestones.services import SettlementService


@pytest.fixture
def approved_milestone(contract, freelancer_actor, client_actor):
    milestone = contract.milestones.get(position=1)
    submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='done')
    return SettlementService.approve(client_actor, milestone.pk, submission.pk)


@pytest.mark.django_db
class TestLedgerBackend:

    def test_release_pays_net_once(self, approved_milestone, freelancer_user):
        backend = LedgerPaymentBackend()
        payout = backend.release(approved_milestone)
        again = backend.release(approved_milestone)

        assert again.pk == payout.pk
        assert payout.amount_gross == Decimal('2000.00')
        assert payout.fee_amount == Decimal('200.00')
        assert payout.amount_net == Decimal('1800.00')
        assert payout.status == Payout.Status.PAID
        assert Payout.objects.count() == 1

        wallet = Wallet.objects.get(user=freelancer_user, role='freelancer')
        assert wallet.balance == Decimal('1800.00')
        assert EscrowPayment.objects.get(milestone=approved_milestone).status == 'released'

    def test_refunded_escrow_cannot_be_released(self, approved_milestone):
        EscrowPayment.objects.filter(milestone=approved_milestone).update(status='refunded')

        with pytest.raises(PaymentBackendError):
            LedgerPaymentBackend().release(approved_milestone)

    def test_refund_is_idempotent(self, contract, client_user):
        milestone = contract.milestones.get(position=2)
        backend = LedgerPaymentBackend()
        backend.refund(milestone, reason='overdue')
        escrow = backend.refund(milestone, reason='overdue')

        assert escrow.status == EscrowPayment.Status.REFUNDED
        assert escrow.refund_reason == 'overdue'
        wallet = Wallet.objects.get(user=client_user, role='client')
        assert wallet.balance == Decimal('3000.00')

    def test_released_escrow_cannot_be_refunded(self, approved_milestone):
        LedgerPaymentBackend().release(approved_milestone)

        with pytest.raises(PaymentBackendError):
            LedgerPaymentBackend().refund(approved_milestone)

    def test_approval_delivers_release(
        self, contract, freelancer_actor, client_actor, freelancer_user,
        django_capture_on_commit_callbacks,
    ):
        milestone = contract.milestones.get(position=1)
        submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='done')

        with django_capture_on_commit_callbacks(execute=True):
            SettlementService.approve(client_actor, milestone.pk, submission.pk)

        release = SideEffect.objects.get(kind=SideEffect.Kind.PAYMENT_RELEASE)
        assert release.status == SideEffect.Status.DELIVERED
        assert Payout.objects.get(milestone=milestone).amount_net == Decimal('1800.00')
        assert Wallet.objects.get(user=freelancer_user).balance == Decimal('1800.00')

    def test_failed_release_does_not_undo_approval(
        self, contract, freelancer_actor, client_actor, django_capture_on_commit_callbacks,
    ):
        milestone = contract.milestones.get(position=1)
        submission = SettlementService.submit(freelancer_actor, milestone.pk, notes='done')

        with patch.object(LedgerPaymentBackend, 'release', side_effect=PaymentBackendError('processor down')):
            with django_capture_on_commit_callbacks(execute=True):
                result = SettlementService.approve(client_actor, milestone.pk, submission.pk)

        milestone.refresh_from_db()
        assert result.status == milestone.status == 'released'
        release = SideEffect.objects.get(kind=SideEffect.Kind.PAYMENT_RELEASE)
        assert release.status == SideEffect.Status.RETRYING
        assert release.last_error == 'processor down'


@pytest.mark.django_db
class TestStripeBackend:

    @override_settings(NETWORKK_PAYMENT_BACKEND='integrations.payments.StripeTransferBackend')
    def test_backend_from_settings(self):
        assert isinstance(get_payment_backend(), StripeTransferBackend)

    def test_transfer_net_amount(self, approved_milestone, freelancer_user):
        Wallet.objects.create(user=freelancer_user, role='freelancer', stripe_account_id='acct_123')

        with patch('integrations.payments.stripe.Transfer.create') as create:
            create.return_value = MagicMock(id='tr_456')
            payout = StripeTransferBackend().release(approved_milestone)

        kwargs = create.call_args.kwargs
        assert kwargs['amount'] == 180000
        assert kwargs['currency'] == 'egp'
        assert kwargs['destination'] == 'acct_123'
        assert kwargs['idempotency_key'] == f'milestone-release-{approved_milestone.pk}'
        assert payout.external_id == 'tr_456'
        assert payout.provider == 'stripe'
        # Funds went to Stripe, not to the internal wallet.
        assert Wallet.objects.get(user=freelancer_user).balance == Decimal('0.00')

    def test_requires_connected_account(self, approved_milestone):
        with pytest.raises(PaymentBackendError):
            StripeTransferBackend().release(approved_milestone)
        assert not Payout.objects.exists()
