"""
Payment release hook.

The engine never moves money itself. Approval and auto-settlement queue a
payment_release or payment_refund side effect, and the configured backend
(NETWORKK_PAYMENT_BACKEND) carries it out:

- LedgerPaymentBackend: records the payout net of the platform fee and
  credits the freelancer's wallet; refunds credit the client's wallet.
- StripeTransferBackend: additionally sends the net amount to the
  freelancer's Stripe Connect account before recording the payout.

Both are idempotent per milestone: a repeated release returns the payout
already recorded.
"""

import logging
from decimal import Decimal

import stripe
from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone
from django.utils.module_loading import import_string

from core.db import net_of_fee
from core.identity import PartyRole
from milestones.models import EscrowPayment, Milestone, Payout, Wallet

logger = logging.getLogger(__name__)
security_logger = logging.getLogger('security.payments')


class PaymentBackendError(Exception):
    """Raised when a payment cannot be carried out; the side effect is retried."""


def get_payment_backend():
    backend_path = getattr(
        settings,
        'NETWORKK_PAYMENT_BACKEND',
        'integrations.payments.LedgerPaymentBackend',
    )
    return import_string(backend_path)()


def credit_wallet(user_id, role, amount, currency) -> None:
    wallet, _ = Wallet.objects.get_or_create(
        user_id=user_id,
        role=role,
        defaults={'currency': currency},
    )
    Wallet.objects.filter(pk=wallet.pk).update(
        balance=F('balance') + amount,
        updated_at=timezone.now(),
    )


class BasePaymentBackend:
    """Interface of a payment release hook."""

    provider = 'base'

    def release(self, milestone: Milestone) -> Payout:
        raise NotImplementedError

    def refund(self, milestone: Milestone, reason: str = '') -> EscrowPayment:
        raise NotImplementedError


class LedgerPaymentBackend(BasePaymentBackend):
    """Settles milestones against internal wallets."""

    provider = 'ledger'
    credits_wallet = True

    def transfer(self, milestone: Milestone, amount_net: Decimal) -> str:
        """Move ``amount_net`` to the freelancer. Returns an external reference."""
        return ''

    @transaction.atomic
    def release(self, milestone: Milestone) -> Payout:
        escrow = (
            EscrowPayment.objects.select_for_update()
            .filter(milestone=milestone)
            .first()
        )
        existing = Payout.objects.filter(milestone=milestone).first()
        if existing is not None:
            return existing

        if escrow is not None and escrow.status == EscrowPayment.Status.REFUNDED:
            raise PaymentBackendError(
                f'Escrow for milestone {milestone.pk} was already refunded.'
            )

        contract = milestone.contract
        gross = milestone.amount_gross
        net = net_of_fee(gross, contract.platform_fee_percent)
        now = timezone.now()

        external_id = self.transfer(milestone, net)

        try:
            with transaction.atomic():
                payout = Payout.objects.create(
                    milestone=milestone,
                    contract=contract,
                    freelancer_id=contract.freelancer_id,
                    amount_gross=gross,
                    fee_amount=gross - net,
                    amount_net=net,
                    currency=contract.currency,
                    provider=self.provider,
                    external_id=external_id,
                    status=Payout.Status.PAID,
                    paid_at=now,
                )
        except IntegrityError:
            return Payout.objects.get(milestone=milestone)

        if self.credits_wallet:
            credit_wallet(contract.freelancer_id, PartyRole.FREELANCER, net, contract.currency)

        if escrow is not None:
            escrow.status = EscrowPayment.Status.RELEASED
            escrow.released_at = now
            escrow.save(update_fields=['status', 'released_at', 'updated_at'])

        security_logger.info(
            f"Released milestone {milestone.pk}: {net} {contract.currency} net "
            f"({gross} gross, fee {contract.platform_fee_percent}%) "
            f"to freelancer {contract.freelancer_id} via {self.provider}"
        )
        return payout

    @transaction.atomic
    def refund(self, milestone: Milestone, reason: str = '') -> EscrowPayment:
        try:
            escrow = EscrowPayment.objects.select_for_update().get(milestone=milestone)
        except EscrowPayment.DoesNotExist:
            raise PaymentBackendError(f'Milestone {milestone.pk} has no escrow payment.')

        if escrow.status == EscrowPayment.Status.REFUNDED:
            return escrow
        if escrow.status == EscrowPayment.Status.RELEASED:
            raise PaymentBackendError(
                f'Escrow for milestone {milestone.pk} was already released.'
            )

        contract = milestone.contract
        credit_wallet(contract.client_id, PartyRole.CLIENT, escrow.amount, escrow.currency)

        escrow.status = EscrowPayment.Status.REFUNDED
        escrow.refunded_at = timezone.now()
        escrow.refund_reason = reason[:255]
        escrow.save(update_fields=['status', 'refunded_at', 'refund_reason', 'updated_at'])

        security_logger.info(
            f"Refunded milestone {milestone.pk}: {escrow.amount} {escrow.currency} "
            f"to client {contract.client_id} ({reason or 'no reason'})"
        )
        return escrow


class StripeTransferBackend(LedgerPaymentBackend):
    """Pays freelancers out through Stripe Connect transfers."""

    provider = 'stripe'
    credits_wallet = False

    def transfer(self, milestone: Milestone, amount_net: Decimal) -> str:
        contract = milestone.contract
        wallet = (
            Wallet.objects
            .filter(user_id=contract.freelancer_id, role=PartyRole.FREELANCER)
            .exclude(stripe_account_id='')
            .first()
        )
        if wallet is None:
            raise PaymentBackendError(
                f'Freelancer {contract.freelancer_id} has no connected Stripe account.'
            )

        stripe.api_key = settings.STRIPE_SECRET_KEY
        transfer = stripe.Transfer.create(
            amount=int(amount_net * 100),
            currency=contract.currency.lower(),
            destination=wallet.stripe_account_id,
            transfer_group=f"contract-{contract.pk}",
            metadata={
                'milestone_id': milestone.pk,
                'contract_id': contract.pk,
            },
            idempotency_key=f"milestone-release-{milestone.pk}",
        )
        logger.info(f"Stripe transfer {transfer.id} created for milestone {milestone.pk}")
        return transfer.id


# =============================================================================
# SIDE-EFFECT HANDLERS
# =============================================================================

def _milestone_for(side_effect) -> Milestone:
    return Milestone.objects.select_related('contract').get(pk=side_effect.entity_id)


def release_milestone(side_effect):
    return get_payment_backend().release(_milestone_for(side_effect))


def refund_milestone(side_effect):
    reason = side_effect.payload.get('reason', '')
    return get_payment_backend().refund(_milestone_for(side_effect), reason=reason)
