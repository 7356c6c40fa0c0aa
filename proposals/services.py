"""
Proposals Services - negotiation business logic.

NegotiationService applies the negotiation actions against a chain's head:

- create: open a chain, or supersede the open head with a revised offer
- accept / confirm: dual acceptance; confirm materializes the contract
- counter: the receiving party replaces the head with new terms
- reject / cancel / withdraw: close the chain
- respond: dispatcher used by the API
- current_offer: the live head for a job/party tuple or conversation
- expire_stale: system-cancel open offers past their valid_until

Every action is one atomic read-modify-write: the proposal and its chain
are read, the transition is validated against that snapshot and the
chain's version is compare-and-swapped on write. Losing that race is
retried transparently a few times before a ConflictError reaches the
caller. Notifications and chat messages are queued in the same
transaction and delivered only after it commits.
"""

import logging
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from contracts.locks import LockCoordinator
from contracts.services import ContractMaterializer
from core.db import ConcurrentModificationError, retry_on_conflict
from core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from core.identity import Actor, PartyRole, assert_party
from integrations import hooks
from proposals.models import NegotiationChain, Proposal, ProposalMilestone
from proposals.negotiation import (
    Accepted,
    Action,
    Closed,
    RESPOND_ACTIONS,
    is_live,
    transition,
)
from proposals.validators import validate_terms

logger = logging.getLogger(__name__)


# =============================================================================
# HELPERS
# =============================================================================

def get_proposal(proposal_id) -> Proposal:
    try:
        return Proposal.objects.select_related('chain').get(pk=proposal_id)
    except (Proposal.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(
            f'Proposal {proposal_id} not found.',
            extra={'proposal_id': proposal_id},
        )


def _actor_role(actor: Actor) -> Optional[str]:
    return None if actor.is_system else actor.role


def _require_head(proposal: Proposal) -> NegotiationChain:
    """Return the proposal's chain, or raise if the proposal is not its head."""
    chain = proposal.chain
    if proposal.status == Proposal.Status.SUPERSEDED or chain.head_id != proposal.pk:
        raise ConflictError(
            'This offer has been replaced by a newer one; reload the negotiation.',
            code='STALE_HEAD',
            extra={'proposal_id': proposal.pk, 'head_id': chain.head_id},
        )
    return chain


def _write_state(proposal: Proposal, chain: NegotiationChain, new_state, now) -> None:
    """
    Persist ``new_state`` for ``proposal`` through the chain's version.

    A chain closes when its head leaves the negotiation for good
    (accepted, rejected, cancelled or withdrawn).
    """
    chain_changes = {}
    if not is_live(new_state) and not (
        isinstance(new_state, Closed) and new_state.outcome == Proposal.Status.SUPERSEDED
    ):
        chain_changes.update(is_open=False, closed_at=now)
    chain.compare_and_swap(**chain_changes)

    fields = {'status': new_state.status, 'updated_at': now}
    if not is_live(new_state):
        fields['decided_at'] = now

    updated = Proposal.objects.filter(
        pk=proposal.pk, status=proposal.status
    ).update(**fields)
    if not updated:
        raise ConcurrentModificationError(
            model_name='Proposal',
            object_id=proposal.pk,
            message=f'Proposal {proposal.pk} changed status concurrently.',
        )
    for field, value in fields.items():
        setattr(proposal, field, value)


def _open_chain(job_id, client, freelancer) -> NegotiationChain:
    try:
        with transaction.atomic():
            return NegotiationChain.objects.create(
                job_id=job_id,
                client=client,
                freelancer=freelancer,
            )
    except IntegrityError:
        raise ConcurrentModificationError(
            model_name='NegotiationChain',
            message=f'A negotiation for job {job_id} was opened concurrently.',
        )


def _insert_revision(chain: NegotiationChain, terms, offered_by, supersedes=None, **fields) -> Proposal:
    try:
        with transaction.atomic():
            proposal = Proposal.objects.create(
                chain=chain,
                root_id=chain.root_id,
                supersedes=supersedes,
                job_id=chain.job_id,
                client_id=chain.client_id,
                freelancer_id=chain.freelancer_id,
                offered_by=offered_by,
                currency=terms.currency,
                total_gross=terms.total_gross,
                platform_fee_percent=terms.platform_fee_percent,
                status=Proposal.Status.SENT,
                **fields
            )
    except IntegrityError:
        raise ConcurrentModificationError(
            model_name='Proposal',
            object_id=getattr(supersedes, 'pk', None),
            message='The offer was revised concurrently.',
        )

    ProposalMilestone.objects.bulk_create([
        ProposalMilestone(
            proposal=proposal,
            position=m.position,
            title=m.title,
            amount_gross=m.amount_gross,
            duration_days=m.duration_days,
        )
        for m in terms.milestones
    ])
    return proposal


def _supersede(head: Proposal, chain: NegotiationChain, revision: Proposal, now) -> None:
    """Replace ``head`` with ``revision`` as the chain's head."""
    new_state = transition(head.state, Action.SUPERSEDE, None)
    chain.compare_and_swap(head=revision)
    updated = Proposal.objects.filter(
        pk=head.pk, status=head.status
    ).update(status=new_state.status, updated_at=now)
    if not updated:
        raise ConcurrentModificationError(
            model_name='Proposal',
            object_id=head.pk,
            message=f'Proposal {head.pk} changed status concurrently.',
        )
    head.status = new_state.status


def _require_id(value, field) -> int:
    if not str(value).strip().isdigit():
        raise ValidationError(
            f'{field} must be a positive whole number.',
            errors={field: ['A numeric id is required.']},
        )
    return int(value)


def _resolve_user(user_id, field):
    User = get_user_model()
    try:
        return User.objects.get(pk=user_id)
    except (User.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(
            f'User {user_id} not found.',
            errors={field: ['Unknown user.']},
        )


# =============================================================================
# NEGOTIATION SERVICE
# =============================================================================

class NegotiationService:
    """
    Service for negotiating proposals between a client and a freelancer.

    All methods take the verified Actor supplied by the auth layer and
    raise core.exceptions errors; none of them swallow errors.
    """

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def create(
        initiator: Actor,
        job_id: int,
        client_id: int,
        freelancer_id: int,
        milestones,
        total=None,
        currency: Optional[str] = None,
        fee_percent=None,
        message: str = '',
        origin: str = Proposal.Origin.CHAT,
        valid_until=None,
        conversation_ref: str = '',
    ) -> Proposal:
        """
        Make an offer for ``job_id``.

        Starts a new chain, or supersedes the head of the open chain for
        the same (job, client, freelancer).

        Raises:
            ValidationError: Malformed terms or identical parties.
            AuthorizationError: The initiator is not the party it claims.
            StateError: The job is locked, or acceptance of the current
                head is in progress.
        """
        if initiator.is_system or initiator.role not in PartyRole.values:
            raise AuthorizationError('Only a client or a freelancer can make an offer.')
        if job_id in (None, ''):
            raise ValidationError('job_id is required.', errors={'job_id': ['This field is required.']})
        if str(client_id) == str(freelancer_id):
            raise ValidationError(
                'Client and freelancer must be different users.',
                errors={'freelancer_id': ['Client and freelancer must be different users.']},
            )
        assert_party(initiator, client_id, freelancer_id)
        if origin not in Proposal.Origin.values:
            raise ValidationError(
                f"Unknown origin '{origin}'.",
                errors={'origin': [f'Must be one of: {", ".join(Proposal.Origin.values)}.']},
            )

        terms = validate_terms(milestones, total, currency, fee_percent)
        LockCoordinator.assert_unlocked(job_id)

        client = _resolve_user(client_id, 'client_id')
        freelancer = _resolve_user(freelancer_id, 'freelancer_id')
        now = timezone.now()

        chain = (
            NegotiationChain.objects
            .select_related('head')
            .filter(job_id=job_id, client=client, freelancer=freelancer, is_open=True)
            .first()
        )
        fields = dict(
            origin=origin,
            message=message or '',
            valid_until=valid_until,
            conversation_ref=conversation_ref or '',
            created_at=now,
        )

        if chain is not None:
            head = chain.head
            # Raises while the head awaits confirmation.
            transition(head.state, Action.SUPERSEDE, initiator.role)
            proposal = _insert_revision(chain, terms, initiator.role, supersedes=head, **fields)
            _supersede(head, chain, proposal, now)
            logger.info(
                f"Proposal {proposal.pk} supersedes {head.pk} on chain {chain.pk} "
                f"(job {job_id}) by {initiator}"
            )
        else:
            chain = _open_chain(job_id, client, freelancer)
            proposal = _insert_revision(chain, terms, initiator.role, **fields)
            proposal.root = proposal
            proposal.save(update_fields=['root'])
            chain.compare_and_swap(root=proposal, head=proposal)
            logger.info(
                f"Proposal {proposal.pk} opened chain {chain.pk} (job {job_id}) by {initiator}"
            )

        hooks.announce_proposal(proposal, 'proposal_received')
        return proposal

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def counter(
        actor: Actor,
        proposal_id: int,
        milestones,
        total=None,
        message: str = '',
    ) -> Proposal:
        """
        Replace the head with the receiving party's terms.

        Currency, fee, origin and conversation carry over from the
        countered offer.

        Raises:
            ConflictError: The proposal is not the live head.
            StateError: The actor made the offer, acceptance is in
                progress, the chain is closed or the job is locked.
        """
        target = get_proposal(proposal_id)
        assert_party(actor, target.client_id, target.freelancer_id)
        if actor.is_system:
            raise AuthorizationError('Only a party can counter an offer.')
        LockCoordinator.assert_unlocked(target.job_id)
        chain = _require_head(target)

        transition(target.state, Action.SUPERSEDE, actor.role)
        if actor.role == target.offered_by:
            raise StateError(
                'You cannot counter your own offer; wait for a response or withdraw it.',
                code='CANNOT_COUNTER_OWN_OFFER',
            )

        terms = validate_terms(
            milestones,
            total,
            target.currency,
            target.platform_fee_percent,
        )

        now = timezone.now()
        proposal = _insert_revision(
            chain,
            terms,
            actor.role,
            supersedes=target,
            origin=target.origin,
            message=message or '',
            conversation_ref=target.conversation_ref,
            created_at=now,
        )
        _supersede(target, chain, proposal, now)

        logger.info(f"Proposal {target.pk} countered by {actor} with {proposal.pk}")
        hooks.announce_proposal(proposal, 'counter_received')
        return proposal

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def accept(actor: Actor, proposal_id: int) -> Proposal:
        """
        The receiving party accepts the head; it now awaits the offerer's
        confirmation.
        """
        proposal = get_proposal(proposal_id)
        assert_party(actor, proposal.client_id, proposal.freelancer_id)
        chain = _require_head(proposal)

        new_state = transition(proposal.state, Action.ACCEPT, _actor_role(actor))
        _write_state(proposal, chain, new_state, timezone.now())

        logger.info(f"Proposal {proposal.pk} accepted by {actor}, awaiting confirmation")
        hooks.announce_proposal(proposal, 'proposal_accepted')
        return proposal

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def confirm(actor: Actor, proposal_id: int) -> Proposal:
        """
        The offering party confirms an accepted head and the contract is
        materialized in the same transaction.

        Confirming an already accepted proposal again returns it with its
        existing contract.
        """
        proposal = get_proposal(proposal_id)
        assert_party(actor, proposal.client_id, proposal.freelancer_id)

        if isinstance(proposal.state, Accepted) and _actor_role(actor) in (None, proposal.offered_by):
            contract = ContractMaterializer.materialize(proposal)
            logger.info(f"Proposal {proposal.pk} already confirmed; contract {contract.pk}")
            return proposal

        chain = _require_head(proposal)
        new_state = transition(proposal.state, Action.CONFIRM, _actor_role(actor))
        _write_state(proposal, chain, new_state, timezone.now())

        contract = ContractMaterializer.materialize(proposal)
        logger.info(f"Proposal {proposal.pk} confirmed by {actor}; contract {contract.pk}")
        return proposal

    @staticmethod
    @retry_on_conflict
    @transaction.atomic
    def close(actor: Actor, proposal_id: int, action) -> Proposal:
        """Reject, cancel, withdraw or expire the head and close its chain."""
        action = Action(action)
        proposal = get_proposal(proposal_id)
        assert_party(actor, proposal.client_id, proposal.freelancer_id)
        chain = _require_head(proposal)

        new_state = transition(proposal.state, action, _actor_role(actor))
        _write_state(proposal, chain, new_state, timezone.now())

        logger.info(f"Proposal {proposal.pk} {new_state.status} by {actor} ({action.value})")
        if not actor.is_system:
            hooks.announce_proposal(proposal, f'proposal_{new_state.status}')
        return proposal

    @staticmethod
    def reject(actor: Actor, proposal_id: int) -> Proposal:
        return NegotiationService.close(actor, proposal_id, Action.REJECT)

    @staticmethod
    def cancel(actor: Actor, proposal_id: int) -> Proposal:
        return NegotiationService.close(actor, proposal_id, Action.CANCEL)

    @staticmethod
    def withdraw(actor: Actor, proposal_id: int) -> Proposal:
        return NegotiationService.close(actor, proposal_id, Action.WITHDRAW)

    @staticmethod
    def respond(proposal_id: int, actor: Actor, action: str) -> Proposal:
        """Dispatch accept | confirm | reject | cancel | withdraw."""
        try:
            action = Action(str(action).strip().lower())
        except ValueError:
            action = None
        if action not in RESPOND_ACTIONS:
            raise ValidationError(
                'action must be one of accept, confirm, reject, cancel, withdraw.',
                errors={'action': ['Unknown action.']},
            )

        if action == Action.ACCEPT:
            return NegotiationService.accept(actor, proposal_id)
        if action == Action.CONFIRM:
            return NegotiationService.confirm(actor, proposal_id)
        return NegotiationService.close(actor, proposal_id, action)

    @staticmethod
    def current_offer(
        job_id=None,
        client_id=None,
        freelancer_id=None,
        conversation_ref: Optional[str] = None,
        user=None,
    ) -> Optional[Proposal]:
        """
        Return the live head for a conversation, or for a job/party tuple.

        With ``user`` only offers that user is a party to are visible.
        """
        queryset = Proposal.objects.heads().select_related('chain')
        if conversation_ref:
            queryset = queryset.filter(conversation_ref=conversation_ref)
        elif job_id and client_id and freelancer_id:
            queryset = queryset.filter(
                job_id=_require_id(job_id, 'job_id'),
                client_id=_require_id(client_id, 'client_id'),
                freelancer_id=_require_id(freelancer_id, 'freelancer_id'),
            )
        else:
            raise ValidationError(
                'Provide conversation_ref, or job_id with client_id and freelancer_id.',
                errors={'conversation_ref': ['Missing lookup parameters.']},
            )
        if user is not None:
            queryset = queryset.for_user(user)
        return queryset.order_by('-created_at', '-id').first()

    @staticmethod
    def expire_stale(now=None) -> int:
        """
        System-cancel open heads whose valid_until has passed.

        Heads awaiting confirmation are left alone. Returns the number of
        offers expired.
        """
        now = now or timezone.now()
        stale_ids = list(
            Proposal.objects.heads()
            .filter(status=Proposal.Status.SENT, valid_until__lt=now)
            .values_list('pk', flat=True)
        )

        expired = 0
        for proposal_id in stale_ids:
            try:
                NegotiationService.close(Actor.system(), proposal_id, Action.EXPIRE)
            except (StateError, ConflictError) as e:
                logger.info(f"Skipped expiring proposal {proposal_id}: {e}")
                continue
            expired += 1

        if expired:
            logger.info(f"Expired {expired} stale proposals")
        return expired
