"""
Negotiation state machine.

A proposal's negotiation state is one tagged variant rather than a status
string plus two acceptance flags, so combinations such as "both parties
accepted but still sent" cannot be represented:

    Open(offered_by)                  -> stored status 'sent'
    AwaitingConfirmation(offered_by)  -> 'pending' (receiver has accepted)
    Accepted(offered_by)              -> 'accepted' (both have accepted)
    Closed(offered_by, outcome)       -> 'rejected' | 'cancelled' |
                                         'withdrawn' | 'superseded'

transition() is the only place that decides which action may move which
state. It is pure: persisting the result is the service layer's job.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from core.exceptions import StateError
from core.identity import counterpart


class Action(str, Enum):
    ACCEPT = 'accept'
    CONFIRM = 'confirm'
    REJECT = 'reject'
    CANCEL = 'cancel'
    WITHDRAW = 'withdraw'
    SUPERSEDE = 'supersede'
    EXPIRE = 'expire'


RESPOND_ACTIONS = (
    Action.ACCEPT,
    Action.CONFIRM,
    Action.REJECT,
    Action.CANCEL,
    Action.WITHDRAW,
)


@dataclass(frozen=True)
class Open:
    offered_by: str
    status = 'sent'

    @property
    def accepted_by(self):
        return frozenset()


@dataclass(frozen=True)
class AwaitingConfirmation:
    offered_by: str
    status = 'pending'

    @property
    def accepted_by(self):
        return frozenset({counterpart(self.offered_by)})


@dataclass(frozen=True)
class Accepted:
    offered_by: str
    status = 'accepted'

    @property
    def accepted_by(self):
        return frozenset({self.offered_by, counterpart(self.offered_by)})


@dataclass(frozen=True)
class Closed:
    offered_by: str
    outcome: str

    @property
    def status(self):
        return self.outcome

    @property
    def accepted_by(self):
        return frozenset()


NegotiationState = Union[Open, AwaitingConfirmation, Accepted, Closed]

CLOSED_OUTCOMES = ('rejected', 'cancelled', 'withdrawn', 'superseded')


def state_from_status(status: str, offered_by: str) -> NegotiationState:
    """Rebuild the variant from its persisted status."""
    if status in ('sent', 'countered'):
        return Open(offered_by)
    if status == 'pending':
        return AwaitingConfirmation(offered_by)
    if status == 'accepted':
        return Accepted(offered_by)
    if status in CLOSED_OUTCOMES:
        return Closed(offered_by, status)
    raise StateError(f"Unknown proposal status '{status}'", code='UNKNOWN_STATUS')


def is_live(state: NegotiationState) -> bool:
    """Open or awaiting confirmation: the proposal can still be decided."""
    return isinstance(state, (Open, AwaitingConfirmation))


def transition(
    state: NegotiationState,
    action: Action,
    actor_role: Optional[str],
) -> NegotiationState:
    """
    Apply ``action`` by ``actor_role`` to ``state`` and return the new state.

    ``actor_role`` is None for the system actor.

    Raises:
        StateError: If the action is not allowed from ``state`` for that actor.
    """
    action = Action(action)
    is_system = actor_role is None

    if isinstance(state, Accepted):
        raise StateError(
            'Proposal is already accepted.',
            code='ALREADY_ACCEPTED',
        )
    if isinstance(state, Closed):
        raise StateError(
            f'Proposal is {state.outcome} and can no longer be changed.',
            code='PROPOSAL_CLOSED',
            extra={'status': state.outcome},
        )

    offerer = state.offered_by
    is_offerer = actor_role == offerer
    is_receiver = not is_system and not is_offerer

    if isinstance(state, Open):
        if action == Action.ACCEPT:
            if not is_receiver:
                raise StateError(
                    'The offering party cannot accept its own offer; '
                    'it confirms once the other party has accepted.',
                    code='CANNOT_ACCEPT_OWN_OFFER',
                )
            return AwaitingConfirmation(offerer)

        if action == Action.CONFIRM:
            raise StateError(
                'The other party has not accepted this offer yet.',
                code='COUNTERPART_NOT_ACCEPTED',
            )

        if action == Action.REJECT:
            if not is_receiver:
                raise StateError(
                    'Only the receiving party can reject an offer; '
                    'withdraw it instead.',
                    code='CANNOT_REJECT_OWN_OFFER',
                )
            return Closed(offerer, 'rejected')

        if action in (Action.CANCEL, Action.EXPIRE):
            if action == Action.EXPIRE and not is_system:
                raise StateError('Only the system expires offers.', code='SYSTEM_ONLY')
            return Closed(offerer, 'cancelled')

        if action == Action.WITHDRAW:
            if not is_offerer:
                raise StateError(
                    'Only the offering party can withdraw an offer.',
                    code='CANNOT_WITHDRAW',
                )
            return Closed(offerer, 'withdrawn')

        if action == Action.SUPERSEDE:
            return Closed(offerer, 'superseded')

    if isinstance(state, AwaitingConfirmation):
        if action == Action.CONFIRM:
            if not is_offerer:
                raise StateError(
                    'Only the offering party confirms an accepted offer.',
                    code='CONFIRM_BY_OFFERER_ONLY',
                )
            return Accepted(offerer)

        if action == Action.ACCEPT:
            if is_receiver:
                raise StateError(
                    'You have already accepted this offer.',
                    code='ALREADY_ACCEPTED_BY_ACTOR',
                )
            raise StateError(
                'The offering party confirms instead of accepting.',
                code='CANNOT_ACCEPT_OWN_OFFER',
            )

        if action == Action.REJECT:
            if is_system:
                raise StateError('The system does not reject offers.', code='PARTY_ONLY')
            return Closed(offerer, 'rejected')

        if action == Action.CANCEL and is_system:
            return Closed(offerer, 'cancelled')

        raise StateError(
            'Acceptance is in progress: the offer must be confirmed or rejected.',
            code='ACCEPTANCE_IN_PROGRESS',
        )

    raise StateError(f'Unsupported action {action.value}.', code='UNSUPPORTED_ACTION')
