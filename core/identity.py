"""
Caller identity context.

Authentication and session issuance live outside the engine. The auth layer
hands the engine an Actor: the verified user id plus the party role the
caller acts in. The engine only checks that the actor really is that party
on the proposal or contract it touches.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from django.db import models
from django.utils.translation import gettext_lazy as _

from core.exceptions import AuthorizationError, ValidationError

security_logger = logging.getLogger('security.identity')


class PartyRole(models.TextChoices):
    CLIENT = 'client', _('Client')
    FREELANCER = 'freelancer', _('Freelancer')


def counterpart(role: str) -> str:
    """Return the other party's role."""
    if role == PartyRole.CLIENT:
        return PartyRole.FREELANCER
    return PartyRole.CLIENT


@dataclass(frozen=True)
class Actor:
    """
    The caller of an engine operation.

    user_id is None only for the system actor, which the engine uses for
    its own transitions (job locking, expiry, auto-settlement).
    """

    user_id: Optional[int]
    role: Optional[str]
    is_staff: bool = False

    @classmethod
    def system(cls) -> 'Actor':
        return cls(user_id=None, role=None, is_staff=True)

    @classmethod
    def client(cls, user) -> 'Actor':
        return cls(user_id=_user_pk(user), role=PartyRole.CLIENT)

    @classmethod
    def freelancer(cls, user) -> 'Actor':
        return cls(user_id=_user_pk(user), role=PartyRole.FREELANCER)

    @classmethod
    def from_request(cls, request, role: Optional[str]) -> 'Actor':
        """Build an actor for the authenticated user of ``request``."""
        user = request.user
        if role is not None:
            role = str(role).strip().lower()
            if role not in PartyRole.values:
                raise ValidationError(
                    "actor must be 'client' or 'freelancer'",
                    errors={'actor': ['Unknown party role.']},
                )
        return cls(user_id=user.pk, role=role, is_staff=bool(user.is_staff))

    @property
    def is_system(self) -> bool:
        return self.user_id is None

    def __str__(self):
        if self.is_system:
            return 'system'
        return f"{self.role or 'user'}:{self.user_id}"


def _user_pk(user):
    return getattr(user, 'pk', user)


def assert_party(
    actor: Actor,
    client_id: int,
    freelancer_id: int,
    allow_staff: bool = False,
) -> None:
    """
    Verify that ``actor`` is the party its role claims.

    Raises:
        AuthorizationError: If the actor is neither the named client nor the
            named freelancer (staff pass only when ``allow_staff``).
    """
    if actor.is_system:
        return
    if actor.role == PartyRole.CLIENT and actor.user_id == client_id:
        return
    if actor.role == PartyRole.FREELANCER and actor.user_id == freelancer_id:
        return
    if allow_staff and actor.is_staff:
        return

    security_logger.warning(
        f"Party mismatch: actor={actor} client={client_id} freelancer={freelancer_id}"
    )
    raise AuthorizationError(
        'You are not a party to this negotiation.',
        extra={'role': actor.role},
    )


def assert_role(actor: Actor, role: str, client_id: int, freelancer_id: int, allow_staff: bool = False) -> None:
    """Verify the actor is a party acting in ``role`` (or staff when allowed)."""
    if allow_staff and actor.is_staff and not actor.is_system:
        return
    if actor.is_system:
        return
    if actor.role != role:
        security_logger.warning(f"Role mismatch: actor={actor} required={role}")
        raise AuthorizationError(
            f'Only the {role} may perform this action.',
            extra={'required_role': role},
        )
    assert_party(actor, client_id, freelancer_id)
