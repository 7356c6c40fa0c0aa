"""
Networkk Test Configuration - pytest fixtures and factories

This module provides:
- pytest-django configuration
- factory_boy factories for users, proposals and contracts
- Shared fixtures for a client/freelancer pair and an active contract

RUNNING TESTS:
# Run all tests
pytest -v

# Run by app
pytest proposals/tests -v
pytest milestones/tests -v

# Run by marker
pytest -m workflow -v
"""

import uuid
from decimal import Decimal

import pytest
import factory
from django.contrib.auth import get_user_model
from factory.django import DjangoModelFactory
from rest_framework.test import APIClient

from core.identity import Actor


# ============================================================================
# USER FACTORIES
# ============================================================================

class UserFactory(DjangoModelFactory):
    """Factory for the auth user model."""

    class Meta:
        model = get_user_model()
        django_get_or_create = ('username',)

    username = factory.LazyAttribute(lambda o: f"user_{uuid.uuid4().hex[:8]}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    first_name = factory.Faker('first_name')
    last_name = factory.Faker('last_name')
    password = factory.PostGenerationMethodCall('set_password', 'testpass123')
    is_active = True
    is_staff = False


class StaffUserFactory(UserFactory):
    """Factory for platform staff."""

    is_staff = True


# ============================================================================
# PROPOSAL FACTORIES
# ============================================================================

DEFAULT_MILESTONES = [
    {'title': 'Design', 'amount': '2000.00', 'duration_days': 7},
    {'title': 'Build', 'amount': '3000.00', 'duration_days': 14},
]


class ProposalFactory(factory.Factory):
    """
    Builds proposals through NegotiationService.create so that chains,
    heads and milestones are always consistent.

    Usage:
        proposal = ProposalFactory(client=client_user, freelancer=freelancer_user)
        counter = ProposalFactory(offered_by='freelancer', job_id=proposal.job_id, ...)
    """

    class Meta:
        model = dict

    job_id = factory.Sequence(lambda n: 1000 + n)
    client = factory.SubFactory(UserFactory)
    freelancer = factory.SubFactory(UserFactory)
    offered_by = 'client'
    milestones = factory.LazyFunction(lambda: [dict(m) for m in DEFAULT_MILESTONES])
    total = '5000.00'
    currency = 'EGP'
    fee_percent = '10'
    message = factory.Faker('sentence')
    conversation_ref = ''

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        from proposals.services import NegotiationService

        client = kwargs.pop('client')
        freelancer = kwargs.pop('freelancer')
        offered_by = kwargs.pop('offered_by')
        initiator = Actor.client(client) if offered_by == 'client' else Actor.freelancer(freelancer)
        return NegotiationService.create(
            initiator,
            client_id=client.pk,
            freelancer_id=freelancer.pk,
            **kwargs
        )

    _build = _create


# ============================================================================
# PYTEST FIXTURES
# ============================================================================

@pytest.fixture
def user_factory(db):
    """Provide UserFactory for tests."""
    return UserFactory


@pytest.fixture
def proposal_factory(db):
    """Provide ProposalFactory for tests."""
    return ProposalFactory


@pytest.fixture
def client_user(db):
    return UserFactory(username='client_one')


@pytest.fixture
def freelancer_user(db):
    return UserFactory(username='freelancer_one')


@pytest.fixture
def staff_user(db):
    return StaffUserFactory(username='staff_one')


@pytest.fixture
def client_actor(client_user):
    return Actor.client(client_user)


@pytest.fixture
def freelancer_actor(freelancer_user):
    return Actor.freelancer(freelancer_user)


@pytest.fixture
def proposal(client_user, freelancer_user):
    """A client offer of 5000 EGP in two milestones (2000 + 3000)."""
    return ProposalFactory(client=client_user, freelancer=freelancer_user, job_id=42)


@pytest.fixture
def contract(proposal, client_actor, freelancer_actor):
    """An active contract materialized from ``proposal``."""
    from proposals.services import NegotiationService

    NegotiationService.accept(freelancer_actor, proposal.pk)
    NegotiationService.confirm(client_actor, proposal.pk)
    proposal.refresh_from_db()
    return proposal.contract


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def client_api(client_user):
    """API client authenticated as the client."""
    api = APIClient()
    api.force_authenticate(user=client_user)
    return api


@pytest.fixture
def freelancer_api(freelancer_user):
    """API client authenticated as the freelancer."""
    api = APIClient()
    api.force_authenticate(user=freelancer_user)
    return api


@pytest.fixture
def staff_api(staff_user):
    api = APIClient()
    api.force_authenticate(user=staff_user)
    return api


@pytest.fixture
def money():
    """Shorthand for Decimal amounts in assertions."""
    return lambda value: Decimal(str(value)).quantize(Decimal('0.01'))
