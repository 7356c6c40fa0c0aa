"""
Proposals API Views - REST API endpoints.

Every write goes through NegotiationService; the views only translate
HTTP input into an Actor and service arguments.

API URL namespace: api:proposal-*
"""

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.identity import Actor
from proposals.models import Proposal
from proposals.services import NegotiationService
from .serializers import (
    CounterSerializer,
    ProposalCreateSerializer,
    ProposalSerializer,
    RespondSerializer,
)


# ============================================================================
# PROPOSAL VIEWSET
# ============================================================================

class ProposalViewSet(
    mixins.CreateModelMixin,
    viewsets.ReadOnlyModelViewSet,
):
    """
    ViewSet for proposals and negotiation actions.

    Provides:
    - list: GET /api/v1/proposals/
    - retrieve: GET /api/v1/proposals/{id}/
    - create: POST /api/v1/proposals/
    - latest: GET /api/v1/proposals/latest/
    - respond: POST /api/v1/proposals/{id}/respond/
    - counter: POST /api/v1/proposals/{id}/counter/

    Filtering:
    - ?job_id=42
    - ?status=sent
    - ?conversation_ref=abc
    """

    serializer_class = ProposalSerializer
    lookup_value_regex = r'\d+'
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['job_id', 'status', 'offered_by', 'conversation_ref', 'chain']
    ordering_fields = ['created_at', 'total_gross']
    ordering = ['-created_at']

    def get_queryset(self):
        queryset = Proposal.objects.select_related(
            'chain', 'contract'
        ).prefetch_related('milestones')
        if self.request.user.is_staff:
            return queryset
        return queryset.for_user(self.request.user)

    def create(self, request, *args, **kwargs):
        """
        Make an offer (or a revised offer on an open negotiation).

        POST /api/v1/proposals/

        Returns:
            201: The new proposal
        """
        serializer = ProposalCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        proposal = NegotiationService.create(
            Actor.from_request(request, data['offered_by']),
            job_id=data['job_id'],
            client_id=data['client_id'],
            freelancer_id=data['freelancer_id'],
            milestones=data['milestones'],
            total=data.get('total'),
            currency=data.get('currency'),
            fee_percent=data.get('fee_percent'),
            message=data.get('message', ''),
            origin=data['origin'],
            valid_until=data.get('valid_until'),
            conversation_ref=data.get('conversation_ref', ''),
        )
        return Response(ProposalSerializer(proposal).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def latest(self, request):
        """
        Current offer of a conversation or a job/party tuple.

        GET /api/v1/proposals/latest/?conversation_ref=abc
        GET /api/v1/proposals/latest/?job_id=42&client_id=1&freelancer_id=2

        Returns:
            200: {"proposal": {...} | null}
        """
        params = request.query_params
        proposal = NegotiationService.current_offer(
            job_id=params.get('job_id'),
            client_id=params.get('client_id'),
            freelancer_id=params.get('freelancer_id'),
            conversation_ref=params.get('conversation_ref'),
            user=None if request.user.is_staff else request.user,
        )
        data = ProposalSerializer(proposal).data if proposal else None
        return Response({'proposal': data})

    @action(detail=True, methods=['post'])
    def respond(self, request, pk=None):
        """
        Accept, confirm, reject, cancel or withdraw an offer.

        POST /api/v1/proposals/{id}/respond/
        Body: {"actor": "client", "action": "accept"}

        Returns:
            200: The updated proposal (with contract_id once confirmed)
        """
        serializer = RespondSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        proposal = NegotiationService.respond(
            pk,
            Actor.from_request(request, data['actor']),
            data['action'],
        )
        proposal = Proposal.objects.select_related('chain', 'contract').get(pk=proposal.pk)
        return Response(ProposalSerializer(proposal).data)

    @action(detail=True, methods=['post'])
    def counter(self, request, pk=None):
        """
        Counter an offer with new milestones.

        POST /api/v1/proposals/{id}/counter/
        Body: {"actor": "freelancer", "milestones": [...], "total": "5000"}

        Returns:
            201: The counter-offer, now the head of the negotiation
        """
        serializer = CounterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        proposal = NegotiationService.counter(
            Actor.from_request(request, data['actor']),
            pk,
            milestones=data['milestones'],
            total=data.get('total'),
            message=data.get('message', ''),
        )
        return Response(ProposalSerializer(proposal).data, status=status.HTTP_201_CREATED)
