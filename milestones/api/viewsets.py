"""
Milestones API Views - REST API endpoints.

API URL namespace: api:milestone-*
"""

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.identity import Actor, PartyRole
from milestones.models import Milestone
from milestones.services import SettlementService
from milestones.settlement import AutoSettlementService
from .serializers import (
    AutoSettleSerializer,
    DecideSerializer,
    MilestoneDetailSerializer,
    MilestoneSerializer,
    MilestoneSubmissionSerializer,
    SubmitSerializer,
)


# ============================================================================
# MILESTONE VIEWSET
# ============================================================================

class MilestoneViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for milestones and their settlement.

    Provides:
    - list: GET /api/v1/milestones/?contract=<id>
    - retrieve: GET /api/v1/milestones/{id}/ (with submissions)
    - submit: POST /api/v1/milestones/{id}/submit/
    - decide: POST /api/v1/milestones/{id}/decide/
    - auto_settle: POST /api/v1/milestones/auto-settle/ (staff only)
    """

    serializer_class = MilestoneSerializer
    permission_classes = [permissions.IsAuthenticated]
    lookup_value_regex = r'\d+'
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['contract', 'status']
    ordering_fields = ['position', 'due_at']
    ordering = ['contract', 'position']

    def get_queryset(self):
        queryset = Milestone.objects.select_related('contract', 'escrow_payment')
        if self.action == 'retrieve':
            queryset = queryset.prefetch_related('submissions')
        if self.request.user.is_staff:
            return queryset
        user = self.request.user
        return queryset.filter(contract__client=user) | queryset.filter(contract__freelancer=user)

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return MilestoneDetailSerializer
        return MilestoneSerializer

    @action(detail=True, methods=['post'])
    def submit(self, request, pk=None):
        """
        Submit work for review.

        POST /api/v1/milestones/{id}/submit/
        Body: {"url": "https://...", "notes": "..."}

        Returns:
            201: The new submission
        """
        serializer = SubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        submission = SettlementService.submit(
            Actor.from_request(request, PartyRole.FREELANCER),
            pk,
            url=serializer.validated_data.get('url'),
            notes=serializer.validated_data.get('notes'),
        )
        return Response(
            MilestoneSubmissionSerializer(submission).data,
            status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=['post'])
    def decide(self, request, pk=None):
        """
        Approve or reject the latest submission.

        POST /api/v1/milestones/{id}/decide/
        Body: {"submission_id": 7, "decision": "approve"}

        Returns:
            200: The updated milestone
        """
        serializer = DecideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        milestone = SettlementService.decide(
            pk,
            Actor.from_request(request, PartyRole.CLIENT),
            data['submission_id'],
            data['decision'],
            reason=data.get('reason'),
        )
        milestone = Milestone.objects.select_related('escrow_payment').prefetch_related(
            'submissions'
        ).get(pk=milestone.pk)
        return Response(MilestoneDetailSerializer(milestone).data)

    @action(
        detail=False,
        methods=['post'],
        url_path='auto-settle',
        permission_classes=[permissions.IsAdminUser],
    )
    def auto_settle(self, request):
        """
        Run auto-settlement now.

        POST /api/v1/milestones/auto-settle/

        Returns:
            200: {"released": n, "refunded": n, "skipped": n}
        """
        serializer = AutoSettleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        summary = AutoSettlementService.run(limit=serializer.validated_data['limit'])
        return Response(summary)
