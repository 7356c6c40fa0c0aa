"""
Contracts API Views - REST API endpoints.

API URL namespace: api:contract-*
"""

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, permissions, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from contracts.models import Contract
from contracts.services import ContractMaterializer, contract_for_job
from core.exceptions import NotFoundError, ValidationError
from core.identity import Actor, PartyRole
from milestones.api.serializers import MilestoneSerializer
from .serializers import ContractSerializer


# ============================================================================
# CONTRACT VIEWSET
# ============================================================================

class ContractViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for contracts (read-only, plus milestone repair).

    Provides:
    - list: GET /api/v1/contracts/
    - retrieve: GET /api/v1/contracts/{id}/
    - by_job: GET /api/v1/contracts/by-job/?job_id=42
    - sync_milestones: POST /api/v1/contracts/{id}/sync-milestones/

    Filtering:
    - ?job_id=42
    - ?status=active
    """

    serializer_class = ContractSerializer
    lookup_value_regex = r'\d+'
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['job_id', 'status']
    ordering_fields = ['created_at', 'fees_total']
    ordering = ['-created_at']

    def get_queryset(self):
        queryset = Contract.objects.prefetch_related('milestones')
        if self.request.user.is_staff:
            return queryset
        return queryset.for_user(self.request.user)

    @action(detail=False, methods=['get'], url_path='by-job')
    def by_job(self, request):
        """
        The contract locking a job.

        GET /api/v1/contracts/by-job/?job_id=42

        Returns:
            200: {"contract": {...} | null}
        """
        job_id = request.query_params.get('job_id')
        if not job_id or not str(job_id).isdigit():
            raise ValidationError(
                'job_id is required.',
                errors={'job_id': ['A numeric job_id is required.']},
            )
        contract = contract_for_job(int(job_id))
        if contract is not None and not self.get_queryset().filter(pk=contract.pk).exists():
            raise NotFoundError(f'No contract found for job {job_id}.')
        data = ContractSerializer(contract).data if contract else None
        return Response({'contract': data})

    @action(detail=True, methods=['post'], url_path='sync-milestones')
    def sync_milestones(self, request, pk=None):
        """
        Rebuild the milestones of a contract created without them.

        POST /api/v1/contracts/{id}/sync-milestones/

        Returns:
            200: {"milestones": [...]}
        """
        contract = Contract.objects.filter(pk=pk).only('client_id').first()
        role = PartyRole.FREELANCER
        if contract is not None and contract.client_id == request.user.pk:
            role = PartyRole.CLIENT
        milestones = ContractMaterializer.sync(pk, actor=Actor.from_request(request, role))
        return Response({'milestones': MilestoneSerializer(milestones, many=True).data})
