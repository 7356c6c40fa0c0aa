"""
Contracts Serializers - DRF serializers for API endpoints.
"""

from rest_framework import serializers

from contracts.models import Contract
from milestones.api.serializers import MilestoneSerializer


class ContractSerializer(serializers.ModelSerializer):
    """Contract with its milestones."""

    milestones = MilestoneSerializer(many=True, read_only=True)
    total_net = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Contract
        fields = [
            'id',
            'proposal',
            'job_id',
            'client',
            'freelancer',
            'status',
            'currency',
            'fees_total',
            'total_net',
            'platform_fee_percent',
            'client_confirm_grace_days',
            'confirmed_at',
            'created_at',
            'milestones',
        ]
        read_only_fields = fields
