"""
Proposals Serializers - DRF serializers for API endpoints.

Input serializers only check shape and types; the term rules (milestone
sum, positive amounts, fee range) are enforced by proposals.validators so
that the API and direct service calls fail the same way.
"""

from rest_framework import serializers

from core.identity import PartyRole
from proposals.models import Proposal, ProposalMilestone
from proposals.negotiation import RESPOND_ACTIONS


# ============================================================================
# OUTPUT
# ============================================================================

class ProposalMilestoneSerializer(serializers.ModelSerializer):

    class Meta:
        model = ProposalMilestone
        fields = ['id', 'position', 'title', 'amount_gross', 'duration_days']
        read_only_fields = fields


class ProposalSerializer(serializers.ModelSerializer):
    """Full proposal with its milestones and derived negotiation flags."""

    milestones = ProposalMilestoneSerializer(many=True, read_only=True)
    total_net = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    display_status = serializers.CharField(read_only=True)
    accepted_by_client = serializers.BooleanField(read_only=True)
    accepted_by_freelancer = serializers.BooleanField(read_only=True)
    is_head = serializers.SerializerMethodField()
    contract_id = serializers.SerializerMethodField()

    class Meta:
        model = Proposal
        fields = [
            'id',
            'chain',
            'root',
            'supersedes',
            'job_id',
            'client',
            'freelancer',
            'offered_by',
            'origin',
            'currency',
            'total_gross',
            'total_net',
            'platform_fee_percent',
            'message',
            'status',
            'display_status',
            'accepted_by_client',
            'accepted_by_freelancer',
            'is_head',
            'contract_id',
            'created_at',
            'decided_at',
            'valid_until',
            'conversation_ref',
            'milestones',
        ]
        read_only_fields = fields

    def get_is_head(self, obj):
        return obj.chain.head_id == obj.pk

    def get_contract_id(self, obj):
        contract = getattr(obj, 'contract', None)
        return contract.pk if contract else None


# ============================================================================
# INPUT
# ============================================================================

class ProposalCreateSerializer(serializers.Serializer):
    job_id = serializers.IntegerField(min_value=1)
    client_id = serializers.IntegerField(min_value=1)
    freelancer_id = serializers.IntegerField(min_value=1)
    offered_by = serializers.ChoiceField(choices=PartyRole.choices)
    milestones = serializers.ListField(child=serializers.DictField(), allow_empty=True)
    total = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    currency = serializers.CharField(required=False, allow_blank=True, max_length=10)
    fee_percent = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    message = serializers.CharField(required=False, allow_blank=True, default='')
    origin = serializers.ChoiceField(choices=Proposal.Origin.choices, default=Proposal.Origin.CHAT)
    valid_until = serializers.DateTimeField(required=False, allow_null=True)
    conversation_ref = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')


class RespondSerializer(serializers.Serializer):
    actor = serializers.ChoiceField(choices=PartyRole.choices)
    action = serializers.ChoiceField(choices=[a.value for a in RESPOND_ACTIONS])


class CounterSerializer(serializers.Serializer):
    actor = serializers.ChoiceField(choices=PartyRole.choices)
    milestones = serializers.ListField(child=serializers.DictField(), allow_empty=True)
    total = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    message = serializers.CharField(required=False, allow_blank=True, default='')
