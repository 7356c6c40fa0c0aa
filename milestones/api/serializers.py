"""
Milestones Serializers - DRF serializers for API endpoints.
"""

from rest_framework import serializers

from milestones.models import Milestone, MilestoneSubmission


class MilestoneSubmissionSerializer(serializers.ModelSerializer):

    class Meta:
        model = MilestoneSubmission
        fields = [
            'id',
            'milestone',
            'version',
            'submitted_by',
            'submission_url',
            'notes',
            'status',
            'submitted_at',
            'decided_at',
            'decided_by',
            'decision_reason',
        ]
        read_only_fields = fields


class MilestoneSerializer(serializers.ModelSerializer):
    """Milestone with its review state."""

    escrow_status = serializers.SerializerMethodField()

    class Meta:
        model = Milestone
        fields = [
            'id',
            'contract',
            'position',
            'title',
            'amount_gross',
            'status',
            'due_at',
            'due_date',
            'client_confirm_deadline_at',
            'submitted_at',
            'approved_at',
            'rejected_at',
            'latest_submission',
            'escrow_status',
            'version',
        ]
        read_only_fields = fields

    def get_escrow_status(self, obj):
        escrow = getattr(obj, 'escrow_payment', None)
        return escrow.status if escrow else None


class MilestoneDetailSerializer(MilestoneSerializer):
    submissions = MilestoneSubmissionSerializer(many=True, read_only=True)

    class Meta(MilestoneSerializer.Meta):
        fields = MilestoneSerializer.Meta.fields + ['submissions']
        read_only_fields = fields


class SubmitSerializer(serializers.Serializer):
    url = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class DecideSerializer(serializers.Serializer):
    submission_id = serializers.IntegerField(min_value=1)
    decision = serializers.ChoiceField(choices=['approve', 'reject'])
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class AutoSettleSerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False, min_value=1, max_value=1000, default=200)
