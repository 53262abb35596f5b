"""
工序流程序列化器
"""
from rest_framework import serializers

from .models import WorkflowStep


class WorkflowStepSerializer(serializers.ModelSerializer):
    """阶段工序序列化器（只读）"""
    phase_display = serializers.CharField(source='get_phase_display', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    completed_by_name = serializers.CharField(source='completed_by.username', read_only=True, default=None)

    class Meta:
        model = WorkflowStep
        fields = [
            'id', 'customer', 'phase', 'phase_display', 'step_key', 'label', 'sequence',
            'status', 'status_display', 'started_time', 'completed_by', 'completed_by_name',
            'completed_time', 'notes',
        ]
        read_only_fields = fields


class StepCompleteSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')
