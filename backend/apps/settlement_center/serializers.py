"""
结算中心序列化器
"""
from rest_framework import serializers

from .models import Payment
from backend.core.statuses import MilestoneId


class PaymentSerializer(serializers.ModelSerializer):
    """付款记录序列化器（只读）"""
    milestone_display = serializers.CharField(source='get_milestone_id_display', read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id', 'customer', 'quotation', 'milestone_id', 'milestone_display', 'amount', 'currency',
            'status', 'idempotency_key', 'reference', 'created_by', 'created_time',
        ]
        read_only_fields = fields


class MilestoneSerializer(serializers.Serializer):
    """计算得到的里程碑"""
    id = serializers.CharField()
    name = serializers.CharField()
    description = serializers.CharField()
    percentage = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    status = serializers.CharField()
    due_date = serializers.DateField(allow_null=True)
    paid_on = serializers.DateField(allow_null=True)
    payment_id = serializers.IntegerField(allow_null=True)


class PaymentCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    idempotency_key = serializers.CharField(max_length=100, required=False, allow_blank=True)
    reference = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')

    def validate(self, attrs):
        milestone_id = self.context.get('milestone_id')
        if milestone_id not in MilestoneId.values:
            raise serializers.ValidationError({'milestone_id': f'未知的里程碑: {milestone_id}'})
        return attrs
