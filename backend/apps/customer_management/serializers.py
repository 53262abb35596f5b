"""
客户管理模块序列化器
"""
from rest_framework import serializers

from .models import Customer, Quotation, QuotationApproval
from .services.lifecycle_status import resolve


class CustomerSerializer(serializers.ModelSerializer):
    """客户序列化器（状态字段只读，只能通过生命周期动作变更）"""
    canonical_status = serializers.SerializerMethodField()
    latest_quotation_number = serializers.CharField(source='latest_quotation.quotation_number', read_only=True, default=None)

    class Meta:
        model = Customer
        fields = [
            'id', 'name', 'phone', 'email', 'city', 'state', 'property_type', 'monthly_bill',
            'user', 'plant_code',
            'survey_status', 'installation_status', 'latest_quotation', 'latest_quotation_number',
            'latest_quotation_status', 'assigned_survey_team_id', 'assigned_team_id',
            'canonical_status', 'created_by', 'created_time', 'updated_time',
        ]
        read_only_fields = (
            'survey_status', 'installation_status', 'latest_quotation', 'latest_quotation_status',
            'assigned_survey_team_id', 'assigned_team_id', 'created_by', 'created_time', 'updated_time',
        )

    def get_canonical_status(self, obj):
        return resolve(obj)


class QuotationSerializer(serializers.ModelSerializer):
    """报价单序列化器"""
    current_approver_role = serializers.CharField(read_only=True)
    customer_name = serializers.CharField(source='customer.name', read_only=True)

    class Meta:
        model = Quotation
        fields = [
            'id', 'quotation_number', 'customer', 'customer_name', 'total', 'currency', 'proposed_capacity_kw',
            'status', 'rejection_reason', 'version', 'current_approver_role',
            'created_by', 'created_time', 'updated_time',
        ]
        read_only_fields = (
            'quotation_number', 'status', 'rejection_reason', 'version',
            'created_by', 'created_time', 'updated_time',
        )


class QuotationCreateSerializer(serializers.Serializer):
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.all())
    total = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    proposed_capacity_kw = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    currency = serializers.CharField(max_length=10, required=False, default='INR')
    auto_submit = serializers.BooleanField(required=False, default=False)


class QuotationApprovalSerializer(serializers.ModelSerializer):
    """报价审批记录序列化器"""
    actor_name = serializers.SerializerMethodField()
    action_display = serializers.CharField(source='get_action_display', read_only=True)

    class Meta:
        model = QuotationApproval
        fields = ['id', 'action', 'action_display', 'actor', 'actor_name', 'role', 'from_status', 'to_status', 'remarks', 'created_time']

    def get_actor_name(self, obj):
        if obj.actor is None:
            return '系统'
        return obj.actor.get_full_name() or obj.actor.username


class TeamAssignSerializer(serializers.Serializer):
    team_id = serializers.IntegerField(min_value=1)


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=False, trim_whitespace=True)


class ScheduleSerializer(serializers.Serializer):
    scheduled_date = serializers.DateField(required=False, allow_null=True)


class QCDecisionSerializer(serializers.Serializer):
    approved = serializers.BooleanField()
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class TransitionSerializer(serializers.Serializer):
    """状态变更结果"""
    old_status = serializers.CharField()
    new_status = serializers.CharField()
    changed = serializers.BooleanField()
    audit_recorded = serializers.BooleanField()
