"""
客户管理模块Django Admin配置
"""
from django.contrib import admin

from .models import Customer, Quotation, QuotationApproval
from .services.lifecycle_status import resolve
from backend.core.admin_base import LifecycleStatusAdminMixin, ReadOnlyAdminMixin


class QuotationApprovalInline(admin.TabularInline):
    model = QuotationApproval
    extra = 0
    can_delete = False
    readonly_fields = ('action', 'actor', 'role', 'from_status', 'to_status', 'remarks', 'created_time')

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Customer)
class CustomerAdmin(LifecycleStatusAdminMixin, admin.ModelAdmin):
    """光伏客户"""
    list_display = ('id', 'name', 'phone', 'city', 'survey_status', 'installation_status', 'latest_quotation_status', 'canonical_status', 'created_time')
    list_filter = ('survey_status', 'installation_status', 'latest_quotation_status', 'property_type', 'plant_code')
    search_fields = ('name', 'phone', 'email', 'city')
    raw_id_fields = ('user', 'created_by', 'latest_quotation')
    status_fields = (
        'survey_status', 'installation_status', 'latest_quotation', 'latest_quotation_status',
        'assigned_survey_team_id', 'assigned_team_id',
    )

    @admin.display(description='统一状态')
    def canonical_status(self, obj):
        return resolve(obj)


@admin.register(Quotation)
class QuotationAdmin(LifecycleStatusAdminMixin, admin.ModelAdmin):
    """报价单"""
    list_display = ('quotation_number', 'customer', 'total', 'currency', 'status', 'version', 'created_time')
    list_filter = ('status', 'currency')
    search_fields = ('quotation_number', 'customer__name')
    raw_id_fields = ('customer', 'created_by')
    status_fields = ('quotation_number', 'status', 'rejection_reason', 'version')
    inlines = [QuotationApprovalInline]


@admin.register(QuotationApproval)
class QuotationApprovalAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """报价审批记录（只读）"""
    list_display = ('quotation', 'action', 'actor', 'role', 'from_status', 'to_status', 'created_time')
    list_filter = ('action', 'to_status')
    search_fields = ('quotation__quotation_number',)
