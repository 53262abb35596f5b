"""
结算中心Django Admin配置
"""
from django.contrib import admin

from .models import Payment
from backend.core.admin_base import ReadOnlyAdminMixin


@admin.register(Payment)
class PaymentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """里程碑付款（只追加，后台只读）"""
    list_display = ('id', 'customer', 'milestone_id', 'amount', 'currency', 'status', 'created_by', 'created_time')
    list_filter = ('milestone_id', 'status')
    search_fields = ('customer__name', 'idempotency_key', 'reference')
    raw_id_fields = ('customer', 'quotation', 'created_by')
    date_hierarchy = 'created_time'
