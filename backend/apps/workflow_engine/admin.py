"""
工序流程Django Admin配置
"""
from django.contrib import admin

from .models import WorkflowStep
from backend.core.admin_base import LifecycleStatusAdminMixin


@admin.register(WorkflowStep)
class WorkflowStepAdmin(LifecycleStatusAdminMixin, admin.ModelAdmin):
    """阶段工序（状态只读，只能通过工序服务推进）"""
    list_display = ('customer', 'phase', 'sequence', 'label', 'status', 'completed_by', 'completed_time')
    list_filter = ('phase', 'status')
    search_fields = ('customer__name', 'label', 'step_key')
    raw_id_fields = ('customer', 'completed_by')
    status_fields = ('status', 'started_time', 'completed_by', 'completed_time')

    def has_add_permission(self, request):
        return False
