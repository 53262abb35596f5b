"""
系统管理模块Django Admin配置
"""
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin

from .models import User, AuditLog
from backend.core.admin_base import ReadOnlyAdminMixin


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    """用户管理"""
    list_display = ('username', 'first_name', 'last_name', 'role', 'plant_code', 'region_code', 'is_active')
    list_filter = ('role', 'is_active', 'is_staff')
    search_fields = ('username', 'first_name', 'last_name', 'phone', 'email')
    fieldsets = DjangoUserAdmin.fieldsets + (
        ('业务角色', {'fields': ('role', 'phone', 'plant_code', 'region_code')}),
    )


@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """审计日志（只读）"""
    list_display = ('created_time', 'entity', 'entity_id', 'action', 'from_status', 'to_status', 'actor', 'actor_role')
    list_filter = ('entity', 'action', 'phase')
    search_fields = ('entity_id', 'actor__username')
    date_hierarchy = 'created_time'
