# -*- coding: utf-8 -*-
"""
Django Admin 统一基类和混入类
提供标准化的Admin配置，确保所有模块的Admin配置风格一致
"""

from django.contrib import admin


class BaseAdminMixin:
    """
    Admin基类混入，提供通用的配置和方法
    """
    list_per_page = 50
    list_max_show_all = 200
    preserve_filters = True

    def get_readonly_fields(self, request, obj=None):
        """统一处理只读字段：时间字段始终只读"""
        readonly = list(super().get_readonly_fields(request, obj))
        model_fields = {f.name for f in self.model._meta.get_fields()}
        for name in ('created_time', 'updated_time'):
            if name in model_fields and name not in readonly:
                readonly.append(name)
        return readonly


class LifecycleStatusAdminMixin(BaseAdminMixin):
    """
    状态字段只读混入
    状态只能通过服务层流转（保证审计与并发控制），后台不允许直接修改
    """
    status_fields = ()

    def get_readonly_fields(self, request, obj=None):
        readonly = super().get_readonly_fields(request, obj)
        for name in self.status_fields:
            if name not in readonly:
                readonly.append(name)
        return readonly


class ReadOnlyAdminMixin(BaseAdminMixin):
    """
    只读Admin混入，用于只追加的模型（付款记录、审计日志）
    """
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class BaseModelAdmin(BaseAdminMixin, admin.ModelAdmin):
    """标准 ModelAdmin"""
    pass
