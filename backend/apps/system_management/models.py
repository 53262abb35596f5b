from django.db import models
from django.contrib.auth.models import AbstractUser
from django.utils import timezone

from backend.core.statuses import UserRole


class User(AbstractUser):
    """扩展用户模型"""
    phone = models.CharField(max_length=20, blank=True, verbose_name='手机号')
    role = models.CharField(max_length=30, choices=UserRole.choices, default=UserRole.CUSTOMER, verbose_name='角色')
    plant_code = models.CharField(max_length=50, blank=True, verbose_name='所属电站')
    region_code = models.CharField(max_length=50, blank=True, verbose_name='所属区域')
    created_time = models.DateTimeField(default=timezone.now, verbose_name='创建时间')
    updated_time = models.DateTimeField(auto_now=True, verbose_name='更新时间')

    class Meta:
        db_table = 'system_user'
        verbose_name = '用户'
        verbose_name_plural = verbose_name

    def __str__(self):
        return f"{self.username} - {self.get_role_display()}"

    def has_role(self, *roles):
        return self.role in roles


class AuditLog(models.Model):
    """状态变更审计日志（只追加）"""
    actor = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs',
        verbose_name='操作人',
        help_text='为空表示系统自动操作'
    )
    actor_role = models.CharField(max_length=30, blank=True, verbose_name='操作人角色')
    action = models.CharField(max_length=50, verbose_name='动作')
    entity = models.CharField(max_length=50, verbose_name='对象类型', help_text='如 Quotation、Customer、WorkflowStep')
    entity_id = models.CharField(max_length=64, verbose_name='对象ID')
    phase = models.CharField(max_length=20, blank=True, verbose_name='阶段')
    from_status = models.CharField(max_length=50, blank=True, verbose_name='原状态')
    to_status = models.CharField(max_length=50, blank=True, verbose_name='新状态')
    meta = models.JSONField(default=dict, blank=True, verbose_name='附加信息')
    created_time = models.DateTimeField(default=timezone.now, verbose_name='发生时间')

    class Meta:
        db_table = 'system_audit_log'
        verbose_name = '审计日志'
        verbose_name_plural = verbose_name
        ordering = ['-created_time']
        indexes = [
            models.Index(fields=['entity', 'entity_id'], name='system_audi_entity_7c1f2e_idx'),
            models.Index(fields=['action'], name='system_audi_action_3b9d41_idx'),
        ]

    def __str__(self):
        return f"{self.entity}:{self.entity_id} {self.from_status} → {self.to_status}"
