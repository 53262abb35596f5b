"""
工序流程数据模型

每个客户在每个阶段（勘察 / 安装 / 调试 / 运行）有一组有序工序，
首次进入阶段时按模板生成；工序只能 pending → in_progress → completed 单向推进。
"""
from django.db import models

from backend.apps.customer_management.models import Customer
from backend.apps.system_management.models import User
from backend.core.statuses import Phase, StepStatus


class WorkflowStep(models.Model):
    """阶段工序"""
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name='workflow_steps', verbose_name='客户')
    phase = models.CharField(max_length=20, choices=Phase.choices, verbose_name='阶段')
    step_key = models.CharField(max_length=50, verbose_name='工序标识')
    label = models.CharField(max_length=200, verbose_name='工序名称')
    sequence = models.IntegerField(default=1, verbose_name='工序顺序', help_text='数字越小越靠前')
    status = models.CharField(max_length=20, choices=StepStatus.choices, default=StepStatus.PENDING, verbose_name='状态')

    started_time = models.DateTimeField(null=True, blank=True, verbose_name='开始时间')
    completed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='completed_workflow_steps',
        verbose_name='完成人'
    )
    completed_time = models.DateTimeField(null=True, blank=True, verbose_name='完成时间')
    notes = models.TextField(blank=True, verbose_name='备注')

    class Meta:
        db_table = 'workflow_phase_step'
        verbose_name = '阶段工序'
        verbose_name_plural = verbose_name
        ordering = ['customer', 'phase', 'sequence']
        constraints = [
            models.UniqueConstraint(fields=['customer', 'phase', 'step_key'], name='uniq_workflow_step_per_phase'),
        ]
        indexes = [
            models.Index(fields=['customer', 'phase', 'status'], name='workflow_step_status_idx'),
        ]

    def __str__(self):
        return f"{self.customer_id} - {self.get_phase_display()} - {self.label}"
