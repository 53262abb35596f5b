"""
结算中心数据模型

付款流水只追加：已完成的付款记录是"里程碑已支付"这一事实的唯一来源，不允许修改或删除。
"""
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from backend.apps.customer_management.models import Customer, Quotation
from backend.apps.system_management.models import User
from backend.core.statuses import MilestoneId, PaymentStatus


class Payment(models.Model):
    """里程碑付款记录"""
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='payments', verbose_name='客户')
    quotation = models.ForeignKey(Quotation, on_delete=models.PROTECT, related_name='payments', verbose_name='报价单')
    milestone_id = models.CharField(max_length=5, choices=MilestoneId.choices, verbose_name='里程碑')
    amount = models.DecimalField(max_digits=14, decimal_places=2, verbose_name='付款金额')
    currency = models.CharField(max_length=10, default='INR', verbose_name='币种')
    status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.COMPLETED, verbose_name='状态')
    idempotency_key = models.CharField(
        max_length=100,
        unique=True,
        verbose_name='幂等键',
        help_text='客户端重试时携带同一个键，不会重复扣款'
    )
    reference = models.CharField(max_length=200, blank=True, verbose_name='支付流水号')
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='solar_payments',
        verbose_name='付款人'
    )
    created_time = models.DateTimeField(default=timezone.now, verbose_name='付款时间')

    class Meta:
        db_table = 'settlement_milestone_payment'
        verbose_name = '里程碑付款'
        verbose_name_plural = verbose_name
        ordering = ['customer', 'milestone_id', 'created_time']
        constraints = [
            models.UniqueConstraint(
                fields=['customer', 'milestone_id'],
                condition=Q(status=PaymentStatus.COMPLETED),
                name='uniq_completed_payment_per_milestone',
            ),
        ]
        indexes = [
            models.Index(fields=['customer', 'status'], name='settle_pay_cust_status_idx'),
        ]

    def __str__(self):
        return f"{self.customer_id} - {self.milestone_id} - ₹{self.amount}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("付款记录只允许追加，不能修改")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("付款记录只允许追加，不能删除")
