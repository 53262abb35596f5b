"""
客户管理模块数据模型

客户（线索）、报价单及报价审批记录。状态字段只能通过服务层流转。
"""
from django.db import models
from django.db.models import Max
from django.utils import timezone

from backend.apps.system_management.models import User
from backend.core.statuses import (
    SurveyStatus,
    InstallationStatus,
    QuotationStatus,
    UserRole,
)


class Customer(models.Model):
    """光伏安装客户（线索）"""
    PROPERTY_TYPE_CHOICES = [
        ('residential', '住宅'),
        ('commercial', '商业'),
        ('industrial', '工业'),
    ]

    # 基本信息
    name = models.CharField(max_length=200, verbose_name='客户名称')
    phone = models.CharField(max_length=20, blank=True, verbose_name='联系电话')
    email = models.EmailField(blank=True, verbose_name='邮箱')
    city = models.CharField(max_length=100, blank=True, verbose_name='城市')
    state = models.CharField(max_length=100, blank=True, verbose_name='省/邦')
    property_type = models.CharField(max_length=20, choices=PROPERTY_TYPE_CHOICES, default='residential', verbose_name='物业类型')
    monthly_bill = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True, verbose_name='月电费')
    user = models.OneToOneField(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='solar_customer',
        verbose_name='客户账号'
    )
    plant_code = models.CharField(max_length=50, blank=True, verbose_name='所属电站')

    # 子状态
    survey_status = models.CharField(max_length=20, choices=SurveyStatus.choices, default=SurveyStatus.PENDING, verbose_name='勘察状态')
    installation_status = models.CharField(max_length=30, choices=InstallationStatus.choices, default=InstallationStatus.ONBOARDED, verbose_name='安装状态')
    latest_quotation = models.ForeignKey(
        'Quotation',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name='最新报价单'
    )
    latest_quotation_status = models.CharField(
        max_length=20,
        choices=QuotationStatus.choices,
        blank=True,
        null=True,
        verbose_name='最新报价状态',
        help_text='与最新报价单状态保持同步'
    )

    # 班组分配（外部班组服务提供的ID）
    assigned_survey_team_id = models.IntegerField(null=True, blank=True, verbose_name='勘察班组ID')
    assigned_team_id = models.IntegerField(null=True, blank=True, verbose_name='安装班组ID')

    # 系统字段
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_solar_customers',
        verbose_name='创建人'
    )
    created_time = models.DateTimeField(default=timezone.now, verbose_name='创建时间')
    updated_time = models.DateTimeField(auto_now=True, verbose_name='更新时间')

    class Meta:
        db_table = 'solar_customer'
        verbose_name = '光伏客户'
        verbose_name_plural = verbose_name
        ordering = ['-created_time']
        indexes = [
            models.Index(fields=['survey_status'], name='solar_cust_survey_idx'),
            models.Index(fields=['installation_status'], name='solar_cust_install_idx'),
        ]

    def __str__(self):
        return f"{self.id} - {self.name}"


class Quotation(models.Model):
    """报价单"""
    quotation_number = models.CharField(max_length=50, unique=True, verbose_name='报价单号', help_text='格式：QT-{YYYYMMDD}-{序列号}')
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='quotations', verbose_name='客户')
    total = models.DecimalField(max_digits=14, decimal_places=2, verbose_name='报价总额')
    currency = models.CharField(max_length=10, default='INR', verbose_name='币种')
    proposed_capacity_kw = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True, verbose_name='装机容量(kW)')
    status = models.CharField(max_length=20, choices=QuotationStatus.choices, default=QuotationStatus.DRAFT, verbose_name='审批状态')
    rejection_reason = models.TextField(blank=True, verbose_name='驳回原因')
    version = models.PositiveIntegerField(default=1, verbose_name='版本号', help_text='每次状态变更自增，用于乐观并发控制')

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_solar_quotations',
        verbose_name='创建人'
    )
    created_time = models.DateTimeField(default=timezone.now, verbose_name='创建时间', help_text='里程碑到期日的计算基准')
    updated_time = models.DateTimeField(auto_now=True, verbose_name='更新时间')

    class Meta:
        db_table = 'solar_quotation'
        verbose_name = '报价单'
        verbose_name_plural = verbose_name
        ordering = ['-created_time']
        indexes = [
            models.Index(fields=['customer', 'status'], name='solar_quot_cust_status_idx'),
        ]

    def __str__(self):
        return f"{self.quotation_number} - ₹{self.total}"

    @property
    def current_approver_role(self):
        """当前待审批角色"""
        return {
            QuotationStatus.SUBMITTED: UserRole.PLANT_ADMIN,
            QuotationStatus.PLANT_APPROVED: UserRole.REGION_ADMIN,
            QuotationStatus.REGION_APPROVED: UserRole.SUPER_ADMIN,
        }.get(self.status)

    def generate_quotation_number(self):
        """生成报价单号：QT-{YYYYMMDD}-{序列号}"""
        pattern = f"QT-{timezone.now().strftime('%Y%m%d')}-"
        max_number = Quotation.objects.filter(
            quotation_number__startswith=pattern
        ).aggregate(max_num=Max('quotation_number'))['max_num']

        if max_number:
            try:
                seq = int(max_number.split('-')[-1]) + 1
            except (ValueError, IndexError):
                seq = 1
        else:
            seq = 1
        return f"{pattern}{seq:04d}"

    def save(self, *args, **kwargs):
        if not self.quotation_number:
            self.quotation_number = self.generate_quotation_number()
        super().save(*args, **kwargs)


class QuotationApproval(models.Model):
    """报价审批记录（提交 / 审批 / 驳回）"""
    ACTION_CHOICES = [
        ('submit', '提交'),
        ('approve', '审批通过'),
        ('reject', '驳回'),
    ]

    quotation = models.ForeignKey(Quotation, on_delete=models.CASCADE, related_name='approvals', verbose_name='报价单')
    action = models.CharField(max_length=20, choices=ACTION_CHOICES, verbose_name='动作')
    actor = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='solar_quotation_approvals',
        verbose_name='操作人',
        help_text='为空表示系统自动提交'
    )
    role = models.CharField(max_length=30, blank=True, verbose_name='操作时角色')
    from_status = models.CharField(max_length=20, choices=QuotationStatus.choices, verbose_name='原状态')
    to_status = models.CharField(max_length=20, choices=QuotationStatus.choices, verbose_name='新状态')
    remarks = models.TextField(blank=True, verbose_name='备注')
    created_time = models.DateTimeField(default=timezone.now, verbose_name='操作时间')

    class Meta:
        db_table = 'solar_quotation_approval'
        verbose_name = '报价审批记录'
        verbose_name_plural = verbose_name
        ordering = ['created_time', 'id']

    def __str__(self):
        return f"{self.quotation.quotation_number} - {self.get_action_display()} - {self.from_status} → {self.to_status}"
