"""
里程碑付款引擎

根据报价总额把款项拆分为 4 期（M1..M4），并按勘察/安装进度和已付款记录计算每期状态：
LOCKED（未解锁） / DUE（待支付） / PAID（已支付）。

规则：
1. 前 3 期按比例四舍五入到整数，最后一期承担尾差，4 期合计严格等于报价总额；
2. 某期已有完成的付款记录即为 PAID，且永久有效；
3. 每期只有在上一期已付、且安装进度达到要求时才变为 DUE；任意时刻最多一期 DUE。
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured, ValidationError
from django.db import IntegrityError, transaction

from backend.apps.customer_management.services.crm_store import get_customer
from backend.apps.customer_management.services.customer_lifecycle import sync_installation_ready
from backend.apps.settlement_center.models import Payment
from backend.apps.system_management.audit import audit_event
from backend.core.exceptions import AmountMismatch, DuplicatePayment, InvalidTransition
from backend.core.statuses import (
    InstallationStatus as IS,
    MilestoneId,
    MilestoneStatus,
    PaymentStatus,
    QuotationStatus,
    SurveyStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_MILESTONE_SCHEDULE = [
    {'id': 'M1', 'name': 'Survey Completion', 'description': '勘察完成后支付首期款', 'weight': '0.25', 'due_offset_days': 0},
    {'id': 'M2', 'name': 'Installation Start', 'description': '安装开工前支付', 'weight': '0.40', 'due_offset_days': 15},
    {'id': 'M3', 'name': 'Installation Completion', 'description': '安装完成后支付', 'weight': '0.25', 'due_offset_days': 45},
    {'id': 'M4', 'name': 'Commissioning', 'description': '质检通过、调试并网时支付尾款', 'weight': '0.10', 'due_offset_days': 60},
]

# 每期变为 DUE 所需的安装进度（M1 单独判断）
M2_INSTALLATION_STATUSES = frozenset({
    IS.INSTALLATION_READY, IS.INSTALLATION_SCHEDULED, IS.INSTALLATION_STARTED, IS.INSTALLATION_COMPLETED,
    IS.QC_PENDING, IS.QC_APPROVED, IS.QC_REJECTED, IS.COMMISSIONING, IS.COMPLETED,
})
M3_INSTALLATION_STATUSES = frozenset({
    IS.INSTALLATION_COMPLETED, IS.QC_PENDING, IS.QC_APPROVED, IS.QC_REJECTED, IS.COMMISSIONING, IS.COMPLETED,
})
M4_INSTALLATION_STATUSES = frozenset({IS.QC_APPROVED, IS.COMMISSIONING, IS.COMPLETED})

UNIT = Decimal('1')


@dataclass(frozen=True)
class MilestoneSpec:
    """里程碑配置项"""
    id: str
    name: str
    description: str
    weight: Decimal
    due_offset_days: int


@dataclass
class Milestone:
    """计算得到的一期付款"""
    id: str
    name: str
    description: str
    weight: Decimal
    amount: Decimal
    status: str
    due_date: Optional[date] = None
    paid_on: Optional[date] = None
    payment_id: Optional[int] = None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'percentage': int((self.weight * 100).to_integral_value(rounding=ROUND_HALF_UP)),
            'amount': self.amount,
            'status': self.status,
            'due_date': self.due_date,
            'paid_on': self.paid_on,
            'payment_id': self.payment_id,
        }


@dataclass
class PaymentResult:
    """付款登记结果；created=False 表示同一幂等键的重试，返回已有记录"""
    payment: Payment
    created: bool = True
    milestones: List[Milestone] = field(default_factory=list)


def get_schedule(schedule=None) -> List[MilestoneSpec]:
    """
    读取并校验里程碑配置

    Args:
        schedule: 显式传入的配置；为 None 时读取 settings.SOLAR_MILESTONE_SCHEDULE

    Raises:
        ImproperlyConfigured: 条目不是 M1..M4 四项，或比例之和不等于 1.00
    """
    raw = schedule if schedule is not None else getattr(settings, 'SOLAR_MILESTONE_SCHEDULE', DEFAULT_MILESTONE_SCHEDULE)
    if len(raw) != len(MilestoneId.values):
        raise ImproperlyConfigured(f"里程碑配置必须正好 {len(MilestoneId.values)} 项，当前 {len(raw)} 项")

    specs = []
    for expected_id, entry in zip(MilestoneId.values, raw):
        if entry.get('id') != expected_id:
            raise ImproperlyConfigured(f"里程碑配置顺序错误：期望 {expected_id}，实际 {entry.get('id')}")
        weight = Decimal(str(entry['weight']))
        offset = int(entry.get('due_offset_days', 0))
        if weight <= 0 or offset < 0:
            raise ImproperlyConfigured(f"里程碑 {expected_id} 的比例或到期天数不合法")
        specs.append(MilestoneSpec(
            id=expected_id,
            name=entry.get('name', expected_id),
            description=entry.get('description', ''),
            weight=weight,
            due_offset_days=offset,
        ))

    total_weight = sum((s.weight for s in specs), Decimal('0'))
    if total_weight != Decimal('1'):
        raise ImproperlyConfigured(f"里程碑比例之和必须为 1.00，当前为 {total_weight}")
    return specs


def split_amounts(quotation_total, specs: List[MilestoneSpec]) -> List[Decimal]:
    """按比例拆分金额：前几期四舍五入到整数，最后一期承担尾差"""
    total = Decimal(str(quotation_total))
    amounts = [(total * s.weight).quantize(UNIT, rounding=ROUND_HALF_UP) for s in specs[:-1]]
    amounts.append(total - sum(amounts, Decimal('0')))
    return amounts


def _gate_open(milestone_id: str, survey_status: str, installation_status: str) -> bool:
    """该期的进度条件是否满足（不含上一期是否已付）"""
    if milestone_id == MilestoneId.M1:
        return (
            survey_status in (SurveyStatus.COMPLETED, SurveyStatus.APPROVED)
            or installation_status == IS.QUOTATION_READY
        )
    if milestone_id == MilestoneId.M2:
        return installation_status in M2_INSTALLATION_STATUSES
    if milestone_id == MilestoneId.M3:
        return installation_status in M3_INSTALLATION_STATUSES
    return installation_status in M4_INSTALLATION_STATUSES


def compute_milestones(
    quotation_total,
    survey_status: str,
    installation_status: str,
    payments=(),
    *,
    anchor_date: Optional[date] = None,
    schedule=None,
) -> List[Milestone]:
    """
    计算 4 期里程碑（纯函数）

    Args:
        quotation_total: 报价总额
        survey_status: 勘察状态
        installation_status: 安装状态
        payments: 付款记录（带 milestone_id / status / created_time / id 属性）
        anchor_date: 到期日计算基准（报价单创建日期）
        schedule: 里程碑配置（可选）

    Returns:
        按 M1..M4 排序的 Milestone 列表
    """
    specs = get_schedule(schedule)
    amounts = split_amounts(quotation_total, specs)

    paid = {}
    for payment in payments:
        if payment.status == PaymentStatus.COMPLETED and payment.milestone_id not in paid:
            paid[payment.milestone_id] = payment

    milestones = []
    previous_paid = True
    for spec, amount in zip(specs, amounts):
        payment = paid.get(spec.id)
        if payment is not None:
            status = MilestoneStatus.PAID
        elif previous_paid and _gate_open(spec.id, survey_status, installation_status):
            status = MilestoneStatus.DUE
        else:
            status = MilestoneStatus.LOCKED
        previous_paid = payment is not None

        created_time = getattr(payment, 'created_time', None)
        milestones.append(Milestone(
            id=spec.id,
            name=spec.name,
            description=spec.description,
            weight=spec.weight,
            amount=amount,
            status=status,
            due_date=anchor_date + timedelta(days=spec.due_offset_days) if anchor_date else None,
            paid_on=created_time.date() if created_time else None,
            payment_id=getattr(payment, 'id', None),
        ))
    return milestones


def milestone_summary(milestones: List[Milestone]) -> dict:
    """合计、已付、未付余额及当前待付期"""
    total = sum((m.amount for m in milestones), Decimal('0'))
    total_paid = sum((m.amount for m in milestones if m.status == MilestoneStatus.PAID), Decimal('0'))
    due = next((m.id for m in milestones if m.status == MilestoneStatus.DUE), None)
    return {
        'total': total,
        'total_paid': total_paid,
        'balance': total - total_paid,
        'due_milestone': due,
    }


def list_payments(customer):
    """客户的已完成付款记录"""
    return Payment.objects.filter(customer_id=customer.pk, status=PaymentStatus.COMPLETED).order_by('created_time', 'id')


def customer_milestones(customer, schedule=None) -> List[Milestone]:
    """按客户最新报价单计算里程碑；没有报价单时返回空列表"""
    quotation = customer.latest_quotation
    if quotation is None:
        return []
    return compute_milestones(
        quotation.total,
        customer.survey_status,
        customer.installation_status,
        list_payments(customer),
        anchor_date=quotation.created_time.date(),
        schedule=schedule,
    )


@transaction.atomic
def record_payment(
    customer,
    milestone_id: str,
    amount,
    actor=None,
    idempotency_key: Optional[str] = None,
    reference: str = '',
) -> PaymentResult:
    """
    登记一期付款

    在客户行锁内校验：最新报价单已终审通过，该期必须是 DUE，金额必须等于应付金额。
    携带相同 idempotency_key 的重试直接返回已有记录，不会重复扣款。

    Raises:
        DuplicatePayment: 该期已付款，或幂等键已用于其他付款
        AmountMismatch: 金额与应付金额不一致
        InvalidTransition: 该期尚未解锁，客户没有报价单，或报价单未终审通过
        ValidationError: 里程碑编号不合法
    """
    if milestone_id not in MilestoneId.values:
        raise ValidationError(f"未知的里程碑: {milestone_id}", code="invalid_milestone")

    locked = get_customer(customer.pk, for_update=True)

    if idempotency_key:
        existing = Payment.objects.filter(idempotency_key=idempotency_key).first()
        if existing is not None:
            if existing.customer_id != locked.pk or existing.milestone_id != milestone_id:
                logger.warning(f"幂等键冲突: key={idempotency_key} 已用于 {existing.customer_id}/{existing.milestone_id}")
                raise DuplicatePayment(f"幂等键 {idempotency_key} 已用于其他付款")
            logger.info(f"付款重试，返回已有记录: customer={locked.pk} {milestone_id} key={idempotency_key}")
            return PaymentResult(payment=existing, created=False, milestones=customer_milestones(locked))

    if locked.latest_quotation is None:
        raise InvalidTransition(f"客户 {locked.pk} 没有报价单，不能付款")
    if locked.latest_quotation_status != QuotationStatus.FINAL_APPROVED:
        raise InvalidTransition(f"客户 {locked.pk} 的报价单尚未终审通过（{locked.latest_quotation_status}），不能付款")

    milestones = customer_milestones(locked)
    milestone = next(m for m in milestones if m.id == milestone_id)
    if milestone.status == MilestoneStatus.PAID:
        logger.warning(f"重复付款被拒绝: customer={locked.pk} {milestone_id}")
        raise DuplicatePayment(f"里程碑 {milestone_id} 已付款")
    if milestone.status != MilestoneStatus.DUE:
        raise InvalidTransition(f"里程碑 {milestone_id} 尚未解锁，不能付款")

    amount = Decimal(str(amount))
    if amount != milestone.amount:
        logger.warning(f"付款金额不符被拒绝: customer={locked.pk} {milestone_id} 应付={milestone.amount} 实付={amount}")
        raise AmountMismatch(f"里程碑 {milestone_id} 应付 {milestone.amount}，实付 {amount}")

    try:
        with transaction.atomic():
            payment = Payment.objects.create(
                customer=locked,
                quotation=locked.latest_quotation,
                milestone_id=milestone_id,
                amount=amount,
                currency=locked.latest_quotation.currency,
                status=PaymentStatus.COMPLETED,
                idempotency_key=idempotency_key or uuid.uuid4().hex,
                reference=reference or '',
                created_by=actor,
            )
    except IntegrityError:
        logger.warning(f"付款唯一约束冲突: customer={locked.pk} {milestone_id}")
        raise DuplicatePayment(f"里程碑 {milestone_id} 已付款")

    audit_event(
        actor, 'Payment', payment.pk, 'record_payment',
        from_status=MilestoneStatus.DUE, to_status=MilestoneStatus.PAID,
        meta={'customer_id': locked.pk, 'milestone_id': milestone_id, 'amount': str(amount)},
    )
    logger.info(f"付款已登记: customer={locked.pk} {milestone_id} 金额={amount}")

    if milestone_id == MilestoneId.M1:
        sync_installation_ready(locked, actor)
        locked.refresh_from_db()

    return PaymentResult(payment=payment, created=True, milestones=customer_milestones(locked))
