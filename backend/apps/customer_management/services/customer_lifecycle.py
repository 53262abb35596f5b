"""
客户生命周期命令服务

勘察、报价创建、安装、质检、调试等命令都在这里完成状态流转。
所有 survey_status / installation_status 的变更必须通过此服务层，
每次变更都在客户行锁内完成并写入审计日志。
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.core.exceptions import ValidationError

from backend.apps.customer_management.models import Customer, Quotation
from backend.apps.customer_management.services.crm_store import get_customer, update_customer_status
from backend.apps.customer_management.services.quotation_approval import TransitionResult, submit
from backend.apps.system_management.audit import audit_event
from backend.core.exceptions import InvalidTransition
from backend.core.statuses import (
    InstallationStatus as IS,
    MilestoneId,
    PaymentStatus,
    Phase,
    QuotationStatus,
    SurveyStatus,
)

logger = logging.getLogger(__name__)

SURVEY_TRANSITIONS = {
    SurveyStatus.PENDING: {SurveyStatus.ASSIGNED},
    SurveyStatus.ASSIGNED: {SurveyStatus.COMPLETED},
    SurveyStatus.COMPLETED: {SurveyStatus.APPROVED, SurveyStatus.REJECTED},
    SurveyStatus.REJECTED: {SurveyStatus.ASSIGNED},
    SurveyStatus.APPROVED: set(),
}

INSTALLATION_TRANSITIONS = {
    IS.ONBOARDED: {IS.QUOTATION_READY},
    # 勘察被驳回时退回登记状态
    IS.QUOTATION_READY: {IS.INSTALLATION_READY, IS.ONBOARDED},
    IS.INSTALLATION_READY: {IS.INSTALLATION_SCHEDULED},
    IS.INSTALLATION_SCHEDULED: {IS.INSTALLATION_STARTED},
    IS.INSTALLATION_STARTED: {IS.INSTALLATION_COMPLETED},
    IS.INSTALLATION_COMPLETED: {IS.QC_PENDING},
    IS.QC_PENDING: {IS.QC_APPROVED, IS.QC_REJECTED},
    IS.QC_REJECTED: {IS.QC_PENDING},
    IS.QC_APPROVED: {IS.COMMISSIONING},
    IS.COMMISSIONING: {IS.COMPLETED},
    IS.COMPLETED: set(),
}

# 可以创建报价单的勘察状态
QUOTABLE_SURVEY_STATUSES = {SurveyStatus.COMPLETED, SurveyStatus.APPROVED}


def _transition(customer: Customer, field: str, table: dict, to_status: str, actor, action: str, meta=None) -> TransitionResult:
    """在客户行锁内按转移表变更一个子状态，并记录审计"""
    locked = get_customer(customer.pk, for_update=True)
    from_status = getattr(locked, field)
    if to_status not in table.get(from_status, set()):
        raise InvalidTransition(f"客户 {locked.pk} 的 {field} 不能从 {from_status} 变更为 {to_status}")

    update_customer_status(customer, **{field: to_status})
    audit_log = audit_event(
        actor, 'Customer', locked.pk, action,
        from_status=from_status, to_status=to_status, meta=meta,
    )
    logger.info(f"客户 {locked.pk} {field}: {from_status} → {to_status} ({action})")
    return TransitionResult(old_status=from_status, new_status=to_status, audit_recorded=audit_log is not None)


@transaction.atomic
def transition_survey_status(customer: Customer, to_status: str, actor=None, action: str = 'survey_status_changed', meta=None) -> TransitionResult:
    return _transition(customer, 'survey_status', SURVEY_TRANSITIONS, to_status, actor, action, meta)


@transaction.atomic
def transition_installation_status(customer: Customer, to_status: str, actor=None, action: str = 'installation_status_changed', meta=None) -> TransitionResult:
    """
    安装状态流转（只允许 INSTALLATION_TRANSITIONS 中列出的变更）

    Raises:
        InvalidTransition: 当前状态不允许变更到目标状态
    """
    return _transition(customer, 'installation_status', INSTALLATION_TRANSITIONS, to_status, actor, action, meta)


# ==================== 客户登记 ====================

@transaction.atomic
def onboard_customer(name: str, actor=None, user=None, **profile) -> Customer:
    """登记新客户（ONBOARDED / 勘察 PENDING）"""
    customer = Customer.objects.create(name=name, user=user, created_by=actor, **profile)
    audit_event(actor, 'Customer', customer.pk, 'onboard', to_status=IS.ONBOARDED)
    logger.info(f"客户已登记: {customer.pk} - {customer.name}")
    return customer


# ==================== 勘察 ====================

@transaction.atomic
def assign_survey(customer: Customer, survey_team_id: int, actor=None) -> TransitionResult:
    """分配勘察班组（PENDING / REJECTED → ASSIGNED），并初始化勘察工序"""
    from backend.apps.workflow_engine.services.step_machine import initialize_phase

    result = transition_survey_status(
        customer, SurveyStatus.ASSIGNED, actor, 'assign_survey', meta={'survey_team_id': survey_team_id}
    )
    update_customer_status(customer, assigned_survey_team_id=survey_team_id)
    initialize_phase(customer, Phase.SURVEY, actor)
    return result


@transaction.atomic
def complete_survey(customer: Customer, actor=None) -> TransitionResult:
    """完成勘察（ASSIGNED → COMPLETED），客户进入可报价状态"""
    result = transition_survey_status(customer, SurveyStatus.COMPLETED, actor, 'complete_survey')
    if get_customer(customer.pk).installation_status == IS.ONBOARDED:
        transition_installation_status(customer, IS.QUOTATION_READY, actor, 'complete_survey')
    return result


@transaction.atomic
def approve_survey(customer: Customer, actor=None) -> TransitionResult:
    return transition_survey_status(customer, SurveyStatus.APPROVED, actor, 'approve_survey')


@transaction.atomic
def reject_survey(customer: Customer, reason: str, actor=None) -> TransitionResult:
    """驳回勘察（需填写原因）；已有进行中的报价单时不能驳回，驳回后客户退回登记状态"""
    if not reason or not reason.strip():
        raise ValidationError("驳回勘察必须填写原因", code="reason_required")
    locked = get_customer(customer.pk, for_update=True)
    if locked.latest_quotation_status not in (None, '', QuotationStatus.REJECTED):
        raise InvalidTransition(f"客户 {locked.pk} 已有进行中的报价单，不能驳回勘察")

    result = transition_survey_status(customer, SurveyStatus.REJECTED, actor, 'reject_survey', meta={'reason': reason.strip()})
    if locked.installation_status == IS.QUOTATION_READY:
        transition_installation_status(customer, IS.ONBOARDED, actor, 'reject_survey')
    return result


# ==================== 报价 ====================

def _has_completed_payments(customer: Customer) -> bool:
    from backend.apps.settlement_center.models import Payment

    return Payment.objects.filter(customer_id=customer.pk, status=PaymentStatus.COMPLETED).exists()


@transaction.atomic
def create_quotation(
    customer: Customer,
    total,
    actor=None,
    proposed_capacity_kw=None,
    currency: str = 'INR',
    auto_submit: bool = False,
) -> Quotation:
    """
    创建报价单并设为客户的最新报价

    只有勘察完成（或已可报价）且没有进行中的报价时才能创建；
    上一份报价被驳回后可以重新报价；已有付款记录的客户不能重新报价。

    Args:
        customer: 客户
        total: 报价总额
        actor: 创建人
        proposed_capacity_kw: 装机容量（可选）
        currency: 币种
        auto_submit: 创建后以系统身份直接提交

    Raises:
        ValidationError: 金额不合法
        InvalidTransition: 勘察未完成，已有进行中的报价单，或已有付款记录
    """
    total = Decimal(str(total))
    if total <= 0:
        raise ValidationError("报价总额必须大于0", code="invalid_total")

    locked = get_customer(customer.pk, for_update=True)
    if locked.survey_status not in QUOTABLE_SURVEY_STATUSES and locked.installation_status != IS.QUOTATION_READY:
        raise InvalidTransition(f"客户 {locked.pk} 勘察未完成，不能创建报价单")
    if locked.latest_quotation_status not in (None, '', QuotationStatus.REJECTED):
        raise InvalidTransition(f"客户 {locked.pk} 已有进行中的报价单（{locked.latest_quotation_status}）")
    if _has_completed_payments(locked):
        raise InvalidTransition(f"客户 {locked.pk} 已有付款记录，不能重新报价")

    quotation = Quotation.objects.create(
        customer=locked,
        total=total,
        currency=currency,
        proposed_capacity_kw=proposed_capacity_kw,
        created_by=actor,
    )
    update_customer_status(customer, latest_quotation=quotation, latest_quotation_status=quotation.status)
    audit_event(
        actor, 'Quotation', quotation.pk, 'create',
        to_status=quotation.status,
        meta={'quotation_number': quotation.quotation_number, 'total': str(total)},
    )
    logger.info(f"报价单已创建: {quotation.quotation_number} 客户={locked.pk} 金额={total}")

    if auto_submit:
        submit(quotation, actor=None)
        customer.refresh_from_db(fields=['latest_quotation_status'])
    return quotation


# ==================== 安装 ====================

def _m1_paid(customer: Customer) -> bool:
    from backend.apps.settlement_center.models import Payment

    return Payment.objects.filter(
        customer_id=customer.pk, milestone_id=MilestoneId.M1, status=PaymentStatus.COMPLETED
    ).exists()


@transaction.atomic
def sync_installation_ready(customer: Customer, actor=None) -> TransitionResult | None:
    """
    最新报价终审通过且首期款已付时，自动进入 INSTALLATION_READY（已收款待安装）

    报价终审与首期付款任一发生后都会调用；条件不满足时不做任何变更。
    """
    locked = get_customer(customer.pk, for_update=True)
    if locked.installation_status != IS.QUOTATION_READY:
        return None
    if locked.latest_quotation_status != QuotationStatus.FINAL_APPROVED or not _m1_paid(locked):
        return None
    return transition_installation_status(customer, IS.INSTALLATION_READY, actor, 'payment_received')


@transaction.atomic
def assign_install_team(customer: Customer, team_id: int, actor=None) -> Customer:
    """分配安装班组（终审通过后、开工前）"""
    locked = get_customer(customer.pk, for_update=True)
    allowed = {IS.QUOTATION_READY, IS.INSTALLATION_READY, IS.INSTALLATION_SCHEDULED}
    if locked.installation_status not in allowed or locked.latest_quotation_status != QuotationStatus.FINAL_APPROVED:
        raise InvalidTransition(f"客户 {locked.pk} 当前状态 {locked.installation_status} 不能分配安装班组")

    previous = locked.assigned_team_id
    update_customer_status(customer, assigned_team_id=team_id)
    audit_event(
        actor, 'Customer', locked.pk, 'assign_team',
        meta={'from_team_id': previous, 'to_team_id': team_id},
    )
    logger.info(f"客户 {locked.pk} 安装班组: {previous} → {team_id}")
    return customer


def _require_team(customer: Customer):
    if customer.assigned_team_id is None:
        raise InvalidTransition(f"客户 {customer.pk} 尚未分配安装班组")


@transaction.atomic
def schedule_installation(customer: Customer, actor=None, scheduled_date=None) -> TransitionResult:
    """安装排期（INSTALLATION_READY → INSTALLATION_SCHEDULED），需已分配班组"""
    _require_team(get_customer(customer.pk, for_update=True))
    meta = {'scheduled_date': str(scheduled_date)} if scheduled_date else None
    return transition_installation_status(customer, IS.INSTALLATION_SCHEDULED, actor, 'schedule_installation', meta)


@transaction.atomic
def start_installation(customer: Customer, actor=None) -> TransitionResult:
    """开始安装，并初始化安装工序"""
    from backend.apps.workflow_engine.services.step_machine import initialize_phase

    _require_team(get_customer(customer.pk, for_update=True))
    result = transition_installation_status(customer, IS.INSTALLATION_STARTED, actor, 'start_installation')
    initialize_phase(customer, Phase.INSTALLATION, actor)
    return result


@transaction.atomic
def request_qc(customer: Customer, actor=None) -> TransitionResult:
    """申请质检（安装完成或质检驳回后）"""
    return transition_installation_status(customer, IS.QC_PENDING, actor, 'request_qc')


@transaction.atomic
def mark_qc(customer: Customer, approved: bool, actor=None, remarks: str = '') -> TransitionResult:
    """质检判定"""
    to_status = IS.QC_APPROVED if approved else IS.QC_REJECTED
    return transition_installation_status(customer, to_status, actor, 'mark_qc', meta={'remarks': remarks or ''})


@transaction.atomic
def start_commissioning(customer: Customer, actor=None) -> TransitionResult:
    """开始调试，并初始化调试工序"""
    from backend.apps.workflow_engine.services.step_machine import initialize_phase

    result = transition_installation_status(customer, IS.COMMISSIONING, actor, 'start_commissioning')
    initialize_phase(customer, Phase.COMMISSIONING, actor)
    return result


def on_phase_completed(customer: Customer, phase: str, actor=None):
    """
    某阶段最后一道工序完成后的联动

    SURVEY → 完成勘察；INSTALLATION → 安装完成；COMMISSIONING → 并网运行并初始化运行阶段工序。
    """
    from backend.apps.workflow_engine.services.step_machine import initialize_phase

    customer = get_customer(customer.pk, for_update=True)
    if phase == Phase.SURVEY:
        if customer.survey_status == SurveyStatus.ASSIGNED:
            return complete_survey(customer, actor)
    elif phase == Phase.INSTALLATION:
        if customer.installation_status == IS.INSTALLATION_STARTED:
            return transition_installation_status(customer, IS.INSTALLATION_COMPLETED, actor, 'phase_completed')
    elif phase == Phase.COMMISSIONING:
        if customer.installation_status == IS.COMMISSIONING:
            result = transition_installation_status(customer, IS.COMPLETED, actor, 'phase_completed')
            initialize_phase(customer, Phase.LIVE, actor)
            return result
    logger.info(f"客户 {customer.pk} 阶段 {phase} 工序已全部完成，无需变更状态")
    return None
