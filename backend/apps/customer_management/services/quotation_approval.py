"""
报价审批链服务

所有 Quotation.status 的变更必须通过此服务层：
DRAFT → SUBMITTED → PLANT_APPROVED → REGION_APPROVED → FINAL_APPROVED，终审前任一状态（含草稿）可驳回。
状态变更采用 (id, status, version) 条件更新，并发请求中只有一个能成功。
"""
import logging
from dataclasses import dataclass

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from backend.apps.customer_management.models import Quotation, QuotationApproval
from backend.apps.customer_management.services.crm_store import get_customer, update_customer_status
from backend.apps.system_management.audit import audit_event
from backend.core.exceptions import AlreadyFinalized, InvalidTransition
from backend.core.statuses import QuotationStatus, UserRole, QUOTATION_TERMINAL_STATUSES

logger = logging.getLogger(__name__)

# (审批角色, 当前状态) → 审批通过后的状态
APPROVAL_TRANSITIONS = {
    (UserRole.PLANT_ADMIN, QuotationStatus.SUBMITTED): QuotationStatus.PLANT_APPROVED,
    (UserRole.REGION_ADMIN, QuotationStatus.PLANT_APPROVED): QuotationStatus.REGION_APPROVED,
    (UserRole.SUPER_ADMIN, QuotationStatus.REGION_APPROVED): QuotationStatus.FINAL_APPROVED,
    # 超级管理员可跳过区域审批
    (UserRole.SUPER_ADMIN, QuotationStatus.PLANT_APPROVED): QuotationStatus.FINAL_APPROVED,
}

REJECTABLE_STATUSES = frozenset({
    QuotationStatus.DRAFT,
    QuotationStatus.SUBMITTED,
    QuotationStatus.PLANT_APPROVED,
    QuotationStatus.REGION_APPROVED,
})


@dataclass
class TransitionResult:
    """一次状态变更的结果"""
    old_status: str
    new_status: str
    changed: bool = True
    audit_recorded: bool = True


def next_approval_status(current_status: str, actor_role: str) -> str:
    """
    计算审批通过后的状态（纯函数）

    Raises:
        AlreadyFinalized: 报价单已处于终态
        InvalidTransition: 该角色不能在当前状态审批
    """
    if current_status in QUOTATION_TERMINAL_STATUSES:
        raise AlreadyFinalized(f"报价单已处于终态 {current_status}，不能再审批")
    new_status = APPROVAL_TRANSITIONS.get((actor_role, current_status))
    if new_status is None:
        raise InvalidTransition(f"角色 {actor_role} 不能在状态 {current_status} 下审批报价单")
    return new_status


def _rejected_status(current_status: str) -> str:
    if current_status in QUOTATION_TERMINAL_STATUSES:
        raise AlreadyFinalized(f"报价单已处于终态 {current_status}，不能驳回")
    if current_status not in REJECTABLE_STATUSES:
        raise InvalidTransition(f"报价单状态 {current_status} 不允许驳回")
    return QuotationStatus.REJECTED


def _submitted_status(current_status: str) -> str:
    if current_status in QUOTATION_TERMINAL_STATUSES:
        raise AlreadyFinalized(f"报价单已处于终态 {current_status}，不能提交")
    if current_status != QuotationStatus.DRAFT:
        raise InvalidTransition(f"只有草稿报价单可以提交，当前状态 {current_status}")
    return QuotationStatus.SUBMITTED


def _stale_error(locked: Quotation, expected_version):
    """调用方持有的版本已过期"""
    message = f"报价单 {locked.quotation_number} 已被其他操作更新（期望版本 {expected_version}，当前版本 {locked.version}）"
    if locked.status in QUOTATION_TERMINAL_STATUSES:
        return AlreadyFinalized(message)
    return InvalidTransition(message)


def _apply_transition(
    quotation: Quotation,
    action: str,
    decide_new_status,
    actor=None,
    actor_role: str = '',
    expected_version: int | None = None,
    remarks: str = '',
    extra_updates: dict | None = None,
) -> TransitionResult:
    """
    条件更新报价单状态，并写入审批记录、客户镜像状态和审计日志

    decide_new_status(old_status) 返回新状态，或抛出生命周期错误。
    """
    locked = Quotation.objects.select_for_update().get(pk=quotation.pk)
    if expected_version is not None and locked.version != expected_version:
        raise _stale_error(locked, expected_version)

    old_status = locked.status
    new_status = decide_new_status(old_status)
    now = timezone.now()

    updated = Quotation.objects.filter(
        pk=locked.pk, status=old_status, version=locked.version
    ).update(status=new_status, version=F('version') + 1, updated_time=now, **(extra_updates or {}))
    if updated != 1:
        # 行锁之外的写入（如不支持行锁的数据库）
        locked.refresh_from_db()
        raise _stale_error(locked, expected_version if expected_version is not None else locked.version)

    QuotationApproval.objects.create(
        quotation=locked,
        action=action,
        actor=actor,
        role=actor_role or '',
        from_status=old_status,
        to_status=new_status,
        remarks=remarks or '',
        created_time=now,
    )

    # 只有最新报价单才同步到客户镜像状态
    customer = get_customer(locked.customer_id, for_update=True)
    if customer.latest_quotation_id == locked.pk:
        update_customer_status(customer, latest_quotation_status=new_status)

    quotation.status = new_status
    quotation.version = locked.version + 1
    quotation.updated_time = now
    for field, value in (extra_updates or {}).items():
        setattr(quotation, field, value)

    audit_log = audit_event(
        actor,
        'Quotation',
        locked.pk,
        action,
        from_status=old_status,
        to_status=new_status,
        meta={'quotation_number': locked.quotation_number, 'version': locked.version + 1, 'remarks': remarks or ''},
    )
    logger.info(f"报价单 {locked.quotation_number} {action}: {old_status} → {new_status}")

    if new_status == QuotationStatus.FINAL_APPROVED and customer.latest_quotation_id == locked.pk:
        from backend.apps.customer_management.services.customer_lifecycle import sync_installation_ready
        sync_installation_ready(customer, actor)

    return TransitionResult(old_status=old_status, new_status=new_status, audit_recorded=audit_log is not None)


@transaction.atomic
def submit(quotation: Quotation, actor=None, expected_version: int | None = None) -> TransitionResult:
    """
    提交报价单（DRAFT → SUBMITTED）

    Args:
        quotation: 报价单实例
        actor: 提交人，None 表示系统自动提交
        expected_version: 调用方读取时的版本号（可选）
    """
    return _apply_transition(
        quotation,
        'submit',
        _submitted_status,
        actor=actor,
        actor_role=getattr(actor, 'role', '') or '',
        expected_version=expected_version,
    )


@transaction.atomic
def approve(
    quotation: Quotation,
    actor_role: str,
    actor=None,
    expected_version: int | None = None,
    remarks: str = '',
) -> TransitionResult:
    """
    按角色审批报价单

    Args:
        quotation: 报价单实例
        actor_role: 审批角色（UserRole）
        actor: 审批人
        expected_version: 调用方读取时的版本号（可选）
        remarks: 审批意见

    Returns:
        TransitionResult

    Raises:
        AlreadyFinalized: 报价单已终审或已驳回
        InvalidTransition: 角色与当前状态不匹配，或版本已过期
    """
    return _apply_transition(
        quotation,
        'approve',
        lambda old: next_approval_status(old, actor_role),
        actor=actor,
        actor_role=actor_role,
        expected_version=expected_version,
        remarks=remarks,
    )


@transaction.atomic
def reject(quotation: Quotation, reason: str, actor=None, expected_version: int | None = None) -> TransitionResult:
    """
    驳回报价单（任一非终态 → REJECTED）

    Raises:
        ValidationError: 未填写驳回原因
        InvalidTransition: 当前状态不可驳回
        AlreadyFinalized: 报价单已处于终态
    """
    if not reason or not reason.strip():
        raise ValidationError("驳回报价单必须填写原因", code="reason_required")

    return _apply_transition(
        quotation,
        'reject',
        _rejected_status,
        actor=actor,
        actor_role=getattr(actor, 'role', '') or '',
        expected_version=expected_version,
        remarks=reason,
        extra_updates={'rejection_reason': reason.strip()},
    )


def approval_history(quotation: Quotation):
    """报价单的审批记录（按时间顺序）"""
    return quotation.approvals.select_related('actor').order_by('created_time', 'id')
