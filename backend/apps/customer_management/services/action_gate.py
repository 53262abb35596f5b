"""
动作门控

统一状态 + 操作角色 → 允许执行的动作。规则集中在 GATE_RULES 表中，
前端按钮展示与后端写操作校验共用同一张表。
"""
import logging
from dataclasses import dataclass

from django.core.exceptions import PermissionDenied

from backend.apps.customer_management.services.lifecycle_status import resolve
from backend.core.exceptions import InvalidTransition
from backend.core.statuses import (
    Action,
    CanonicalStatus as S,
    MilestoneStatus,
    Phase,
    QuotationStatus,
    SurveyStatus,
    UserRole as R,
)

logger = logging.getLogger(__name__)

# 门控事实（由 gate_facts 计算）
FACT_SURVEY_COMPLETED = 'survey_completed'
FACT_NO_OPEN_QUOTATION = 'no_open_quotation'
FACT_HAS_DRAFT_QUOTATION = 'has_draft_quotation'
FACT_HAS_DUE_MILESTONE = 'has_due_milestone'
FACT_TEAM_ASSIGNED = 'team_assigned'


@dataclass(frozen=True)
class GateRule:
    """一条门控规则：在 statuses 状态下，roles 角色可执行 action（且 fact 成立）"""
    action: str
    statuses: frozenset
    roles: frozenset
    fact: str | None = None


def _rule(action, statuses, roles, fact=None):
    return GateRule(action, frozenset(statuses), frozenset(roles), fact)


ADMINS = (R.PLANT_ADMIN, R.SUPER_ADMIN)

# 报价终审通过后才能付款
PAYABLE_STATUSES = (
    S.FINAL_APPROVED,
    S.PAYMENT_RECEIVED, S.INSTALLATION_SCHEDULED, S.INSTALLATION_STARTED, S.INSTALLATION_DONE,
    S.QC_PENDING, S.QC_APPROVED, S.QC_REJECTED, S.COMMISSIONING, S.LIVE,
)

GATE_RULES = (
    _rule(Action.ASSIGN_SURVEY, [S.NEW_REQUEST, S.SURVEY_REJECTED], ADMINS),
    _rule(Action.COMPLETE_SURVEY, [S.SURVEY_ASSIGNED], [R.SURVEYOR]),
    _rule(Action.APPROVE_SURVEY, [S.SURVEY_COMPLETED], ADMINS, FACT_SURVEY_COMPLETED),
    _rule(Action.REJECT_SURVEY, [S.SURVEY_COMPLETED], ADMINS, FACT_SURVEY_COMPLETED),
    _rule(Action.CREATE_QUOTATION, [S.SURVEY_COMPLETED, S.SURVEY_APPROVED, S.QUOTATION_REJECTED], ADMINS, FACT_NO_OPEN_QUOTATION),
    _rule(Action.SUBMIT_QUOTATION, [S.SURVEY_COMPLETED], ADMINS, FACT_HAS_DRAFT_QUOTATION),
    # 报价审批：与审批链的 (角色, 状态) 一一对应
    _rule(Action.APPROVE_QUOTATION, [S.QUOTATION_SUBMITTED], [R.PLANT_ADMIN]),
    _rule(Action.APPROVE_QUOTATION, [S.APPROVED_PLANT], [R.REGION_ADMIN, R.SUPER_ADMIN]),
    _rule(Action.APPROVE_QUOTATION, [S.APPROVED_REGION], [R.SUPER_ADMIN]),
    _rule(Action.REJECT_QUOTATION, [S.SURVEY_COMPLETED], ADMINS, FACT_HAS_DRAFT_QUOTATION),
    _rule(Action.REJECT_QUOTATION, [S.QUOTATION_SUBMITTED], [R.PLANT_ADMIN]),
    _rule(Action.REJECT_QUOTATION, [S.APPROVED_PLANT], [R.REGION_ADMIN, R.SUPER_ADMIN]),
    _rule(Action.REJECT_QUOTATION, [S.APPROVED_REGION], [R.SUPER_ADMIN]),
    _rule(Action.PAY_MILESTONE, PAYABLE_STATUSES, [R.CUSTOMER], FACT_HAS_DUE_MILESTONE),
    _rule(Action.ASSIGN_INSTALL_TEAM, [S.FINAL_APPROVED, S.PAYMENT_RECEIVED], ADMINS),
    _rule(Action.SCHEDULE_INSTALLATION, [S.PAYMENT_RECEIVED], ADMINS, FACT_TEAM_ASSIGNED),
    _rule(Action.START_INSTALLATION, [S.INSTALLATION_SCHEDULED], [R.INSTALLATION_CREW, R.PLANT_ADMIN], FACT_TEAM_ASSIGNED),
    _rule(Action.COMPLETE_STEP, [S.SURVEY_ASSIGNED], [R.SURVEYOR]),
    _rule(Action.COMPLETE_STEP, [S.INSTALLATION_STARTED, S.COMMISSIONING], [R.INSTALLATION_CREW], FACT_TEAM_ASSIGNED),
    _rule(Action.COMPLETE_STEP, [S.LIVE], ADMINS),
    _rule(Action.REQUEST_QC, [S.INSTALLATION_DONE, S.QC_REJECTED], [R.INSTALLATION_CREW, R.PLANT_ADMIN]),
    _rule(Action.MARK_QC, [S.QC_PENDING], ADMINS),
    _rule(Action.START_COMMISSIONING, [S.QC_APPROVED], [R.INSTALLATION_CREW, R.PLANT_ADMIN]),
    _rule(Action.VIEW_MONITORING, [S.LIVE], [R.CUSTOMER, R.PLANT_ADMIN, R.REGION_ADMIN, R.SUPER_ADMIN]),
)

# 完成工序时，工序所属阶段必须与当前状态对应
STEP_PHASE_BY_STATUS = {
    S.SURVEY_ASSIGNED: Phase.SURVEY,
    S.INSTALLATION_STARTED: Phase.INSTALLATION,
    S.COMMISSIONING: Phase.COMMISSIONING,
    S.LIVE: Phase.LIVE,
}


def permitted_actions(status: str, role: str, facts: dict | None = None) -> frozenset:
    """
    查表得到允许的动作集合

    Args:
        status: 统一状态（CanonicalStatus 值）
        role: 操作角色
        facts: 门控事实；为 None 时只按状态和角色查表
    """
    actions = set()
    for rule in GATE_RULES:
        if status not in rule.statuses or role not in rule.roles:
            continue
        if facts is not None and rule.fact is not None and not facts.get(rule.fact):
            continue
        actions.add(rule.action)
    return frozenset(actions)


def roles_for(action: str) -> frozenset:
    """在任意状态下可执行该动作的角色"""
    roles = set()
    for rule in GATE_RULES:
        if rule.action == action:
            roles |= rule.roles
    return frozenset(roles)


def gate_facts(customer) -> dict:
    """根据客户当前子状态计算门控事实"""
    from backend.apps.settlement_center.services.milestones import customer_milestones

    quotation_status = customer.latest_quotation_status
    milestones = customer_milestones(customer)
    return {
        FACT_SURVEY_COMPLETED: customer.survey_status == SurveyStatus.COMPLETED,
        FACT_NO_OPEN_QUOTATION: quotation_status in (None, '', QuotationStatus.REJECTED),
        FACT_HAS_DRAFT_QUOTATION: quotation_status == QuotationStatus.DRAFT,
        FACT_HAS_DUE_MILESTONE: any(m.status == MilestoneStatus.DUE for m in milestones),
        FACT_TEAM_ASSIGNED: customer.assigned_team_id is not None,
    }


def available_actions(customer, user) -> frozenset:
    """当前用户对该客户可执行的动作（用于前端按钮展示）"""
    role = getattr(user, 'role', None)
    if role == R.CUSTOMER and customer.user_id != user.pk:
        return frozenset()
    return permitted_actions(resolve(customer), role, gate_facts(customer))


def require_action(customer, user, action: str) -> str:
    """
    写操作前的权限校验

    Returns:
        str: 客户当前统一状态

    Raises:
        PermissionDenied: 角色无权执行该动作，或客户操作他人的记录
        InvalidTransition: 角色有权执行该动作，但当前状态不允许
    """
    role = getattr(user, 'role', None)
    if role == R.CUSTOMER and customer.user_id != user.pk:
        raise PermissionDenied("客户只能操作自己的记录")
    if role not in roles_for(action):
        raise PermissionDenied(f"角色 {role} 无权执行 {action}")

    status = resolve(customer)
    if action not in permitted_actions(status, role, gate_facts(customer)):
        logger.info(f"动作被拒绝: customer={customer.pk} action={action} role={role} status={status}")
        raise InvalidTransition(f"当前状态 {status} 不允许执行 {action}")
    return status


def require_step_action(step, user) -> str:
    """
    完成工序前的校验：在 require_action 基础上，要求工序阶段与客户当前状态一致

    Raises:
        PermissionDenied: 同 require_action
        InvalidTransition: 当前状态不允许完成工序，或工序不属于当前阶段
    """
    status = require_action(step.customer, user, Action.COMPLETE_STEP)
    if STEP_PHASE_BY_STATUS.get(status) != step.phase:
        logger.info(f"工序阶段不符: step={step.pk} phase={step.phase} status={status}")
        raise InvalidTransition(f"当前状态 {status} 不能完成 {step.phase} 阶段的工序")
    return status
