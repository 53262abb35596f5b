"""
阶段工序状态机

- initialize_phase：首次进入阶段时按模板生成工序，第一道工序为进行中；重复调用不会重复生成
- complete_step：只能完成进行中的工序，完成后下一道工序变为进行中；
  最后一道工序完成即阶段完成，由客户生命周期服务联动客户状态
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from backend.apps.customer_management.services.crm_store import get_customer
from backend.apps.system_management.audit import audit_event
from backend.apps.workflow_engine.models import WorkflowStep
from backend.core.exceptions import NotInProgress
from backend.core.statuses import Phase, StepStatus

logger = logging.getLogger(__name__)

# 阶段 → [(工序标识, 工序名称)]，按顺序排列
WORKFLOW_PHASE_TEMPLATES = {
    Phase.SURVEY: [
        ('site_visit', 'Site Visit'),
        ('shading_analysis', 'Shading Analysis'),
        ('load_assessment', 'Load Assessment'),
        ('survey_report', 'Survey Report'),
    ],
    Phase.INSTALLATION: [
        ('mounting', 'Mounting Structure'),
        ('inverter', 'Inverter Installation'),
        ('wiring', 'DC/AC Wiring'),
        ('inspection', 'QC Inspection'),
    ],
    Phase.COMMISSIONING: [
        ('testing', 'System Testing'),
        ('grid_sync', 'Grid Synchronization'),
    ],
    Phase.LIVE: [
        ('net_metering', 'Net Metering'),
        ('monitoring_setup', 'Monitoring Setup'),
        ('handover', 'Customer Handover'),
    ],
}


@dataclass
class StepCompletion:
    """完成一道工序的结果"""
    step: WorkflowStep
    next_step: Optional[WorkflowStep] = None
    phase_completed: bool = False


def list_steps(customer, phase: Optional[str] = None):
    """客户的工序列表（按阶段、顺序排列）"""
    qs = WorkflowStep.objects.filter(customer_id=customer.pk).select_related('completed_by')
    if phase:
        qs = qs.filter(phase=phase)
    return qs.order_by('phase', 'sequence')


@transaction.atomic
def initialize_phase(customer, phase: str, actor=None) -> list:
    """
    按模板初始化阶段工序（幂等）

    Args:
        customer: 客户
        phase: 阶段（Phase）
        actor: 操作人

    Returns:
        该阶段的工序列表
    """
    template = WORKFLOW_PHASE_TEMPLATES.get(phase)
    if template is None:
        raise ValidationError(f"未知的阶段: {phase}", code="invalid_phase")

    # 客户行锁，保证同一客户同一阶段只初始化一次
    locked = get_customer(customer.pk, for_update=True)
    existing = list(list_steps(locked, phase))
    if existing:
        logger.info(f"客户 {locked.pk} 阶段 {phase} 工序已存在，跳过初始化")
        return existing

    now = timezone.now()
    WorkflowStep.objects.bulk_create([
        WorkflowStep(
            customer=locked,
            phase=phase,
            step_key=key,
            label=label,
            sequence=index,
            status=StepStatus.IN_PROGRESS if index == 1 else StepStatus.PENDING,
            started_time=now if index == 1 else None,
        )
        for index, (key, label) in enumerate(template, start=1)
    ])
    audit_event(
        actor, 'Customer', locked.pk, 'phase_initialized',
        to_status=StepStatus.IN_PROGRESS, phase=phase,
        meta={'steps': [key for key, _ in template]},
    )
    logger.info(f"客户 {locked.pk} 阶段 {phase} 工序已初始化: {len(template)} 道")
    return list(list_steps(locked, phase))


@transaction.atomic
def complete_step(step_id: int, actor=None, notes: str = '') -> StepCompletion:
    """
    完成一道工序

    Raises:
        WorkflowStep.DoesNotExist: 工序不存在
        NotInProgress: 工序不是进行中（未开始或已完成）
    """
    now = timezone.now()
    updates = {'status': StepStatus.COMPLETED, 'completed_by': actor, 'completed_time': now}
    if notes:
        updates['notes'] = notes

    # 条件更新：并发完成同一道工序时只有一个请求能更新成功
    updated = WorkflowStep.objects.filter(pk=step_id, status=StepStatus.IN_PROGRESS).update(**updates)
    step = WorkflowStep.objects.select_related('customer').get(pk=step_id)
    if updated != 1:
        raise NotInProgress(f"工序 {step.label} 当前状态为 {step.get_status_display()}，不能完成")

    next_step = WorkflowStep.objects.filter(
        customer_id=step.customer_id, phase=step.phase, sequence__gt=step.sequence
    ).order_by('sequence').first()
    if next_step is not None:
        WorkflowStep.objects.filter(pk=next_step.pk, status=StepStatus.PENDING).update(
            status=StepStatus.IN_PROGRESS, started_time=now
        )
        next_step.refresh_from_db()

    audit_event(
        actor, 'WorkflowStep', step.pk, 'step_completed',
        from_status=StepStatus.IN_PROGRESS, to_status=StepStatus.COMPLETED, phase=step.phase,
        meta={'step_key': step.step_key, 'next_step': next_step.step_key if next_step else None},
    )
    logger.info(f"客户 {step.customer_id} 工序完成: {step.phase}/{step.step_key}")

    if next_step is None:
        from backend.apps.customer_management.services.customer_lifecycle import on_phase_completed
        on_phase_completed(step.customer, step.phase, actor)

    return StepCompletion(step=step, next_step=next_step, phase_completed=next_step is None)


def phase_progress(customer) -> list:
    """各阶段工序进度：已完成数 / 总数 / 当前工序"""
    progress = []
    steps = list(list_steps(customer))
    for phase in WORKFLOW_PHASE_TEMPLATES:
        phase_steps = [s for s in steps if s.phase == phase]
        if not phase_steps:
            continue
        current = next((s for s in phase_steps if s.status == StepStatus.IN_PROGRESS), None)
        progress.append({
            'phase': phase,
            'total': len(phase_steps),
            'completed': sum(1 for s in phase_steps if s.status == StepStatus.COMPLETED),
            'current_step': current.step_key if current else None,
        })
    return progress
