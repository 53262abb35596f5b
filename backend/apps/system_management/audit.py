"""
统一审计封装

所有状态变更（报价审批、勘察/安装状态、工序、付款）都通过 audit_event 记录。
审计写入失败只记警告，不回滚已经发生的业务状态变更。
"""
import logging
from typing import Optional, Dict, Any

from django.db import transaction, DatabaseError

from backend.apps.system_management.models import AuditLog

logger = logging.getLogger(__name__)


def audit_event(
    actor,
    entity: str,
    entity_id,
    action: str,
    from_status: str = '',
    to_status: str = '',
    phase: str = '',
    meta: Optional[Dict[str, Any]] = None,
):
    """
    记录一次状态变更

    Args:
        actor: User 对象，None 表示系统操作
        entity: 对象类型（Quotation / Customer / WorkflowStep / Payment）
        entity_id: 对象主键
        action: 动作名称（如 approve、reject、step_completed）
        from_status: 原状态
        to_status: 新状态
        phase: 所属阶段（可选）
        meta: 额外信息（可选）

    Returns:
        AuditLog: 写入成功时返回日志对象；失败返回 None
    """
    try:
        # 使用保存点，写入失败不会污染外层事务
        with transaction.atomic():
            audit_log = AuditLog.objects.create(
                actor=actor,
                actor_role=getattr(actor, 'role', '') or '',
                action=action,
                entity=entity,
                entity_id=str(entity_id),
                phase=phase or '',
                from_status=from_status or '',
                to_status=to_status or '',
                meta=meta or {},
            )
    except DatabaseError as e:
        logger.warning(
            f"审计日志写入失败: {action} / {entity}:{entity_id} {from_status} → {to_status}: {e}",
            exc_info=True,
        )
        return None

    logger.info(
        f"审计日志已记录: {action} / {entity}:{entity_id} / {from_status} → {to_status} / "
        f"actor={actor.username if actor is not None else 'system'}"
    )
    return audit_log
