"""
客户状态存取

对外只开放生命周期核心拥有的状态字段，其他资料字段由客户资料维护模块负责。
"""
import logging

from django.db import transaction

from backend.apps.customer_management.models import Customer

logger = logging.getLogger(__name__)

# 生命周期核心可以修改的字段
CUSTOMER_STATUS_FIELDS = frozenset({
    'survey_status',
    'installation_status',
    'latest_quotation',
    'latest_quotation_status',
    'assigned_survey_team_id',
    'assigned_team_id',
})


def get_customer(customer_id, *, for_update=False) -> Customer:
    """按ID获取客户；for_update=True 时在当前事务内加行锁"""
    qs = Customer.objects.all()
    if for_update:
        qs = qs.select_for_update()
    return qs.get(pk=customer_id)


@transaction.atomic
def update_customer_status(customer: Customer, **patch) -> Customer:
    """
    更新客户状态字段

    Args:
        customer: 客户实例（更新后会同步到该实例上）
        **patch: 仅限 CUSTOMER_STATUS_FIELDS 中的字段

    Raises:
        ValueError: patch 中包含非状态字段
    """
    illegal = set(patch) - CUSTOMER_STATUS_FIELDS
    if illegal:
        raise ValueError(f"不允许通过生命周期服务修改字段: {', '.join(sorted(illegal))}")
    if not patch:
        return customer

    locked = get_customer(customer.pk, for_update=True)
    for field, value in patch.items():
        setattr(locked, field, value)
        setattr(customer, field, value)
    locked.save(update_fields=list(patch) + ['updated_time'])
    customer.updated_time = locked.updated_time
    return customer
