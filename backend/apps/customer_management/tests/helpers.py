"""
测试数据构造：用户与处于不同生命周期阶段的客户
"""
from django.contrib.auth import get_user_model

from backend.apps.customer_management.models import Customer
from backend.apps.customer_management.services import customer_lifecycle, quotation_approval
from backend.core.statuses import UserRole

User = get_user_model()


def make_user(username, role, **extra):
    return User.objects.create_user(username=username, password="pass123456", role=role, **extra)


def make_staff():
    """每种角色各一个用户"""
    return {
        'plant': make_user("plant_admin", UserRole.PLANT_ADMIN),
        'region': make_user("region_admin", UserRole.REGION_ADMIN),
        'super': make_user("super_admin", UserRole.SUPER_ADMIN),
        'surveyor': make_user("surveyor", UserRole.SURVEYOR),
        'crew': make_user("crew", UserRole.INSTALLATION_CREW),
    }


def onboarded_customer(owner=None, actor=None, name="Asha Verma"):
    return customer_lifecycle.onboard_customer(name, actor=actor, user=owner, city="Pune", state="Maharashtra")


def surveyed_customer(staff, owner=None):
    """勘察已完成（COMPLETED / QUOTATION_READY）的客户"""
    customer = onboarded_customer(owner=owner, actor=staff['plant'])
    customer_lifecycle.assign_survey(customer, 7, staff['plant'])
    customer_lifecycle.complete_survey(customer, staff['surveyor'])
    customer.refresh_from_db()
    return customer


def quoted_customer(staff, owner=None, total=300000, submit=True):
    """已创建（并提交）报价单的客户"""
    customer = surveyed_customer(staff, owner=owner)
    quotation = customer_lifecycle.create_quotation(customer, total, actor=staff['plant'])
    if submit:
        quotation_approval.submit(quotation, staff['plant'])
    customer.refresh_from_db()
    return customer, quotation


def final_approved_customer(staff, owner=None, total=300000):
    """报价已终审通过的客户"""
    customer, quotation = quoted_customer(staff, owner=owner, total=total)
    quotation_approval.approve(quotation, UserRole.PLANT_ADMIN, staff['plant'])
    quotation_approval.approve(quotation, UserRole.SUPER_ADMIN, staff['super'])
    customer.refresh_from_db()
    return customer, quotation


def set_statuses(customer, **fields):
    """直接写入子状态（只用于构造测试前置条件）"""
    Customer.objects.filter(pk=customer.pk).update(**fields)
    customer.refresh_from_db()
    return customer
