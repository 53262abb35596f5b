"""
生命周期状态解析

把勘察状态、报价审批状态、安装状态合并为一个对外展示的统一状态。
纯函数，不读写数据库，任何时候都可以由已持久化的子状态重新推导。

优先级（先匹配先返回）：安装阶段 > 报价状态 > 勘察状态 > 初始登记。
"""
from backend.core.statuses import (
    CanonicalStatus,
    InstallationStatus,
    QuotationStatus,
    SurveyStatus,
)

# 第一优先级：安装阶段状态
INSTALLATION_LABELS = {
    InstallationStatus.INSTALLATION_SCHEDULED: CanonicalStatus.INSTALLATION_SCHEDULED,
    InstallationStatus.INSTALLATION_STARTED: CanonicalStatus.INSTALLATION_STARTED,
    InstallationStatus.INSTALLATION_COMPLETED: CanonicalStatus.INSTALLATION_DONE,
    InstallationStatus.QC_PENDING: CanonicalStatus.QC_PENDING,
    InstallationStatus.QC_APPROVED: CanonicalStatus.QC_APPROVED,
    InstallationStatus.QC_REJECTED: CanonicalStatus.QC_REJECTED,
    InstallationStatus.COMMISSIONING: CanonicalStatus.COMMISSIONING,
    InstallationStatus.COMPLETED: CanonicalStatus.LIVE,
    InstallationStatus.INSTALLATION_READY: CanonicalStatus.PAYMENT_RECEIVED,
}

# 第二优先级：最新报价单状态
QUOTATION_LABELS = {
    QuotationStatus.FINAL_APPROVED: CanonicalStatus.FINAL_APPROVED,
    QuotationStatus.REGION_APPROVED: CanonicalStatus.APPROVED_REGION,
    QuotationStatus.PLANT_APPROVED: CanonicalStatus.APPROVED_PLANT,
    QuotationStatus.SUBMITTED: CanonicalStatus.QUOTATION_SUBMITTED,
    QuotationStatus.REJECTED: CanonicalStatus.QUOTATION_REJECTED,
    # 草稿报价对客户不可见，仍展示为勘察完成
    QuotationStatus.DRAFT: CanonicalStatus.SURVEY_COMPLETED,
}

# 第三优先级：勘察状态（COMPLETED 单独处理）
SURVEY_LABELS = {
    SurveyStatus.APPROVED: CanonicalStatus.SURVEY_APPROVED,
    SurveyStatus.REJECTED: CanonicalStatus.SURVEY_REJECTED,
    SurveyStatus.ASSIGNED: CanonicalStatus.SURVEY_ASSIGNED,
}

UNKNOWN_STATUS = 'Unknown'

# 安装开始之后的状态（进度条判断用）
POST_PAYMENT_STATUSES = frozenset({
    InstallationStatus.INSTALLATION_READY,
    InstallationStatus.INSTALLATION_SCHEDULED,
    InstallationStatus.INSTALLATION_STARTED,
    InstallationStatus.INSTALLATION_COMPLETED,
    InstallationStatus.QC_PENDING,
    InstallationStatus.QC_APPROVED,
    InstallationStatus.QC_REJECTED,
    InstallationStatus.COMMISSIONING,
    InstallationStatus.COMPLETED,
})


def resolve_status(survey_status, installation_status, latest_quotation_status=None) -> str:
    """按子状态解析统一状态"""
    label = INSTALLATION_LABELS.get(installation_status)
    if label is not None:
        return label

    label = QUOTATION_LABELS.get(latest_quotation_status)
    if label is not None:
        return label

    if survey_status == SurveyStatus.COMPLETED or installation_status == InstallationStatus.QUOTATION_READY:
        return CanonicalStatus.SURVEY_COMPLETED
    label = SURVEY_LABELS.get(survey_status)
    if label is not None:
        return label

    if installation_status == InstallationStatus.ONBOARDED:
        return CanonicalStatus.NEW_REQUEST
    # 未识别的状态原样返回，不静默丢弃
    return installation_status or UNKNOWN_STATUS


def resolve(customer) -> str:
    """
    解析客户的统一生命周期状态

    Args:
        customer: 带有 survey_status / installation_status / latest_quotation_status 属性的对象

    Returns:
        str: CanonicalStatus 的值；无法识别时返回原始安装状态
    """
    return resolve_status(
        getattr(customer, 'survey_status', None),
        getattr(customer, 'installation_status', None),
        getattr(customer, 'latest_quotation_status', None),
    )


def progress_timeline(customer) -> list[dict]:
    """
    客户端进度条：7 个步骤，每步带 completed / current 标记
    """
    survey = getattr(customer, 'survey_status', None)
    install = getattr(customer, 'installation_status', None)
    has_quotation = bool(getattr(customer, 'latest_quotation_status', None))
    after_payment = install in POST_PAYMENT_STATUSES
    survey_done = survey in (SurveyStatus.COMPLETED, SurveyStatus.APPROVED)

    steps = [
        ('Request Submitted', True, False),
        (
            'Survey Assigned',
            survey in (SurveyStatus.ASSIGNED, SurveyStatus.COMPLETED, SurveyStatus.APPROVED) or has_quotation or after_payment,
            survey == SurveyStatus.PENDING and install == InstallationStatus.ONBOARDED,
        ),
        (
            'Site Survey',
            survey_done or has_quotation or after_payment,
            survey == SurveyStatus.ASSIGNED,
        ),
        (
            'Quotation Ready',
            has_quotation or after_payment,
            survey_done and not has_quotation,
        ),
        (
            'Installation',
            install in (
                InstallationStatus.INSTALLATION_COMPLETED,
                InstallationStatus.QC_PENDING,
                InstallationStatus.QC_APPROVED,
                InstallationStatus.COMMISSIONING,
                InstallationStatus.COMPLETED,
            ),
            has_quotation and install in (
                InstallationStatus.INSTALLATION_READY,
                InstallationStatus.INSTALLATION_SCHEDULED,
                InstallationStatus.INSTALLATION_STARTED,
                InstallationStatus.QC_REJECTED,
            ),
        ),
        (
            'Commissioning',
            install in (InstallationStatus.COMMISSIONING, InstallationStatus.COMPLETED),
            install == InstallationStatus.QC_APPROVED,
        ),
        ('Solar Activated', install == InstallationStatus.COMPLETED, False),
    ]
    return [
        {'id': index, 'title': title, 'completed': bool(completed), 'current': bool(current)}
        for index, (title, completed, current) in enumerate(steps, start=1)
    ]
