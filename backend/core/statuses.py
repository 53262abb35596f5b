"""
光伏客户生命周期状态字典

勘察、报价、安装、付款里程碑、工序步骤等子状态的统一枚举定义。
本模块不包含任何业务逻辑，供各业务模块共同引用。
"""
from django.db import models


class UserRole(models.TextChoices):
    """操作角色"""
    CUSTOMER = 'CUSTOMER', '客户'
    SURVEYOR = 'SURVEYOR', '勘察员'
    PLANT_ADMIN = 'PLANT_ADMIN', '电站管理员'
    REGION_ADMIN = 'REGION_ADMIN', '区域管理员'
    SUPER_ADMIN = 'SUPER_ADMIN', '超级管理员'
    INSTALLATION_CREW = 'INSTALLATION_CREW', '安装班组'


class SurveyStatus(models.TextChoices):
    """现场勘察状态"""
    PENDING = 'PENDING', '待分配'
    ASSIGNED = 'ASSIGNED', '已分配'
    COMPLETED = 'COMPLETED', '已完成'
    APPROVED = 'APPROVED', '已审核'
    REJECTED = 'REJECTED', '已驳回'


class InstallationStatus(models.TextChoices):
    """安装进度状态"""
    ONBOARDED = 'ONBOARDED', '已登记'
    QUOTATION_READY = 'QUOTATION_READY', '可报价'
    INSTALLATION_READY = 'INSTALLATION_READY', '已收款待安装'
    INSTALLATION_SCHEDULED = 'INSTALLATION_SCHEDULED', '已排期'
    INSTALLATION_STARTED = 'INSTALLATION_STARTED', '安装中'
    INSTALLATION_COMPLETED = 'INSTALLATION_COMPLETED', '安装完成'
    QC_PENDING = 'QC_PENDING', '待质检'
    QC_APPROVED = 'QC_APPROVED', '质检通过'
    QC_REJECTED = 'QC_REJECTED', '质检驳回'
    COMMISSIONING = 'COMMISSIONING', '调试中'
    COMPLETED = 'COMPLETED', '已并网'


class QuotationStatus(models.TextChoices):
    """报价单审批状态"""
    DRAFT = 'DRAFT', '草稿'
    SUBMITTED = 'SUBMITTED', '已提交'
    PLANT_APPROVED = 'PLANT_APPROVED', '电站审批通过'
    REGION_APPROVED = 'REGION_APPROVED', '区域审批通过'
    FINAL_APPROVED = 'FINAL_APPROVED', '终审通过'
    REJECTED = 'REJECTED', '已驳回'


# 终态：不可再变更（管理性回退不在本系统范围内）
QUOTATION_TERMINAL_STATUSES = frozenset({QuotationStatus.FINAL_APPROVED, QuotationStatus.REJECTED})


class MilestoneId(models.TextChoices):
    M1 = 'M1', '勘察完成'
    M2 = 'M2', '安装开工'
    M3 = 'M3', '安装完成'
    M4 = 'M4', '调试并网'


class MilestoneStatus(models.TextChoices):
    LOCKED = 'LOCKED', '未解锁'
    DUE = 'DUE', '待支付'
    PAID = 'PAID', '已支付'


class PaymentStatus(models.TextChoices):
    PENDING = 'PENDING', '处理中'
    COMPLETED = 'COMPLETED', '已完成'
    FAILED = 'FAILED', '失败'


class Phase(models.TextChoices):
    """安装生命周期阶段"""
    SURVEY = 'SURVEY', '勘察'
    INSTALLATION = 'INSTALLATION', '安装'
    COMMISSIONING = 'COMMISSIONING', '调试'
    LIVE = 'LIVE', '运行'


class StepStatus(models.TextChoices):
    PENDING = 'pending', '未开始'
    IN_PROGRESS = 'in_progress', '进行中'
    COMPLETED = 'completed', '已完成'


class CanonicalStatus(models.TextChoices):
    """对外展示的统一生命周期状态（值即展示文案）"""
    NEW_REQUEST = 'New Request'
    SURVEY_ASSIGNED = 'Survey Assigned'
    SURVEY_COMPLETED = 'Survey Completed'
    SURVEY_APPROVED = 'Survey Approved'
    SURVEY_REJECTED = 'Survey Rejected'
    QUOTATION_SUBMITTED = 'Quotation Submitted'
    APPROVED_PLANT = 'Approved (Plant)'
    APPROVED_REGION = 'Approved (Region)'
    FINAL_APPROVED = 'Final Approved'
    QUOTATION_REJECTED = 'Quotation Rejected'
    PAYMENT_RECEIVED = 'Payment Received'
    INSTALLATION_SCHEDULED = 'Installation Scheduled'
    INSTALLATION_STARTED = 'Installation Started'
    INSTALLATION_DONE = 'Installation Done'
    QC_PENDING = 'QC Pending'
    QC_APPROVED = 'QC Approved'
    QC_REJECTED = 'QC Rejected'
    COMMISSIONING = 'Commissioning'
    LIVE = 'Live'


class Action(models.TextChoices):
    """受角色控制的业务动作"""
    ASSIGN_SURVEY = 'ASSIGN_SURVEY', '分配勘察'
    COMPLETE_SURVEY = 'COMPLETE_SURVEY', '完成勘察'
    APPROVE_SURVEY = 'APPROVE_SURVEY', '审核勘察'
    REJECT_SURVEY = 'REJECT_SURVEY', '驳回勘察'
    CREATE_QUOTATION = 'CREATE_QUOTATION', '创建报价'
    SUBMIT_QUOTATION = 'SUBMIT_QUOTATION', '提交报价'
    APPROVE_QUOTATION = 'APPROVE_QUOTATION', '审批报价'
    REJECT_QUOTATION = 'REJECT_QUOTATION', '驳回报价'
    PAY_MILESTONE = 'PAY_MILESTONE', '支付里程碑'
    ASSIGN_INSTALL_TEAM = 'ASSIGN_INSTALL_TEAM', '分配安装班组'
    SCHEDULE_INSTALLATION = 'SCHEDULE_INSTALLATION', '安装排期'
    START_INSTALLATION = 'START_INSTALLATION', '开始安装'
    COMPLETE_STEP = 'COMPLETE_STEP', '完成工序'
    REQUEST_QC = 'REQUEST_QC', '申请质检'
    MARK_QC = 'MARK_QC', '质检判定'
    START_COMMISSIONING = 'START_COMMISSIONING', '开始调试'
    VIEW_MONITORING = 'VIEW_MONITORING', '查看监控'
