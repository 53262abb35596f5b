"""
生命周期核心错误类型

所有错误均为可恢复的本地错误，由调用方处理；视图层按 status_code 映射 HTTP 响应。
"""
from django.core.exceptions import ValidationError
from rest_framework import status as http_status


class LifecycleError(ValidationError):
    """生命周期状态相关错误（默认映射到 HTTP 409 Conflict）"""
    status_code = http_status.HTTP_409_CONFLICT
    code = 'lifecycle_error'

    def __init__(self, message, *args, **kwargs):
        kwargs.setdefault('code', self.code)
        super().__init__(message, *args, **kwargs)

    def __str__(self):
        return '；'.join(self.messages)


class InvalidTransition(LifecycleError):
    """非法状态变更（当前状态或角色不允许）"""
    code = 'invalid_transition'


class AlreadyFinalized(LifecycleError):
    """尝试修改已处于终态的对象"""
    code = 'already_finalized'


class DuplicatePayment(LifecycleError):
    """该里程碑已存在完成的付款记录"""
    code = 'duplicate_payment'


class AmountMismatch(LifecycleError):
    """付款金额与里程碑应付金额不一致"""
    status_code = http_status.HTTP_400_BAD_REQUEST
    code = 'amount_mismatch'


class NotInProgress(LifecycleError):
    """工序不处于进行中，不能完成"""
    code = 'not_in_progress'
