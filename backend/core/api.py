"""
API 公共工具：错误响应格式、版本号解析
"""
import logging
from functools import wraps

from django.core.exceptions import PermissionDenied, ValidationError
from rest_framework import status
from rest_framework.response import Response

from backend.core.exceptions import LifecycleError

logger = logging.getLogger(__name__)


def error_response(message, status_code, code=None):
    return Response({"success": False, "message": message, "code": code}, status=status_code)


def lifecycle_action(view_method):
    """
    视图动作装饰器：把服务层错误映射为统一的错误响应

    PermissionDenied → 403；LifecycleError → 其 status_code；ValidationError → 400。
    其他异常（数据库不可用等）不处理，由 DRF 返回 500。
    """
    @wraps(view_method)
    def wrapper(self, request, *args, **kwargs):
        try:
            return view_method(self, request, *args, **kwargs)
        except PermissionDenied as e:
            return error_response(str(e) or "无权执行该操作", status.HTTP_403_FORBIDDEN, 'permission_denied')
        except LifecycleError as e:
            return error_response(str(e), e.status_code, e.code)
        except ValidationError as e:
            return error_response('；'.join(e.messages), status.HTTP_400_BAD_REQUEST, getattr(e, 'code', None) or 'invalid')
    return wrapper


def expected_version(request):
    """从请求体 version 字段或 If-Match 头读取调用方持有的版本号"""
    raw = request.data.get('version') if hasattr(request.data, 'get') else None
    if raw in (None, ''):
        raw = request.headers.get('If-Match')
    if raw in (None, ''):
        return None
    try:
        return int(str(raw).strip('"'))
    except (TypeError, ValueError):
        raise ValidationError(f"版本号格式错误: {raw}", code="invalid_version")
