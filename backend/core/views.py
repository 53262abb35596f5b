"""
平台级视图
"""
from django.db import connection, DatabaseError
from django.http import JsonResponse
from django.utils import timezone


def health_check(request):
    """健康检查端点"""
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
        database = 'ok'
    except DatabaseError:
        database = 'unavailable'
    return JsonResponse({
        'status': 'healthy' if database == 'ok' else 'degraded',
        'service': '光伏安装生命周期管理平台',
        'version': '1.0.0',
        'database': database,
        'timestamp': timezone.now().isoformat(),
    }, status=200 if database == 'ok' else 503)
