from django.contrib import admin
from django.urls import path, include

from backend.core.views import health_check

admin.site.site_header = '光伏安装生命周期管理平台'
admin.site.site_title = '光伏安装管理后台'
admin.site.index_title = '系统管理后台'

urlpatterns = [
    path('health/', health_check, name='health-check'),
    path('admin/', admin.site.urls),
    # 光伏客户生命周期 API
    path('api/solar/', include('backend.apps.customer_management.urls')),
    path('api/solar/', include('backend.apps.settlement_center.urls')),
    path('api/solar/', include('backend.apps.workflow_engine.urls')),
]
