"""
客户管理模块API路由配置
"""
from rest_framework.routers import DefaultRouter

from . import views

app_name = 'customer'

router = DefaultRouter()
router.register(r'customers', views.CustomerViewSet, basename='customers')
router.register(r'quotations', views.QuotationViewSet, basename='quotations')

urlpatterns = router.urls
