"""
工序流程API路由配置
"""
from django.urls import path
from rest_framework.routers import SimpleRouter

from . import views

app_name = 'workflow'

router = SimpleRouter()
router.register(r'workflow-steps', views.WorkflowStepViewSet, basename='workflow-steps')

urlpatterns = router.urls + [
    path('customers/<int:customer_id>/phases/<str:phase>/initialize/', views.PhaseInitializeAPIView.as_view(), name='phase_initialize'),
]
