"""
结算中心API路由配置
"""
from django.urls import path
from rest_framework.routers import SimpleRouter

from . import views

app_name = 'settlement'

router = SimpleRouter()
router.register(r'payments', views.PaymentViewSet, basename='payments')

urlpatterns = router.urls + [
    path('customers/<int:customer_id>/milestones/', views.CustomerMilestonesAPIView.as_view(), name='customer_milestones'),
    path('customers/<int:customer_id>/milestones/<str:milestone_id>/pay/', views.MilestonePayAPIView.as_view(), name='milestone_pay'),
]
