"""
工序流程API视图
"""
from django.core.exceptions import PermissionDenied
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from backend.apps.customer_management.models import Customer
from backend.apps.customer_management.services.action_gate import require_step_action
from backend.core.api import lifecycle_action
from backend.core.statuses import UserRole
from .models import WorkflowStep
from .serializers import StepCompleteSerializer, WorkflowStepSerializer
from .services.step_machine import complete_step, initialize_phase


class WorkflowStepViewSet(viewsets.ReadOnlyModelViewSet):
    """
    阶段工序

    GET /api/solar/workflow-steps/?customer=1&phase=INSTALLATION
    POST /api/solar/workflow-steps/{id}/complete/
    """
    permission_classes = [IsAuthenticated]
    serializer_class = WorkflowStepSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['customer', 'phase', 'status']

    def get_queryset(self):
        qs = WorkflowStep.objects.select_related('customer', 'completed_by').order_by('customer', 'phase', 'sequence')
        if self.request.user.role == UserRole.CUSTOMER:
            qs = qs.filter(customer__user=self.request.user)
        return qs

    @action(detail=True, methods=['post'], url_path='complete')
    @lifecycle_action
    def complete(self, request, pk=None):
        step = self.get_object()
        serializer = StepCompleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        require_step_action(step, request.user)
        result = complete_step(step.pk, request.user, notes=serializer.validated_data['notes'])
        return Response({
            "success": True,
            "step": WorkflowStepSerializer(result.step).data,
            "next_step": WorkflowStepSerializer(result.next_step).data if result.next_step else None,
            "phase_completed": result.phase_completed,
        }, status=status.HTTP_200_OK)


class PhaseInitializeAPIView(APIView):
    """手工初始化阶段工序（数据修复用，只限管理员）"""
    permission_classes = [IsAuthenticated]

    @lifecycle_action
    def post(self, request, customer_id: int, phase: str):
        """POST /api/solar/customers/{customer_id}/phases/{phase}/initialize/"""
        if request.user.role not in (UserRole.PLANT_ADMIN, UserRole.SUPER_ADMIN):
            raise PermissionDenied("只有电站管理员或超级管理员可以初始化工序")
        customer = get_object_or_404(Customer, pk=customer_id)
        steps = initialize_phase(customer, phase.upper(), request.user)
        return Response({"success": True, "data": WorkflowStepSerializer(steps, many=True).data})
