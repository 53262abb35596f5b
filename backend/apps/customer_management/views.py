"""
客户管理模块API视图

所有写操作先经过动作门控（require_action），再调用服务层完成状态流转。
"""
import logging

from django.core.exceptions import PermissionDenied
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import SearchFilter, OrderingFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.core.api import expected_version, lifecycle_action
from backend.core.statuses import Action, UserRole
from .models import Customer, Quotation
from .serializers import (
    CustomerSerializer,
    QCDecisionSerializer,
    QuotationApprovalSerializer,
    QuotationCreateSerializer,
    QuotationSerializer,
    ReasonSerializer,
    ScheduleSerializer,
    TeamAssignSerializer,
    TransitionSerializer,
)
from .services import customer_lifecycle, quotation_approval
from .services.action_gate import available_actions, require_action
from .services.lifecycle_status import progress_timeline, resolve

logger = logging.getLogger(__name__)

STAFF_ROLES = {UserRole.PLANT_ADMIN, UserRole.REGION_ADMIN, UserRole.SUPER_ADMIN}


def build_lifecycle_summary(customer, user):
    """客户生命周期概览：统一状态、进度条、可执行动作、付款里程碑、工序进度"""
    from backend.apps.settlement_center.services.milestones import customer_milestones, milestone_summary
    from backend.apps.workflow_engine.services.step_machine import phase_progress

    milestones = customer_milestones(customer)
    return {
        'customer_id': customer.pk,
        'canonical_status': resolve(customer),
        'survey_status': customer.survey_status,
        'installation_status': customer.installation_status,
        'latest_quotation_status': customer.latest_quotation_status,
        'timeline': progress_timeline(customer),
        'permitted_actions': sorted(available_actions(customer, user)),
        'milestones': [m.to_dict() for m in milestones],
        'milestone_summary': milestone_summary(milestones) if milestones else None,
        'phases': phase_progress(customer),
    }


def _transition_response(customer, result):
    customer.refresh_from_db()
    return Response({
        "success": True,
        "transition": TransitionSerializer(result).data if result is not None else None,
        "customer": CustomerSerializer(customer).data,
    }, status=status.HTTP_200_OK)


class CustomerViewSet(mixins.CreateModelMixin,
                      mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      viewsets.GenericViewSet):
    """光伏客户视图集：登记、查询及生命周期动作"""
    permission_classes = [IsAuthenticated]
    serializer_class = CustomerSerializer
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ['survey_status', 'installation_status', 'latest_quotation_status', 'plant_code']
    search_fields = ['name', 'phone', 'email', 'city']
    ordering_fields = ['created_time', 'updated_time']

    def get_queryset(self):
        qs = Customer.objects.select_related('latest_quotation', 'user')
        user = self.request.user
        if user.role == UserRole.CUSTOMER:
            return qs.filter(user=user)
        if user.role == UserRole.PLANT_ADMIN and user.plant_code:
            return qs.filter(plant_code=user.plant_code)
        return qs

    @lifecycle_action
    def create(self, request, *args, **kwargs):
        """
        登记客户

        客户本人登记时自动关联当前账号；管理员可代客户登记。
        """
        user = request.user
        if user.role not in STAFF_ROLES and user.role != UserRole.CUSTOMER:
            raise PermissionDenied("当前角色不能登记客户")
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        name = data.pop('name')
        if user.role == UserRole.CUSTOMER:
            data['user'] = user
        customer = customer_lifecycle.onboard_customer(name, actor=user, **data)
        return Response({"success": True, "customer": self.get_serializer(customer).data}, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'], url_path='lifecycle')
    def lifecycle(self, request, pk=None):
        """GET /api/solar/customers/{id}/lifecycle/"""
        customer = self.get_object()
        return Response({"success": True, "data": build_lifecycle_summary(customer, request.user)})

    # ==================== 勘察 ====================

    @action(detail=True, methods=['post'], url_path='assign-survey')
    @lifecycle_action
    def assign_survey(self, request, pk=None):
        """POST /api/solar/customers/{id}/assign-survey/  Body: {"team_id": 1}"""
        customer = self.get_object()
        serializer = TeamAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        require_action(customer, request.user, Action.ASSIGN_SURVEY)
        result = customer_lifecycle.assign_survey(customer, serializer.validated_data['team_id'], request.user)
        return _transition_response(customer, result)

    @action(detail=True, methods=['post'], url_path='complete-survey')
    @lifecycle_action
    def complete_survey(self, request, pk=None):
        customer = self.get_object()
        require_action(customer, request.user, Action.COMPLETE_SURVEY)
        result = customer_lifecycle.complete_survey(customer, request.user)
        return _transition_response(customer, result)

    @action(detail=True, methods=['post'], url_path='approve-survey')
    @lifecycle_action
    def approve_survey(self, request, pk=None):
        customer = self.get_object()
        require_action(customer, request.user, Action.APPROVE_SURVEY)
        result = customer_lifecycle.approve_survey(customer, request.user)
        return _transition_response(customer, result)

    @action(detail=True, methods=['post'], url_path='reject-survey')
    @lifecycle_action
    def reject_survey(self, request, pk=None):
        """POST /api/solar/customers/{id}/reject-survey/  Body: {"reason": "..."}"""
        customer = self.get_object()
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        require_action(customer, request.user, Action.REJECT_SURVEY)
        result = customer_lifecycle.reject_survey(customer, serializer.validated_data['reason'], request.user)
        return _transition_response(customer, result)

    # ==================== 安装 ====================

    @action(detail=True, methods=['post'], url_path='assign-team')
    @lifecycle_action
    def assign_team(self, request, pk=None):
        """POST /api/solar/customers/{id}/assign-team/  Body: {"team_id": 1}"""
        customer = self.get_object()
        serializer = TeamAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        require_action(customer, request.user, Action.ASSIGN_INSTALL_TEAM)
        customer_lifecycle.assign_install_team(customer, serializer.validated_data['team_id'], request.user)
        return _transition_response(customer, None)

    @action(detail=True, methods=['post'], url_path='schedule-installation')
    @lifecycle_action
    def schedule_installation(self, request, pk=None):
        customer = self.get_object()
        serializer = ScheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        require_action(customer, request.user, Action.SCHEDULE_INSTALLATION)
        result = customer_lifecycle.schedule_installation(
            customer, request.user, scheduled_date=serializer.validated_data.get('scheduled_date')
        )
        return _transition_response(customer, result)

    @action(detail=True, methods=['post'], url_path='start-installation')
    @lifecycle_action
    def start_installation(self, request, pk=None):
        customer = self.get_object()
        require_action(customer, request.user, Action.START_INSTALLATION)
        result = customer_lifecycle.start_installation(customer, request.user)
        return _transition_response(customer, result)

    @action(detail=True, methods=['post'], url_path='request-qc')
    @lifecycle_action
    def request_qc(self, request, pk=None):
        customer = self.get_object()
        require_action(customer, request.user, Action.REQUEST_QC)
        result = customer_lifecycle.request_qc(customer, request.user)
        return _transition_response(customer, result)

    @action(detail=True, methods=['post'], url_path='mark-qc')
    @lifecycle_action
    def mark_qc(self, request, pk=None):
        """POST /api/solar/customers/{id}/mark-qc/  Body: {"approved": true, "remarks": ""}"""
        customer = self.get_object()
        serializer = QCDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        require_action(customer, request.user, Action.MARK_QC)
        result = customer_lifecycle.mark_qc(
            customer, serializer.validated_data['approved'], request.user, serializer.validated_data['remarks']
        )
        return _transition_response(customer, result)

    @action(detail=True, methods=['post'], url_path='start-commissioning')
    @lifecycle_action
    def start_commissioning(self, request, pk=None):
        customer = self.get_object()
        require_action(customer, request.user, Action.START_COMMISSIONING)
        result = customer_lifecycle.start_commissioning(customer, request.user)
        return _transition_response(customer, result)


class QuotationViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    """报价单视图集：创建、提交、审批、驳回、审批记录"""
    permission_classes = [IsAuthenticated]
    serializer_class = QuotationSerializer
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_fields = ['customer', 'status']
    ordering_fields = ['created_time', 'total']

    def get_queryset(self):
        qs = Quotation.objects.select_related('customer', 'created_by')
        user = self.request.user
        if user.role == UserRole.CUSTOMER:
            return qs.filter(customer__user=user)
        return qs

    @lifecycle_action
    def create(self, request, *args, **kwargs):
        """
        创建报价单

        POST /api/solar/quotations/
        Body: {"customer": 1, "total": "300000", "proposed_capacity_kw": "5", "auto_submit": false}
        """
        serializer = QuotationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        customer = data['customer']
        require_action(customer, request.user, Action.CREATE_QUOTATION)
        quotation = customer_lifecycle.create_quotation(
            customer,
            data['total'],
            actor=request.user,
            proposed_capacity_kw=data.get('proposed_capacity_kw'),
            currency=data.get('currency') or 'INR',
            auto_submit=data.get('auto_submit', False),
        )
        quotation.refresh_from_db()
        return Response({"success": True, "quotation": QuotationSerializer(quotation).data}, status=status.HTTP_201_CREATED)

    def _decision_response(self, quotation, result):
        quotation.refresh_from_db()
        return Response({
            "success": True,
            "transition": TransitionSerializer(result).data,
            "quotation": QuotationSerializer(quotation).data,
        }, status=status.HTTP_200_OK)

    @action(detail=True, methods=['post'], url_path='submit')
    @lifecycle_action
    def submit(self, request, pk=None):
        """POST /api/solar/quotations/{id}/submit/  Body: {"version": 1}（可选）"""
        quotation = self.get_object()
        require_action(quotation.customer, request.user, Action.SUBMIT_QUOTATION)
        result = quotation_approval.submit(quotation, request.user, expected_version=expected_version(request))
        return self._decision_response(quotation, result)

    @action(detail=True, methods=['post'], url_path='approve')
    @lifecycle_action
    def approve(self, request, pk=None):
        """
        审批报价单

        POST /api/solar/quotations/{id}/approve/
        Body: {"version": 2, "remarks": "审批意见（可选）"}
        """
        quotation = self.get_object()
        require_action(quotation.customer, request.user, Action.APPROVE_QUOTATION)
        result = quotation_approval.approve(
            quotation,
            request.user.role,
            request.user,
            expected_version=expected_version(request),
            remarks=request.data.get('remarks', ''),
        )
        return self._decision_response(quotation, result)

    @action(detail=True, methods=['post'], url_path='reject')
    @lifecycle_action
    def reject(self, request, pk=None):
        """POST /api/solar/quotations/{id}/reject/  Body: {"reason": "...", "version": 2}"""
        quotation = self.get_object()
        require_action(quotation.customer, request.user, Action.REJECT_QUOTATION)
        result = quotation_approval.reject(
            quotation,
            request.data.get('reason', ''),
            request.user,
            expected_version=expected_version(request),
        )
        return self._decision_response(quotation, result)

    @action(detail=True, methods=['get'], url_path='history')
    def history(self, request, pk=None):
        """GET /api/solar/quotations/{id}/history/"""
        quotation = self.get_object()
        records = quotation_approval.approval_history(quotation)
        return Response({"success": True, "data": QuotationApprovalSerializer(records, many=True).data})
