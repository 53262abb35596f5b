"""
结算中心API视图：付款里程碑与付款记录
"""
from django.core.exceptions import PermissionDenied
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from backend.apps.customer_management.models import Customer
from backend.apps.customer_management.services.action_gate import require_action
from backend.core.api import lifecycle_action
from backend.core.statuses import Action, UserRole
from .models import Payment
from .serializers import MilestoneSerializer, PaymentCreateSerializer, PaymentSerializer
from .services.milestones import customer_milestones, milestone_summary, record_payment


def _visible_customer(request, customer_id):
    qs = Customer.objects.select_related('latest_quotation')
    if request.user.role == UserRole.CUSTOMER:
        qs = qs.filter(user=request.user)
    return get_object_or_404(qs, pk=customer_id)


def _milestones_payload(customer):
    milestones = customer_milestones(customer)
    return {
        'customer_id': customer.pk,
        'quotation_number': customer.latest_quotation.quotation_number if customer.latest_quotation else None,
        'milestones': MilestoneSerializer([m.to_dict() for m in milestones], many=True).data,
        'summary': milestone_summary(milestones) if milestones else None,
    }


class PaymentViewSet(viewsets.ReadOnlyModelViewSet):
    """付款记录（只读）"""
    permission_classes = [IsAuthenticated]
    serializer_class = PaymentSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['customer', 'milestone_id', 'status']

    def get_queryset(self):
        qs = Payment.objects.select_related('customer', 'quotation', 'created_by').order_by('-created_time')
        if self.request.user.role == UserRole.CUSTOMER:
            qs = qs.filter(customer__user=self.request.user)
        return qs


class CustomerMilestonesAPIView(APIView):
    """GET /api/solar/customers/{customer_id}/milestones/"""
    permission_classes = [IsAuthenticated]

    def get(self, request, customer_id: int):
        customer = _visible_customer(request, customer_id)
        return Response({"success": True, "data": _milestones_payload(customer)})


class MilestonePayAPIView(APIView):
    """里程碑付款 API"""
    permission_classes = [IsAuthenticated]

    @lifecycle_action
    def post(self, request, customer_id: int, milestone_id: str):
        """
        支付一期里程碑

        POST /api/solar/customers/{customer_id}/milestones/{milestone_id}/pay/
        Body: {
            "amount": "75000",
            "idempotency_key": "客户端生成的幂等键（建议）",
            "reference": "支付流水号（可选）"
        }
        Header: Idempotency-Key 与 body 中的 idempotency_key 等价
        """
        customer = _visible_customer(request, customer_id)
        serializer = PaymentCreateSerializer(data=request.data, context={'milestone_id': milestone_id})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        idempotency_key = data.get('idempotency_key') or request.headers.get('Idempotency-Key')
        # 同一幂等键的重试直接返回已有记录，此时里程碑已不是待支付状态
        is_replay = bool(idempotency_key) and Payment.objects.filter(
            customer=customer, idempotency_key=idempotency_key
        ).exists()
        if not is_replay:
            require_action(customer, request.user, Action.PAY_MILESTONE)
        elif request.user.role != UserRole.CUSTOMER:
            raise PermissionDenied("只有客户本人可以付款")

        result = record_payment(
            customer,
            milestone_id,
            data['amount'],
            actor=request.user,
            idempotency_key=idempotency_key,
            reference=data.get('reference', ''),
        )
        customer.refresh_from_db()
        return Response({
            "success": True,
            "created": result.created,
            "payment": PaymentSerializer(result.payment).data,
            "data": _milestones_payload(customer),
        }, status=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK)
