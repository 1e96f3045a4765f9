from rest_framework import status, generics
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.pagination import LimitOffsetPagination

from django.shortcuts import get_object_or_404

from .serializers import (
    OrderCreateSerializer,
    OrderResponseSerializer,
    UpdateOrderStatusSerializer,
)

from accounts.permissions import IsAdminOrVendor, IsOrderVendorOrAdmin

from .services import create_individual_order, update_order_status

from .tasks import notify_buyer_on_status_change

from .models import Order


class CreateOrderView(generics.GenericAPIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            order = create_individual_order(
                buyer_id=request.user.id,
                product_id=data["product_id"],
                quantity=data["quantity"],
                payment_method=data["payment_method"],
                delivery_address=data["delivery_address"],
                subtotal=data["subtotal"],
                delivery_fee=data["delivery_fee"],
            )
        except ValueError as e:
            return Response(
                {"status": "error", "message": str(e)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        return Response(
            {
                "status": "success",
                "message": "Order placed successfully",
                "data": {
                    "order_id": order.id,
                    "total_amount": str(order.total_amount),
                    "payment_method": order.payment_method,
                },
            },
            status=status.HTTP_201_CREATED,
        )


class OrderListView(generics.ListAPIView):
    """
    Lists orders visible to the requesting user.
    Buyers see their orders; vendors see orders placed with them.
    """

    serializer_class = OrderResponseSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = LimitOffsetPagination

    def get_queryset(self):
        user = self.request.user
        qs = Order.objects.prefetch_related("items__product").order_by("-created_at")
        if user.role == "buyer":
            return qs.filter(user=user)
        elif user.role == "vendor":
            return qs.filter(vendor_id=user.id)
        elif user.role == "admin":
            return qs
        return Order.objects.none()


class UpdateOrderStatusView(generics.GenericAPIView):
    permission_classes = [IsAdminOrVendor, IsOrderVendorOrAdmin]

    def post(self, request):
        serializer = UpdateOrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = get_object_or_404(Order, id=serializer.validated_data["order_id"])
        self.check_object_permissions(request, order)

        new_status = serializer.validated_data["new_status"]
        try:
            order = update_order_status(order_id=order.id, new_status=new_status)
        except ValueError as e:
            return Response(
                {"status": "error", "message": str(e)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        # Send notification to buyer
        notify_buyer_on_status_change.delay(
            buyer_id=order.user_id,
            order_id=order.id,
            status=new_status,
        )

        return Response(
            {"status": "success", "message": f"Order status updated to {new_status}"}
        )
