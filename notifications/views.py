from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsAdmin, IsVendor
from productManagement.models import Products

from .low_stock import get_vendor_low_stock_products, run_low_stock_check, send_low_stock_alert
from .serializers import LowStockAlertTestSerializer, MarkReadSerializer
from .services import get_unread_count, get_user_notifications, mark_all_as_read, mark_as_read
from .utils import user_type_for


class ListNotificationsView(generics.GenericAPIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        unread = request.query_params.get('unread_only', '0') == '1'
        try:
            limit = int(request.query_params.get('limit', '50'))
        except ValueError:
            limit = 50

        data, from_cache = get_user_notifications(
            user=request.user, user_type=user_type_for(request.user), unread_only=unread, limit=limit
        )
        return Response({"cache": from_cache, "results": data})


class UnreadCountView(generics.GenericAPIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        count, from_cache = get_unread_count(user=request.user, user_type=user_type_for(request.user))
        return Response({"cache": from_cache, "count": count})


class MarkAsReadView(generics.GenericAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = MarkReadSerializer

    def post(self, request):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        updated = mark_as_read(
            s.validated_data['notification_id'], user=request.user, user_type=user_type_for(request.user)
        )
        return Response({"updated": updated})


class MarkAllAsReadView(generics.GenericAPIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        mark_all_as_read(user=request.user, user_type=user_type_for(request.user))
        return Response({"detail": "All notifications marked as read."})


class VendorLowStockProductsView(generics.GenericAPIView):
    """
    Tracked products at or below the vendor's alert threshold.
    Endpoint: GET /api/notifications/low-stock/
    """
    permission_classes = [IsVendor]

    def get(self, request):
        products = get_vendor_low_stock_products(request.user)
        return Response({"status": "success", "count": len(products), "products": products})


class LowStockAlertTestView(generics.GenericAPIView):
    """
    Trigger low stock alerts by hand (admin only).
    mode=manual alerts one product, optionally bypassing the cooldown.
    mode=scan runs the periodic check now.
    """
    permission_classes = [IsAdmin]
    serializer_class = LowStockAlertTestSerializer

    def post(self, request):
        s = self.get_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        if data['mode'] == LowStockAlertTestSerializer.MODE_MANUAL:
            product = get_object_or_404(
                Products.objects.select_related('vendor'),
                pk=data['product_id'],
                vendor_id=data['vendor_id'],
            )
            result = send_low_stock_alert(
                product,
                quantity=data['quantity'],
                threshold=data['threshold'],
                skip_cooldown=data['skip_cooldown'],
            )
            return Response({
                "status": "success",
                "message": "Low stock alert triggered manually",
                "result": result.as_dict(),
            })

        results = run_low_stock_check(vendor_id=data.get('vendor_id'))
        return Response({
            "status": "success",
            "message": f"Scanned {len(results)} products with low stock",
            "results": [r.as_dict() for r in results],
        }, status=status.HTTP_200_OK)
