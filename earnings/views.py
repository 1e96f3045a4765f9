from decimal import Decimal, InvalidOperation

from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from accounts.permissions import IsAdmin, IsAdminOrVendor
from orders.models import Order
from productManagement.models import Categories

from .commission import (
    calculate_commission,
    get_commission_rates,
    get_default_commission_rate,
    set_category_commission_rate,
    set_default_commission_rate,
    set_vendor_commission_rate,
)
from .exceptions import RateResolutionAmbiguous
from .serializers import (
    CategoryCommissionSerializer,
    CommissionUpdateSerializer,
    OrderSerializer,
    VendorCommissionSerializer,
    VendorSerializer,
)
from .services import get_vendor_balance, get_vendor_earnings
from .utils import get_date_range

User = get_user_model()


def _vendor_for(request):
    """
    Vendors always get themselves. Admins pick a vendor with vendor_id or
    vendor_name. Returns (vendor, error response).
    """
    user = request.user
    if user.role == "vendor":
        return user, None

    vendor_id = request.query_params.get("vendor_id")
    vendor_name = request.query_params.get("vendor_name")
    if not vendor_id and not vendor_name:
        return None, Response(
            {
                "status": "error",
                "message": "Either vendor_id or vendor_name parameter is required",
            },
            status=status.HTTP_400_BAD_REQUEST,
        )

    # Get vendor using either ID or username (both are indexed)
    if vendor_name:
        return get_object_or_404(User, username=vendor_name, role="vendor"), None
    return get_object_or_404(User, pk=vendor_id, role="vendor"), None


class VendorEarningsView(generics.GenericAPIView):
    """
    Earnings summary of a vendor for a period
    Endpoint: GET /api/earnings/summary/?period=this_month&include_orders=1
    Admins add vendor_id=123 or vendor_name=john_vendor
    """

    permission_classes = [IsAdminOrVendor]

    def get(self, request):
        vendor, error = _vendor_for(request)
        if error is not None:
            return error

        period = request.query_params.get("period", "this_month")
        include_orders = request.query_params.get("include_orders", "0") == "1"
        start_date, end_date = get_date_range(period)

        try:
            summary = get_vendor_earnings(vendor, start_date, end_date)
        except RateResolutionAmbiguous as e:
            return Response(
                {"status": "error", "message": e.message},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        return Response(
            {
                "status": "success",
                "vendor": VendorSerializer(vendor).data,
                "period": period,
                "earnings": summary.as_dict(include_lines=include_orders),
            }
        )


@api_view(["GET"])
@permission_classes([IsAdminOrVendor])
def vendor_balance(request):
    """
    Withdrawable balance of a vendor
    Endpoint: GET /api/earnings/balance/
    """
    vendor, error = _vendor_for(request)
    if error is not None:
        return error

    balance = get_vendor_balance(vendor)
    return Response(
        {
            "status": "success",
            "vendor": VendorSerializer(vendor).data,
            "balance": balance.as_dict(),
        }
    )


@api_view(["GET"])
@permission_classes([IsAdminOrVendor])
def vendor_transactions(request):
    """
    Delivered orders of a vendor for a period
    Endpoint: GET /api/earnings/transactions/?period=this_month
    """
    vendor, error = _vendor_for(request)
    if error is not None:
        return error

    period = request.query_params.get("period", "this_month")
    start_date, end_date = get_date_range(period)

    transactions = Order.objects.filter(
        vendor=vendor,
        status=Order.STATUS_DELIVERED,
        created_at__range=(start_date, end_date),
    ).order_by("-created_at")

    serializer = OrderSerializer(transactions, many=True)
    return Response(
        {"status": "success", "period": period, "transactions": serializer.data}
    )


@api_view(["GET"])
@permission_classes([IsAdmin])
def all_vendors_stats(request):
    """
    Earnings of every vendor (Admin only)
    Endpoint: GET /api/earnings/all-vendors/?period=this_month
    """
    period = request.query_params.get("period", "this_month")
    start_date, end_date = get_date_range(period)

    vendor_stats = []
    for vendor in User.objects.vendors().select_related("vendor_profile").order_by("id"):
        summary = get_vendor_earnings(vendor, start_date, end_date)
        vendor_stats.append(
            {
                "vendor": {
                    "id": vendor.id,
                    "username": vendor.username,
                    "business_name": vendor.business_name,
                    "email": vendor.email,
                },
                "stats": summary.as_dict(),
            }
        )

    return Response({"status": "success", "period": period, "vendors": vendor_stats})


class CommissionSettingsView(generics.GenericAPIView):
    """
    GET: platform default, category and vendor commission rates.
    POST: {"type": "default"|"category"|"vendor", "rate": 0.05 or null,
           "category_id": .., "vendor_id": ..}
    """

    permission_classes = [IsAdmin]
    serializer_class = CommissionUpdateSerializer

    def get(self, request):
        categories = Categories.objects.order_by("name")
        vendors = User.objects.vendors().select_related("vendor_profile").order_by("business_name", "username")
        return Response(
            {
                "status": "success",
                "default_rate": str(get_default_commission_rate()),
                "categories": CategoryCommissionSerializer(categories, many=True).data,
                "vendors": VendorCommissionSerializer(vendors, many=True).data,
            }
        )

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        rate = data["rate"]

        try:
            if data["type"] == CommissionUpdateSerializer.TYPE_DEFAULT:
                set_default_commission_rate(rate, updated_by=request.user)
                target = "default"
            elif data["type"] == CommissionUpdateSerializer.TYPE_CATEGORY:
                category = get_object_or_404(Categories, pk=data["category_id"])
                set_category_commission_rate(category, rate)
                target = f"category {category.name}"
            else:
                vendor = get_object_or_404(User, pk=data["vendor_id"], role="vendor")
                set_vendor_commission_rate(vendor, rate)
                target = f"vendor {vendor.username}"
        except ValueError as e:
            return Response(
                {"status": "error", "message": str(e)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        if rate is None:
            message = f"Removed custom commission rate for {target}"
        else:
            message = f"Commission rate for {target} set to {rate * 100:.2f}%"
        return Response({"status": "success", "message": message})


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def commission_preview(request):
    """
    Commission a sale would incur
    Endpoint: GET /api/earnings/commission/preview/?subtotal=120.00&vendor_id=3&category_id=7
    """
    try:
        subtotal = Decimal(request.query_params.get("subtotal", ""))
        if not subtotal.is_finite() or subtotal < 0:
            raise InvalidOperation
    except InvalidOperation:
        return Response(
            {"status": "error", "message": "subtotal must be a number"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    vendor_id = request.query_params.get("vendor_id")
    if request.user.role == "vendor":
        vendor = request.user
    elif vendor_id:
        vendor = get_object_or_404(User, pk=vendor_id, role="vendor")
    else:
        return Response(
            {"status": "error", "message": "vendor_id parameter is required"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    category = None
    category_id = request.query_params.get("category_id")
    if category_id:
        category = get_object_or_404(Categories, pk=category_id)

    calc = calculate_commission(subtotal, vendor, category)
    rates = get_commission_rates(vendor, category)
    return Response(
        {
            "status": "success",
            "commission": {key: str(value) for key, value in calc.items()},
            "rates": {key: None if value is None else str(value) for key, value in rates.items()},
        }
    )
