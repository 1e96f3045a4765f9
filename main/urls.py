"""
URL configuration for main project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.contrib import admin
from django.urls import path, include
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [

    path('admin/', admin.site.urls),

    # authentication
    path('api/auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # app settings
    path('api/app/', include('app_settings.urls')),

    # notifications
    path('api/notifications/', include('notifications.urls')),

    # orders
    path("api/orders/", include("orders.urls")),

    # Earnings and commission endpoints
    path("api/earnings/", include("earnings.urls")),

    # Vendor withdrawals
    path("api/payouts/", include("payouts.urls")),
]
