"""
Role-based permissions shared by the marketplace apps.
"""
from rest_framework import permissions


class IsAdmin(permissions.BasePermission):
    """
    Allows access only to admin users.
    """

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.role == 'admin')


class IsVendor(permissions.BasePermission):
    """
    Allows access only to vendor users.
    """

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.role == 'vendor')


class IsAdminOrVendor(permissions.BasePermission):
    """
    Allows access to admin or vendor users.
    """

    def has_permission(self, request, view):
        return bool(
            request.user and
            request.user.is_authenticated and
            request.user.role in ['admin', 'vendor']
        )


class IsOrderVendorOrAdmin(permissions.BasePermission):
    """
    Object-level permission: vendors may only touch their own orders.
    """

    def has_object_permission(self, request, view, obj):
        if request.user.role == 'admin':
            return True
        return obj.vendor_id == request.user.id
