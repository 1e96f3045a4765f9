from decimal import Decimal
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from .models import VendorProfile
from .permissions import IsAdmin, IsAdminOrVendor, IsOrderVendorOrAdmin, IsVendor

User = get_user_model()


class UserModelTest(TestCase):
    def setUp(self):
        self.vendor = User.objects.create_user(
            username='vendor', email='vendor@test.com', password='testpass123',
            role='vendor', business_name='Vendor Shop'
        )
        self.buyer = User.objects.create_user(
            username='buyer', email='buyer@test.com', password='testpass123', role='buyer'
        )
        self.admin = User.objects.create_user(
            username='admin', email='admin@test.com', password='testpass123', role='admin'
        )

    def test_role_querysets(self):
        self.assertEqual(list(User.objects.vendors()), [self.vendor])
        self.assertEqual(list(User.objects.buyers()), [self.buyer])
        self.assertEqual(list(User.objects.admins()), [self.admin])

    def test_blank_email_stored_as_null(self):
        first = User.objects.create_user(username='first', email='', role='buyer')
        second = User.objects.create_user(username='second', email='', role='buyer')
        self.assertIsNone(first.email)
        self.assertIsNone(second.email)

    def test_role_helpers(self):
        self.assertTrue(self.vendor.is_vendor)
        self.assertFalse(self.buyer.is_vendor)
        self.assertTrue(self.admin.is_marketplace_admin)
        self.assertEqual(str(self.vendor), 'vendor (vendor)')


class VendorProfileTest(TestCase):
    def setUp(self):
        self.vendor = User.objects.create_user(
            username='vendor', email='vendor@test.com', role='vendor', business_name='Vendor Shop'
        )

    def test_defaults(self):
        profile = VendorProfile.objects.create(user=self.vendor)
        self.assertIsNone(profile.commission_rate)
        self.assertTrue(profile.low_stock_alerts)
        self.assertIsNone(profile.low_stock_threshold)
        self.assertEqual(str(profile), 'Vendor: vendor - Vendor Shop')

    def test_zero_commission_is_valid(self):
        profile = VendorProfile(user=self.vendor, commission_rate=Decimal('0'))
        profile.full_clean()

    def test_commission_above_one_is_invalid(self):
        profile = VendorProfile(user=self.vendor, commission_rate=Decimal('1.5'))
        with self.assertRaises(ValidationError):
            profile.full_clean()


class PermissionsTest(TestCase):
    def request_for(self, role):
        user = SimpleNamespace(is_authenticated=True, role=role, id=1)
        return SimpleNamespace(user=user)

    def test_role_permissions(self):
        cases = [
            (IsAdmin, {'admin'}),
            (IsVendor, {'vendor'}),
            (IsAdminOrVendor, {'admin', 'vendor'}),
        ]
        for permission, allowed in cases:
            for role in ('admin', 'vendor', 'buyer'):
                with self.subTest(permission=permission.__name__, role=role):
                    self.assertEqual(
                        permission().has_permission(self.request_for(role), None), role in allowed
                    )

    def test_anonymous_denied(self):
        request = SimpleNamespace(user=AnonymousUser())
        self.assertFalse(IsAdminOrVendor().has_permission(request, None))

    def test_order_object_permission(self):
        permission = IsOrderVendorOrAdmin()
        own_order = SimpleNamespace(vendor_id=1)
        other_order = SimpleNamespace(vendor_id=2)

        self.assertTrue(permission.has_object_permission(self.request_for('vendor'), None, own_order))
        self.assertFalse(permission.has_object_permission(self.request_for('vendor'), None, other_order))
        self.assertTrue(permission.has_object_permission(self.request_for('admin'), None, other_order))


class TokenAuthTest(APITestCase):
    def setUp(self):
        self.vendor = User.objects.create_user(
            username='vendor', email='vendor@test.com', password='testpass123', role='vendor'
        )

    def test_obtain_token_and_call_api(self):
        response = self.client.post(
            reverse('token_obtain_pair'),
            {'username': 'vendor', 'password': 'testpass123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('refresh', response.data)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        response = self.client.get(reverse('vendor_balance'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_wrong_password(self):
        response = self.client.post(
            reverse('token_obtain_pair'),
            {'username': 'vendor', 'password': 'nope'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_unauthenticated_request(self):
        response = self.client.get(reverse('vendor_balance'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
