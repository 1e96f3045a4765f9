from datetime import timedelta
from decimal import Decimal
from io import StringIO
from types import SimpleNamespace
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import VendorProfile
from app_settings.models import AppSettings
from orders.models import Order, OrderItem
from payouts.models import Payout
from productManagement.models import Categories, Products

from .commission import (
    DEFAULT_RATE_KEY,
    CommissionSource,
    ResolvedRate,
    calculate_commission,
    get_commission_rates,
    get_default_commission_rate,
    is_rate_present,
    normalize_rate,
    resolve_rate,
    set_category_commission_rate,
    set_vendor_commission_rate,
)
from .exceptions import RateResolutionAmbiguous
from .services import (
    classify_order,
    compute_earnings,
    get_vendor_balance,
    get_vendor_earnings,
)
from .utils import get_date_range

User = get_user_model()


def make_order(vendor, buyer, product, total, status=Order.STATUS_PENDING):
    total = Decimal(total)
    order = Order.objects.create(
        user=buyer,
        vendor=vendor,
        subtotal=total,
        total_amount=total,
        payment_method='cash',
        delivery_address='Test Address',
        status=status,
    )
    OrderItem.objects.create(
        order=order, product=product, quantity=1, unit_price=total, price=total
    )
    return order


class MarketplaceFixtureMixin:
    def create_marketplace(self):
        self.vendor = User.objects.create_user(
            username='testvendor',
            email='vendor@test.com',
            password='testpass123',
            role='vendor',
            business_name='Test Business'
        )
        self.buyer = User.objects.create_user(
            username='testbuyer',
            email='buyer@test.com',
            password='testpass123',
            role='buyer'
        )
        self.category = Categories.objects.create(name='Electronics', slug='electronics')
        self.product = Products.objects.create(
            vendor=self.vendor,
            title='Headphones',
            regular_price=Decimal('100.00'),
            quantity=50,
            category=self.category,
        )


class ResolveRateTestCase(TestCase):
    """Precedence of vendor, category and default rates"""

    def test_vendor_rate_wins(self):
        resolved = resolve_rate(Decimal('0.03'), Decimal('0.10'), Decimal('0.08'))
        self.assertEqual(resolved, ResolvedRate(Decimal('0.03'), CommissionSource.VENDOR))

    def test_category_rate_when_no_vendor_rate(self):
        resolved = resolve_rate(None, Decimal('0.05'), Decimal('0.08'))
        self.assertEqual(resolved.rate, Decimal('0.05'))
        self.assertEqual(resolved.source, CommissionSource.CATEGORY)

    def test_default_rate_as_last_resort(self):
        resolved = resolve_rate(None, None, Decimal('0.08'))
        self.assertEqual(resolved.rate, Decimal('0.08'))
        self.assertEqual(resolved.source, CommissionSource.DEFAULT)

    def test_zero_vendor_rate_is_an_override(self):
        resolved = resolve_rate(Decimal('0'), Decimal('0.10'), Decimal('0.08'))
        self.assertEqual(resolved.rate, Decimal('0'))
        self.assertEqual(resolved.source, CommissionSource.VENDOR)

    def test_zero_category_rate_is_an_override(self):
        resolved = resolve_rate(None, Decimal('0.0000'), Decimal('0.08'))
        self.assertEqual(resolved.source, CommissionSource.CATEGORY)

    def test_out_of_range_rates_fall_through(self):
        resolved = resolve_rate(Decimal('1.5'), Decimal('-0.1'), Decimal('0.08'))
        self.assertEqual(resolved.source, CommissionSource.DEFAULT)

    def test_unusable_default_raises(self):
        with self.assertRaises(RateResolutionAmbiguous):
            resolve_rate(None, None, None)
        with self.assertRaises(RateResolutionAmbiguous):
            resolve_rate(None, None, Decimal('NaN'))

    def test_is_rate_present(self):
        self.assertTrue(is_rate_present(0))
        self.assertTrue(is_rate_present('1'))
        self.assertFalse(is_rate_present(None))
        self.assertFalse(is_rate_present('abc'))
        self.assertFalse(is_rate_present(Decimal('Infinity')))

    def test_normalize_rate(self):
        self.assertEqual(normalize_rate('0.123456'), Decimal('0.1235'))
        self.assertIsNone(normalize_rate(None))
        with self.assertRaises(ValueError):
            normalize_rate(Decimal('1.01'))
        with self.assertRaises(ValueError):
            normalize_rate('ten percent')


class CommissionSettingsTestCase(MarketplaceFixtureMixin, TestCase):

    def setUp(self):
        self.create_marketplace()

    @override_settings(DEFAULT_COMMISSION_RATE=Decimal('0.08'))
    def test_default_rate_falls_back_to_settings(self):
        self.assertEqual(get_default_commission_rate(), Decimal('0.08'))

    def test_default_rate_from_app_settings(self):
        AppSettings.set_value(DEFAULT_RATE_KEY, '0.1200')
        self.assertEqual(get_default_commission_rate(), Decimal('0.1200'))

    @override_settings(DEFAULT_COMMISSION_RATE=Decimal('0.08'))
    def test_unusable_stored_default_is_ignored(self):
        AppSettings.set_value(DEFAULT_RATE_KEY, 'garbage')
        self.assertEqual(get_default_commission_rate(), Decimal('0.08'))

    def test_vendor_rate_creates_profile(self):
        self.assertFalse(VendorProfile.objects.filter(user=self.vendor).exists())
        set_vendor_commission_rate(self.vendor, Decimal('0.03'))
        self.assertEqual(
            VendorProfile.objects.get(user=self.vendor).commission_rate, Decimal('0.0300')
        )

    def test_get_commission_rates(self):
        set_category_commission_rate(self.category, Decimal('0.05'))
        vendor = User.objects.get(pk=self.vendor.pk)
        rates = get_commission_rates(vendor, self.category, default_rate=Decimal('0.08'))
        self.assertEqual(rates['effective_rate'], Decimal('0.05'))
        self.assertEqual(rates['source'], CommissionSource.CATEGORY)
        self.assertIsNone(rates['vendor_rate'])

    def test_calculate_commission_rounds_to_cents(self):
        set_vendor_commission_rate(self.vendor, Decimal('0.0333'))
        vendor = User.objects.get(pk=self.vendor.pk)
        calc = calculate_commission('10.00', vendor)
        self.assertEqual(calc['commission_amount'], Decimal('0.33'))
        self.assertEqual(calc['vendor_earnings'], Decimal('9.67'))
        self.assertEqual(calc['source'], CommissionSource.VENDOR)


class ComputeEarningsTestCase(TestCase):
    """Pure folding of orders into a summary"""

    def order(self, pk, total, order_status, vendor_id=1):
        return SimpleNamespace(id=pk, vendor_id=vendor_id, total_amount=Decimal(total), status=order_status)

    def flat(self, rate='0.10', source=CommissionSource.DEFAULT):
        resolved = ResolvedRate(Decimal(rate), source)
        return lambda order: resolved

    def test_classify_order(self):
        self.assertEqual(classify_order(Order.STATUS_DELIVERED), 'completed')
        self.assertEqual(classify_order(Order.STATUS_SHIPPED), 'pending')
        self.assertIsNone(classify_order(Order.STATUS_CANCELLED))

    def test_cancelled_orders_are_excluded(self):
        orders = [
            self.order(1, '200.00', Order.STATUS_DELIVERED),
            self.order(2, '999.00', Order.STATUS_CANCELLED),
        ]
        summary = compute_earnings(1, orders, self.flat())
        self.assertEqual(summary.gross_sales, Decimal('200.00'))
        self.assertEqual(summary.order_count, 1)

    def test_other_vendors_are_ignored(self):
        orders = [self.order(1, '100.00', Order.STATUS_DELIVERED, vendor_id=2)]
        summary = compute_earnings(1, orders, self.flat())
        self.assertEqual(summary.gross_sales, Decimal('0'))
        self.assertIsNone(summary.commission_source)

    def test_pending_and_completed_partition_total(self):
        orders = [
            self.order(1, '120.50', Order.STATUS_DELIVERED),
            self.order(2, '80.25', Order.STATUS_PENDING),
            self.order(3, '33.33', Order.STATUS_PROCESSING),
            self.order(4, '10.00', Order.STATUS_CANCELLED),
        ]
        summary = compute_earnings(1, orders, self.flat('0.0725'))
        self.assertEqual(summary.pending + summary.completed, summary.total)
        self.assertEqual(summary.total, summary.gross_sales - summary.commission)

    def test_empty_orders_report_fallback_rate(self):
        fallback = ResolvedRate(Decimal('0.03'), CommissionSource.VENDOR)
        summary = compute_earnings(1, [], self.flat(), fallback=fallback)
        self.assertEqual(summary.total, Decimal('0'))
        self.assertEqual(summary.commission_rate, Decimal('0.03'))
        self.assertEqual(summary.commission_source, CommissionSource.VENDOR)

    def test_float_totals_are_read_as_written(self):
        orders = [
            SimpleNamespace(id=pk, vendor_id=1, total_amount=0.1, status=Order.STATUS_DELIVERED)
            for pk in (1, 2, 3)
        ]
        summary = compute_earnings(1, orders, self.flat('0'))
        self.assertEqual(summary.gross_sales, Decimal('0.3'))
        self.assertEqual(summary.completed, Decimal('0.3'))

    def test_mixed_rates_report_effective_rate(self):
        rates = {
            1: ResolvedRate(Decimal('0.10'), CommissionSource.CATEGORY),
            2: ResolvedRate(Decimal('0.05'), CommissionSource.DEFAULT),
        }
        orders = [
            self.order(1, '300.00', Order.STATUS_DELIVERED),
            self.order(2, '100.00', Order.STATUS_DELIVERED),
        ]
        summary = compute_earnings(1, orders, lambda order: rates[order.id])
        self.assertEqual(summary.commission, Decimal('35.0000'))
        self.assertEqual(summary.commission_rate, Decimal('0.0875'))
        self.assertEqual(summary.commission_source, CommissionSource.CATEGORY)


class VendorEarningsTestCase(MarketplaceFixtureMixin, TestCase):

    def setUp(self):
        self.create_marketplace()

    def test_category_rate_scenario(self):
        set_category_commission_rate(self.category, Decimal('0.05'))
        make_order(self.vendor, self.buyer, self.product, '1000.00', Order.STATUS_DELIVERED)

        summary = get_vendor_earnings(User.objects.get(pk=self.vendor.pk))

        self.assertEqual(summary.gross_sales, Decimal('1000'))
        self.assertEqual(summary.commission, Decimal('50'))
        self.assertEqual(summary.total, Decimal('950'))
        self.assertEqual(summary.completed, Decimal('950'))
        self.assertEqual(summary.pending, Decimal('0'))
        self.assertEqual(summary.commission_source, CommissionSource.CATEGORY)

    def test_vendor_override_scenario(self):
        set_category_commission_rate(self.category, Decimal('0.10'))
        set_vendor_commission_rate(self.vendor, Decimal('0.03'))
        make_order(self.vendor, self.buyer, self.product, '500.00', Order.STATUS_DELIVERED)
        make_order(self.vendor, self.buyer, self.product, '300.00', Order.STATUS_PENDING)

        summary = get_vendor_earnings(User.objects.get(pk=self.vendor.pk))

        self.assertEqual(summary.gross_sales, Decimal('800'))
        self.assertEqual(summary.commission, Decimal('24'))
        self.assertEqual(summary.total, Decimal('776'))
        self.assertEqual(summary.completed, Decimal('485'))
        self.assertEqual(summary.pending, Decimal('291'))
        self.assertEqual(summary.commission_source, CommissionSource.VENDOR)

    def test_zero_vendor_rate_keeps_everything(self):
        set_category_commission_rate(self.category, Decimal('0.10'))
        set_vendor_commission_rate(self.vendor, Decimal('0'))
        make_order(self.vendor, self.buyer, self.product, '250.00', Order.STATUS_DELIVERED)

        summary = get_vendor_earnings(User.objects.get(pk=self.vendor.pk))

        self.assertEqual(summary.commission, Decimal('0'))
        self.assertEqual(summary.completed, Decimal('250'))
        self.assertEqual(summary.commission_source, CommissionSource.VENDOR)

    def test_date_window_filters_orders(self):
        old = make_order(self.vendor, self.buyer, self.product, '100.00', Order.STATUS_DELIVERED)
        Order.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=400))
        make_order(self.vendor, self.buyer, self.product, '40.00', Order.STATUS_DELIVERED)

        start, end = get_date_range('today')
        summary = get_vendor_earnings(self.vendor, start, end)
        self.assertEqual(summary.gross_sales, Decimal('40.00'))
        self.assertEqual(get_vendor_earnings(self.vendor).gross_sales, Decimal('140.00'))

    @override_settings(DEFAULT_COMMISSION_RATE=Decimal('0.10'))
    def test_balance_subtracts_reserved_and_withdrawn(self):
        make_order(self.vendor, self.buyer, self.product, '1000.00', Order.STATUS_DELIVERED)
        make_order(self.vendor, self.buyer, self.product, '100.00', Order.STATUS_CONFIRMED)
        for amount, payout_status in (
            ('100.00', Payout.STATUS_PENDING),
            ('200.00', Payout.STATUS_COMPLETED),
            ('50.00', Payout.STATUS_REVERSED),
            ('75.00', Payout.STATUS_FAILED),
            ('60.00', Payout.STATUS_CANCELLED),
        ):
            Payout.objects.create(
                vendor=self.vendor,
                reference=f'REF-{payout_status}',
                amount=Decimal(amount),
                net_amount=Decimal(amount),
                status=payout_status,
                account_number='0240000000',
            )

        balance = get_vendor_balance(self.vendor)

        self.assertEqual(balance.completed_earnings, Decimal('900'))
        self.assertEqual(balance.pending_earnings, Decimal('90'))
        self.assertEqual(balance.reserved, Decimal('100.00'))
        self.assertEqual(balance.withdrawn, Decimal('250.00'))
        self.assertEqual(balance.available, Decimal('550'))

    def test_available_balance_is_truncated_to_cents(self):
        set_category_commission_rate(self.category, Decimal('0.0725'))
        make_order(self.vendor, self.buyer, self.product, '100.05', Order.STATUS_DELIVERED)

        balance = get_vendor_balance(self.vendor)

        self.assertEqual(balance.completed_earnings, Decimal('92.796375'))
        self.assertEqual(balance.available, Decimal('92.79'))
        self.assertEqual(balance.as_dict()['available'], '92.79')


class DateRangeTestCase(TestCase):

    def test_ranges_are_ordered(self):
        for period in ('today', 'this_week', 'this_month', 'last_month', 'last_3_months', 'this_year', 'all_time'):
            start, end = get_date_range(period)
            self.assertLess(start, end, period)
            self.assertTrue(timezone.is_aware(start))

    def test_last_month_ends_before_this_month(self):
        _, last_end = get_date_range('last_month')
        this_start, _ = get_date_range('this_month')
        self.assertLess(last_end, this_start)

    def test_unknown_period_means_all_time(self):
        start, _ = get_date_range('whenever')
        self.assertEqual(start.year, 1970)


class EarningsAPITestCase(MarketplaceFixtureMixin, APITestCase):
    """Test earnings API endpoints"""

    def setUp(self):
        self.create_marketplace()
        self.admin = User.objects.create_user(
            username='admin',
            email='admin@test.com',
            password='testpass123',
            role='admin'
        )
        set_category_commission_rate(self.category, Decimal('0.05'))
        make_order(self.vendor, self.buyer, self.product, '1000.00', Order.STATUS_DELIVERED)

    def test_vendor_summary(self):
        self.client.force_authenticate(user=self.vendor)
        response = self.client.get(reverse('vendor_earnings'), {'period': 'today', 'include_orders': '1'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        earnings = response.data['earnings']
        self.assertEqual(earnings['gross_sales'], '1000.00')
        self.assertEqual(earnings['commission'], '50.00')
        self.assertEqual(earnings['completed'], '950.00')
        self.assertEqual(earnings['commission_source'], 'category')
        self.assertEqual(len(earnings['orders']), 1)

    def test_admin_requires_vendor_param(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('vendor_earnings'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_admin_looks_up_vendor_by_name(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('vendor_balance'), {'vendor_name': 'testvendor'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['balance']['available'], '950.00')

    def test_buyer_forbidden(self):
        self.client.force_authenticate(user=self.buyer)
        response = self.client.get(reverse('vendor_earnings'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_transactions_list_delivered_only(self):
        make_order(self.vendor, self.buyer, self.product, '10.00', Order.STATUS_PENDING)
        self.client.force_authenticate(user=self.vendor)
        response = self.client.get(reverse('vendor_transactions'), {'period': 'today'})
        self.assertEqual(len(response.data['transactions']), 1)

    def test_all_vendors_stats_admin_only(self):
        self.client.force_authenticate(user=self.vendor)
        self.assertEqual(
            self.client.get(reverse('all_vendors_stats')).status_code, status.HTTP_403_FORBIDDEN
        )

        self.client.force_authenticate(user=self.admin)
        response = self.client.get(reverse('all_vendors_stats'), {'period': 'all_time'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['vendors'][0]['stats']['total'], '950.00')

    def test_commission_settings_update(self):
        self.client.force_authenticate(user=self.admin)
        url = reverse('commission_settings')

        response = self.client.post(url, {'type': 'vendor', 'vendor_id': self.vendor.id, 'rate': '0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(VendorProfile.objects.get(user=self.vendor).commission_rate, Decimal('0'))

        response = self.client.post(url, {'type': 'default', 'rate': '0.0600'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(get_default_commission_rate(), Decimal('0.0600'))

        response = self.client.get(url)
        self.assertEqual(response.data['default_rate'], '0.0600')
        self.assertEqual(response.data['vendors'][0]['commission_rate'], '0.0000')

    def test_commission_settings_validation(self):
        self.client.force_authenticate(user=self.admin)
        url = reverse('commission_settings')

        response = self.client.post(url, {'type': 'default', 'rate': None}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(url, {'type': 'category', 'rate': '1.5', 'category_id': self.category.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post(url, {'type': 'category', 'rate': '0.1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_commission_preview(self):
        self.client.force_authenticate(user=self.vendor)
        response = self.client.get(
            reverse('commission_preview'), {'subtotal': '200.00', 'category_id': self.category.id}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['commission']['commission_amount'], '10.00')
        self.assertEqual(response.data['commission']['source'], 'category')

    def test_ambiguous_rate_returns_server_error(self):
        self.client.force_authenticate(user=self.vendor)
        with patch('earnings.services.get_default_commission_rate', return_value=None):
            response = self.client.get(reverse('vendor_earnings'))
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)


class EarningsReportCommandTestCase(MarketplaceFixtureMixin, TestCase):

    def test_report_lists_vendor(self):
        self.create_marketplace()
        make_order(self.vendor, self.buyer, self.product, '100.00', Order.STATUS_DELIVERED)
        out = StringIO()
        call_command('earnings_report', '--period', 'all_time', stdout=out)
        self.assertIn('testvendor', out.getvalue())
        self.assertIn('Reported on 1 vendor(s)', out.getvalue())
