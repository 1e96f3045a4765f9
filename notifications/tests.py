from datetime import timedelta
from smtplib import SMTPException
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.cache import cache
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import VendorProfile
from productManagement.models import Categories, Products

from .low_stock import (
    AlertOutcome,
    LowStockCooldownTracker,
    check_product_stock,
    get_vendor_low_stock_products,
    run_low_stock_check,
    send_low_stock_alert,
    vendor_alert_settings,
)
from .models import InAppNotifications, LowStockAlertRecord, NotificationTypes, UserTypes
from .services import (
    create_order_update_notification,
    get_unread_count,
    get_user_notifications,
    mark_as_read,
)
from .tasks import run_low_stock_check_task

User = get_user_model()


class StockFixtureMixin:
    def create_stock(self):
        cache.clear()
        self.vendor = User.objects.create_user(
            username='vendor',
            email='vendor@test.com',
            phone='+0987654321',
            password='testpass123',
            role='vendor'
        )
        self.category = Categories.objects.create(name='Groceries', slug='groceries')
        self.product = self.add_product('Rice 5kg', quantity=3)

    def add_product(self, title, quantity, **kwargs):
        return Products.objects.create(
            vendor=self.vendor, title=title, quantity=quantity, category=self.category, **kwargs
        )


class CooldownTrackerTest(StockFixtureMixin, TestCase):
    def setUp(self):
        self.create_stock()
        self.tracker = LowStockCooldownTracker(cooldown=timedelta(hours=24))
        self.now = timezone.now()

    def test_first_alert_allowed(self):
        self.assertTrue(self.tracker.should_alert(self.vendor.pk, self.product.pk, self.now))

    def test_window_boundaries(self):
        self.tracker.record_alert(self.vendor.pk, self.product.pk, self.now)
        pk = (self.vendor.pk, self.product.pk)

        self.assertFalse(self.tracker.should_alert(*pk, self.now + timedelta(hours=23, minutes=59)))
        self.assertTrue(self.tracker.should_alert(*pk, self.now + timedelta(hours=24)))
        self.assertTrue(self.tracker.should_alert(*pk, self.now, skip_cooldown=True))

    def test_should_alert_does_not_record(self):
        self.tracker.should_alert(self.vendor.pk, self.product.pk, self.now)
        self.assertFalse(LowStockAlertRecord.objects.exists())

    def test_record_alert_keeps_one_row(self):
        self.tracker.record_alert(self.vendor.pk, self.product.pk, self.now)
        later = self.now + timedelta(days=2)
        self.tracker.record_alert(self.vendor.pk, self.product.pk, later)

        self.assertEqual(LowStockAlertRecord.objects.count(), 1)
        self.assertEqual(self.tracker.last_alerted_at(self.vendor.pk, self.product.pk), later)

    @override_settings(LOW_STOCK_ALERT_COOLDOWN_HOURS=6)
    def test_cooldown_from_settings(self):
        self.assertEqual(LowStockCooldownTracker().cooldown, timedelta(hours=6))


class SendLowStockAlertTest(StockFixtureMixin, TestCase):
    def setUp(self):
        self.create_stock()
        self.now = timezone.now()

    def test_alert_is_sent_once_within_cooldown(self):
        first = send_low_stock_alert(self.product, now=self.now)
        second = send_low_stock_alert(self.product, now=self.now + timedelta(hours=1))

        self.assertEqual(first.outcome, AlertOutcome.SENT)
        self.assertTrue(first.notification_sent)
        self.assertEqual(second.outcome, AlertOutcome.COOLDOWN_ACTIVE)
        self.assertEqual(InAppNotifications.objects.filter(user=self.vendor).count(), 1)
        self.assertEqual(LowStockAlertRecord.objects.get().last_alerted_at, self.now)

    def test_alert_repeats_after_cooldown(self):
        send_low_stock_alert(self.product, now=self.now)
        result = send_low_stock_alert(self.product, now=self.now + timedelta(hours=25))

        self.assertEqual(result.outcome, AlertOutcome.SENT)
        self.assertEqual(InAppNotifications.objects.count(), 2)

    def test_skip_cooldown(self):
        send_low_stock_alert(self.product, now=self.now)
        result = send_low_stock_alert(self.product, skip_cooldown=True, now=self.now + timedelta(minutes=5))

        self.assertEqual(result.outcome, AlertOutcome.SENT)
        self.assertEqual(
            LowStockAlertRecord.objects.get().last_alerted_at, self.now + timedelta(minutes=5)
        )

    def test_failed_dispatch_is_not_recorded(self):
        with patch('notifications.low_stock.create_low_stock_notification', side_effect=DatabaseError('db down')):
            result = send_low_stock_alert(self.product, now=self.now)

        self.assertEqual(result.outcome, AlertOutcome.FAILED)
        self.assertEqual(result.error, 'db down')
        self.assertFalse(LowStockAlertRecord.objects.exists())

        # the next attempt is not blocked by the failed one
        retry = send_low_stock_alert(self.product, now=self.now + timedelta(minutes=1))
        self.assertEqual(retry.outcome, AlertOutcome.SENT)

    def test_disabled_vendor_gets_nothing(self):
        VendorProfile.objects.create(user=self.vendor, low_stock_alerts=False)
        product = Products.objects.select_related('vendor__vendor_profile').get(pk=self.product.pk)

        result = send_low_stock_alert(product, now=self.now)

        self.assertEqual(result.outcome, AlertOutcome.DISABLED)
        self.assertFalse(InAppNotifications.objects.exists())
        self.assertFalse(LowStockAlertRecord.objects.exists())

    def test_out_of_stock_alert_type(self):
        result = send_low_stock_alert(self.product, quantity=0, now=self.now)
        notification = InAppNotifications.objects.get()

        self.assertEqual(result.alert_type, NotificationTypes.OUT_OF_STOCK_ALERT)
        self.assertEqual(notification.type, NotificationTypes.OUT_OF_STOCK_ALERT)
        self.assertTrue(notification.is_urgent)
        self.assertEqual(LowStockAlertRecord.objects.get().alert_type, NotificationTypes.OUT_OF_STOCK_ALERT)

    def test_email_follows_notification(self):
        result = send_low_stock_alert(self.product, now=self.now)

        self.assertTrue(result.email_sent)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, 'Low Stock Alert')
        self.assertEqual(mail.outbox[0].to, ['vendor@test.com'])

    def test_email_failure_keeps_alert(self):
        with patch('notifications.low_stock.send_mail', side_effect=SMTPException('relay refused')):
            result = send_low_stock_alert(self.product, now=self.now)

        self.assertEqual(result.outcome, AlertOutcome.SENT)
        self.assertFalse(result.email_sent)
        self.assertTrue(LowStockAlertRecord.objects.exists())

    def test_email_opt_out(self):
        VendorProfile.objects.create(user=self.vendor, email_notifications=False)
        product = Products.objects.select_related('vendor__vendor_profile').get(pk=self.product.pk)

        result = send_low_stock_alert(product, now=self.now)

        self.assertEqual(result.outcome, AlertOutcome.SENT)
        self.assertEqual(len(mail.outbox), 0)


@override_settings(LOW_STOCK_DEFAULT_THRESHOLD=5)
class StockCheckTest(StockFixtureMixin, TestCase):
    def setUp(self):
        self.create_stock()

    def test_vendor_alert_settings_defaults(self):
        self.assertEqual(vendor_alert_settings(self.vendor), (True, 5, True))

    def test_vendor_threshold_override(self):
        VendorProfile.objects.create(user=self.vendor, low_stock_threshold=2)
        vendor = User.objects.get(pk=self.vendor.pk)
        self.assertEqual(vendor_alert_settings(vendor), (True, 2, True))

    def test_check_skips_untracked_inactive_and_healthy(self):
        untracked = self.add_product('Salt', quantity=0, track_quantity=False)
        inactive = self.add_product('Sugar', quantity=0, is_active=False)
        healthy = self.add_product('Oil', quantity=6)

        self.assertIsNone(check_product_stock(untracked))
        self.assertIsNone(check_product_stock(inactive))
        self.assertIsNone(check_product_stock(healthy))
        self.assertFalse(InAppNotifications.objects.exists())

    def test_check_alerts_at_threshold(self):
        product = self.add_product('Beans', quantity=5)
        result = check_product_stock(product)
        self.assertEqual(result.outcome, AlertOutcome.SENT)
        self.assertEqual(result.threshold, 5)

    def test_scan_is_idempotent_within_cooldown(self):
        self.add_product('Beans', quantity=0)
        self.add_product('Oil', quantity=50)

        first = run_low_stock_check()
        second = run_low_stock_check()

        self.assertEqual([r.outcome for r in first], [AlertOutcome.SENT, AlertOutcome.SENT])
        self.assertEqual([r.outcome for r in second], [AlertOutcome.COOLDOWN_ACTIVE] * 2)
        self.assertEqual(InAppNotifications.objects.count(), 2)

    def test_scan_task_summary(self):
        summary = run_low_stock_check_task()
        self.assertEqual(summary[AlertOutcome.SENT.value], 1)
        self.assertEqual(summary[AlertOutcome.COOLDOWN_ACTIVE.value], 0)

    def test_scan_filters_vendor(self):
        other = User.objects.create_user(username='other', email='other@test.com', role='vendor')
        Products.objects.create(vendor=other, title='Milk', quantity=0, category=self.category)

        results = run_low_stock_check(vendor_id=other.pk)
        self.assertEqual([r.vendor_id for r in results], [other.pk])

    def test_low_stock_listing(self):
        self.add_product('Beans', quantity=0)
        products = get_vendor_low_stock_products(self.vendor)
        self.assertEqual([p['status'] for p in products], ['out_of_stock', 'low_stock'])


class NotificationServicesTest(TestCase):
    def setUp(self):
        cache.clear()
        self.buyer = User.objects.create_user(
            username='buyer', email='buyer@test.com', phone='+1234567890', role='buyer'
        )

    def test_order_update_notification(self):
        notification = create_order_update_notification(user_id=self.buyer.pk, order_id=7, new_status='shipped')

        self.assertEqual(notification.user_type, UserTypes.BUYER)
        self.assertEqual(notification.type, NotificationTypes.ORDER_UPDATE)
        self.assertEqual(notification.title, 'Order Shipped')
        self.assertTrue(notification.is_urgent)
        self.assertIn('#7', notification.message)
        self.assertEqual(notification.phone, '+1234567890')

    def test_cache_invalidated_on_new_notification(self):
        data, from_cache = get_user_notifications(user=self.buyer, user_type=UserTypes.BUYER)
        self.assertEqual(data, [])
        self.assertFalse(from_cache)
        _, from_cache = get_user_notifications(user=self.buyer, user_type=UserTypes.BUYER)
        self.assertTrue(from_cache)

        create_order_update_notification(user_id=self.buyer.pk, order_id=1, new_status='confirmed')

        data, from_cache = get_user_notifications(user=self.buyer, user_type=UserTypes.BUYER)
        self.assertFalse(from_cache)
        self.assertEqual(len(data), 1)

    def test_mark_as_read_updates_count(self):
        notification = create_order_update_notification(user_id=self.buyer.pk, order_id=1, new_status='confirmed')
        self.assertEqual(get_unread_count(user=self.buyer, user_type=UserTypes.BUYER)[0], 1)

        mark_as_read(notification.pk, user=self.buyer, user_type=UserTypes.BUYER)

        self.assertEqual(get_unread_count(user=self.buyer, user_type=UserTypes.BUYER)[0], 0)

    def test_expired_notifications_hidden(self):
        notification = create_order_update_notification(user_id=self.buyer.pk, order_id=1, new_status='confirmed')
        InAppNotifications.objects.filter(pk=notification.pk).update(
            expires_at=timezone.now() - timedelta(minutes=1)
        )
        cache.clear()
        data, _ = get_user_notifications(user=self.buyer, user_type=UserTypes.BUYER)
        self.assertEqual(data, [])
        notification.refresh_from_db()
        self.assertTrue(notification.is_expired)


class NotificationAPITest(StockFixtureMixin, APITestCase):
    def setUp(self):
        self.create_stock()
        self.admin = User.objects.create_user(
            username='admin', email='admin@test.com', password='testpass123', role='admin'
        )

    def test_list_and_mark_all_read(self):
        send_low_stock_alert(self.product)
        self.client.force_authenticate(user=self.vendor)

        response = self.client.get(reverse('notif-list'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(self.client.get(reverse('notif-unread-count')).data['count'], 1)

        self.client.post(reverse('notif-mark-all'))
        self.assertEqual(self.client.get(reverse('notif-unread-count')).data['count'], 0)

    def test_mark_read_only_own(self):
        send_low_stock_alert(self.product)
        notification = InAppNotifications.objects.get()
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(reverse('notif-mark-read'), {'notification_id': notification.pk}, format='json')
        self.assertEqual(response.data['updated'], 0)

    def test_vendor_low_stock_list(self):
        self.client.force_authenticate(user=self.vendor)
        response = self.client.get(reverse('notif-low-stock'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['products'][0]['title'], 'Rice 5kg')

    def test_manual_alert_respects_cooldown(self):
        self.client.force_authenticate(user=self.admin)
        url = reverse('notif-test-low-stock')
        body = {'mode': 'manual', 'vendor_id': self.vendor.pk, 'product_id': self.product.pk}

        first = self.client.post(url, body, format='json')
        second = self.client.post(url, body, format='json')
        third = self.client.post(url, dict(body, skip_cooldown=True), format='json')

        self.assertEqual(first.data['result']['outcome'], 'sent')
        self.assertEqual(second.data['result']['outcome'], 'cooldown_active')
        self.assertFalse(second.data['result']['notification_sent'])
        self.assertEqual(third.data['result']['outcome'], 'sent')

    def test_manual_alert_wrong_vendor(self):
        other = User.objects.create_user(username='other', email='other@test.com', role='vendor')
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(
            reverse('notif-test-low-stock'),
            {'mode': 'manual', 'vendor_id': other.pk, 'product_id': self.product.pk},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_manual_mode_requires_ids(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(reverse('notif-test-low-stock'), {'mode': 'manual'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_scan_mode(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(reverse('notif-test-low-stock'), {'mode': 'scan'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 1)

    def test_vendor_cannot_trigger_alerts(self):
        self.client.force_authenticate(user=self.vendor)
        response = self.client.post(reverse('notif-test-low-stock'), {'mode': 'scan'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
