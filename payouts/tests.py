import hashlib
import hmac
import json
import threading
from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

import requests
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from earnings.services import get_vendor_balance
from notifications.models import InAppNotifications, NotificationTypes
from orders.models import Order, OrderItem
from productManagement.models import Categories, Products

from . import bank_accounts, paystack, services
from .exceptions import (
    InsufficientBalance,
    InvalidPayoutAccount,
    InvalidPayoutAmount,
    InvalidStateTransition,
)
from .models import Payout, PayoutEvent, VendorBankAccount
from .processor import apply_transfer_event, dispatch_payout
from .selectors import payout_stats
from .tasks import sync_processing_payouts
from .utils import generate_reference
from .validators import validate_payout_amount, verify_paystack_signature

User = get_user_model()

SECRET = 'sk_test_secret'

BANK_DESTINATION = {
    'account_type': Payout.ACCOUNT_BANK,
    'bank_account_name': 'Test Business Ltd',
    'bank_name': 'GCB Bank',
    'bank_code': 'GCB123',
    'account_number': '1234567890',
}

# The same destination as a saved account
BANK_ACCOUNT = {
    'account_type': VendorBankAccount.ACCOUNT_BANK,
    'account_name': 'Test Business Ltd',
    'bank_name': 'GCB Bank',
    'bank_code': 'GCB123',
    'account_number': '1234567890',
}


def paystack_response(data, ok=True, message='OK'):
    resp = MagicMock()
    resp.status_code = 200
    resp.raise_for_status.return_value = None
    resp.json.return_value = {'status': ok, 'message': message, 'data': data}
    return resp


def sign(body: bytes, secret=SECRET):
    return hmac.new(secret.encode('utf-8'), body, hashlib.sha512).hexdigest()


class PayoutFixtureMixin:
    """A vendor with 900.00 withdrawable (1000.00 delivered at 10%)"""

    def create_vendor_with_earnings(self, username='testvendor', delivered='1000.00'):
        vendor = User.objects.create_user(
            username=username,
            email=f'{username}@test.com',
            password='testpass123',
            role='vendor',
            business_name='Test Business',
        )
        buyer, _ = User.objects.get_or_create(
            username='testbuyer', defaults={'email': 'buyer@test.com', 'role': 'buyer'}
        )
        category, _ = Categories.objects.get_or_create(
            slug='general', defaults={'name': 'General', 'commission_rate': Decimal('0.10')}
        )
        product = Products.objects.create(
            vendor=vendor, title='Basket', regular_price=Decimal(delivered), quantity=10, category=category
        )
        order = Order.objects.create(
            user=buyer,
            vendor=vendor,
            subtotal=Decimal(delivered),
            total_amount=Decimal(delivered),
            payment_method='cash',
            delivery_address='Test Address',
            status=Order.STATUS_DELIVERED,
        )
        OrderItem.objects.create(
            order=order, product=product, quantity=1,
            unit_price=Decimal(delivered), price=Decimal(delivered),
        )
        bank_accounts.add_bank_account(vendor=vendor, **BANK_ACCOUNT)
        return vendor

    def make_payout(self, vendor, payout_status=Payout.STATUS_PENDING, amount='100.00', **kwargs):
        fields = dict(BANK_DESTINATION)
        fields.update(kwargs)
        return Payout.objects.create(
            vendor=vendor,
            reference=generate_reference(),
            amount=Decimal(amount),
            net_amount=Decimal(amount),
            status=payout_status,
            **fields,
        )


@override_settings(PAYOUT_MINIMUM_AMOUNT=Decimal('50.00'), PAYOUT_FLAT_FEE=Decimal('0.00'))
class RequestPayoutTestCase(PayoutFixtureMixin, TestCase):

    def setUp(self):
        self.vendor = self.create_vendor_with_earnings()

    def test_request_reserves_balance(self):
        payout = services.request_payout(vendor=self.vendor, amount='300.00')

        self.assertEqual(payout.status, Payout.STATUS_PENDING)
        self.assertEqual(payout.amount, Decimal('300.00'))
        self.assertTrue(payout.reference.startswith('KIOSK_'))
        self.assertEqual(get_vendor_balance(self.vendor).available, Decimal('600.00'))
        event = payout.events.get()
        self.assertEqual(event.action, services.ACTION_REQUEST)
        self.assertEqual(event.to_status, Payout.STATUS_PENDING)

    def test_second_request_after_draining_balance_fails(self):
        services.request_payout(vendor=self.vendor, amount='900.00')

        for amount in ('50.00', '10.00', '0.01'):
            with self.subTest(amount=amount):
                with self.assertRaises(InsufficientBalance) as ctx:
                    services.request_payout(vendor=self.vendor, amount=amount)
                self.assertEqual(ctx.exception.available, Decimal('0'))
        self.assertEqual(Payout.objects.filter(vendor=self.vendor).count(), 1)

    def test_whole_balance_below_minimum_can_be_withdrawn(self):
        vendor = self.create_vendor_with_earnings(username='smallvendor', delivered='40.00')
        self.assertEqual(get_vendor_balance(vendor).available, Decimal('36.00'))

        with self.assertRaises(InvalidPayoutAmount):
            services.request_payout(vendor=vendor, amount='20.00')
        with self.assertRaises(InsufficientBalance):
            services.request_payout(vendor=vendor, amount='40.00')

        payout = services.request_payout(vendor=vendor, amount='36.00')
        self.assertEqual(payout.amount, Decimal('36.00'))
        self.assertEqual(get_vendor_balance(vendor).available, Decimal('0.00'))

    def test_sub_cent_earnings_are_not_withdrawable(self):
        Categories.objects.filter(slug='general').update(commission_rate=Decimal('0.0725'))
        vendor = self.create_vendor_with_earnings(username='centsvendor', delivered='100.05')
        balance = get_vendor_balance(vendor)
        self.assertEqual(balance.completed_earnings, Decimal('92.796375'))
        self.assertEqual(balance.available, Decimal('92.79'))
        self.assertEqual(balance.as_dict()['available'], '92.79')

        services.request_payout(vendor=vendor, amount=balance.as_dict()['available'])

        with self.assertRaises(InsufficientBalance) as ctx:
            services.request_payout(vendor=vendor, amount='0.01')
        self.assertEqual(ctx.exception.available, Decimal('0.00'))

    def test_payout_copies_primary_account(self):
        payout = services.request_payout(vendor=self.vendor, amount='100.00')
        account = bank_accounts.get_primary_bank_account(self.vendor)

        self.assertEqual(payout.bank_account, account)
        self.assertEqual(payout.bank_account_name, 'Test Business Ltd')
        self.assertEqual(payout.bank_code, 'GCB123')
        self.assertEqual(payout.account_number, '1234567890')

    def test_payout_to_chosen_account(self):
        wallet = bank_accounts.add_bank_account(
            vendor=self.vendor,
            account_type=VendorBankAccount.ACCOUNT_MOBILE_MONEY,
            account_name='Ama Mensah',
            account_number='0241234567',
            mobile_money_provider='mtn',
        )
        payout = services.request_payout(vendor=self.vendor, amount='100.00', account_id=wallet.pk)

        self.assertEqual(payout.bank_account, wallet)
        self.assertEqual(payout.account_type, Payout.ACCOUNT_MOBILE_MONEY)
        self.assertEqual(payout.mobile_money_provider, 'mtn')

    def test_request_needs_own_saved_account(self):
        other = self.create_vendor_with_earnings(username='othervendor')
        other_account = bank_accounts.get_primary_bank_account(other)

        with self.assertRaises(InvalidPayoutAccount):
            services.request_payout(vendor=self.vendor, amount='100.00', account_id=other_account.pk)

        VendorBankAccount.objects.filter(vendor=self.vendor).delete()
        with self.assertRaises(InvalidPayoutAccount):
            services.request_payout(vendor=self.vendor, amount='100.00')
        self.assertFalse(Payout.objects.filter(vendor=self.vendor).exists())

    def test_requests_never_exceed_completed_earnings(self):
        for amount in ('400.00', '400.00', '200.00', '100.00', '60.00'):
            try:
                services.request_payout(vendor=self.vendor, amount=amount)
            except InsufficientBalance:
                pass
            balance = get_vendor_balance(self.vendor)
            self.assertGreaterEqual(balance.available, Decimal('0'))
            self.assertLessEqual(balance.reserved + balance.withdrawn, balance.completed_earnings)

        self.assertEqual(
            sorted(Payout.objects.values_list('amount', flat=True)),
            [Decimal('100.00'), Decimal('400.00'), Decimal('400.00')],
        )

    @override_settings(PAYOUT_FLAT_FEE=Decimal('2.50'))
    def test_flat_fee_is_deducted_from_net(self):
        payout = services.request_payout(vendor=self.vendor, amount='100.00')
        self.assertEqual(payout.fee, Decimal('2.50'))
        self.assertEqual(payout.net_amount, Decimal('97.50'))

    def test_invalid_amounts(self):
        for amount in ('0', '-10', '49.99', '100.001', 'abc'):
            with self.subTest(amount=amount):
                with self.assertRaises(InvalidPayoutAmount):
                    services.request_payout(vendor=self.vendor, amount=amount)
        self.assertFalse(Payout.objects.exists())

    def test_validate_payout_amount_fee_bounds(self):
        self.assertEqual(validate_payout_amount('60', '1.00'), (Decimal('60'), Decimal('1.00')))
        with self.assertRaises(InvalidPayoutAmount):
            validate_payout_amount('60.00', '-1')
        with self.assertRaises(InvalidPayoutAmount):
            validate_payout_amount('60.00', '61.00')


@override_settings(PAYOUT_MINIMUM_AMOUNT=Decimal('50.00'))
class PayoutTransitionTestCase(PayoutFixtureMixin, TestCase):

    ACTIONS = {
        services.ACTION_SUBMIT: lambda pk: services.submit(pk, transfer_code='TRF_manual'),
        services.ACTION_MARK_COMPLETED: lambda pk: services.mark_completed(pk),
        services.ACTION_MARK_FAILED: lambda pk: services.mark_failed(pk, reason='Account closed'),
        services.ACTION_RETRY: lambda pk: services.retry(pk),
        services.ACTION_CANCEL: lambda pk: services.cancel(pk),
        services.ACTION_REVERSE: lambda pk: services.reverse(pk),
    }

    def setUp(self):
        self.vendor = self.create_vendor_with_earnings()

    def test_every_action_from_every_status(self):
        statuses = [value for value, _ in Payout.STATUS_CHOICES]
        self.assertEqual(set(self.ACTIONS), set(services.TRANSITIONS))

        for action, run in self.ACTIONS.items():
            sources, target = services.TRANSITIONS[action]
            for current in statuses:
                with self.subTest(action=action, status=current):
                    payout = self.make_payout(self.vendor, current)
                    if current in sources:
                        run(payout.pk)
                        payout.refresh_from_db()
                        self.assertEqual(payout.status, target)
                        self.assertTrue(payout.events.filter(action=action, from_status=current).exists())
                    else:
                        with self.assertRaises(InvalidStateTransition):
                            run(payout.pk)
                        payout.refresh_from_db()
                        self.assertEqual(payout.status, current)
                        self.assertFalse(payout.events.exists())
                    # keep the balance free for the next retry
                    Payout.objects.filter(pk=payout.pk).update(status=Payout.STATUS_CANCELLED)

    def test_can_transition(self):
        self.assertTrue(services.can_transition(Payout.STATUS_PENDING, services.ACTION_SUBMIT))
        self.assertFalse(services.can_transition(Payout.STATUS_COMPLETED, services.ACTION_CANCEL))
        self.assertFalse(services.can_transition(Payout.STATUS_CANCELLED, services.ACTION_RETRY))

    def test_already_in_target_message(self):
        payout = self.make_payout(self.vendor, Payout.STATUS_COMPLETED)
        with self.assertRaises(InvalidStateTransition) as ctx:
            services.mark_completed(payout.pk)
        self.assertTrue(ctx.exception.already_in_target)
        self.assertEqual(ctx.exception.message, 'Payout is already completed')
        self.assertEqual(ctx.exception.status_code, 409)

    def test_full_lifecycle_records_events(self):
        payout = services.request_payout(vendor=self.vendor, amount='100.00')
        services.submit(payout.pk, transfer_code='TRF_abc')
        services.mark_failed(payout.pk, reason='Invalid account')
        services.retry(payout.pk)
        services.submit(payout.pk, transfer_code='TRF_def')
        services.mark_completed(payout.pk)

        payout.refresh_from_db()
        self.assertEqual(payout.status, Payout.STATUS_COMPLETED)
        self.assertIsNotNone(payout.processed_at)
        self.assertEqual(
            list(payout.events.values_list('action', flat=True)),
            ['request', 'submit', 'mark_failed', 'retry', 'submit', 'mark_completed'],
        )

    def test_failed_payout_releases_balance(self):
        payout = services.request_payout(vendor=self.vendor, amount='900.00')
        services.submit(payout.pk, transfer_code='TRF_abc')
        services.mark_failed(payout.pk, reason='Invalid account')
        self.assertEqual(get_vendor_balance(self.vendor).available, Decimal('900.00'))

    def test_retry_rechecks_balance_and_changes_reference(self):
        payout = services.request_payout(vendor=self.vendor, amount='600.00')
        services.submit(payout.pk, transfer_code='TRF_abc')
        services.mark_failed(payout.pk, reason='Timeout')

        # balance spent elsewhere while the payout was failed
        services.request_payout(vendor=self.vendor, amount='400.00')
        with self.assertRaises(InsufficientBalance):
            services.retry(payout.pk)
        payout.refresh_from_db()
        self.assertEqual(payout.status, Payout.STATUS_FAILED)

        Payout.objects.exclude(pk=payout.pk).update(status=Payout.STATUS_CANCELLED)
        old_reference = payout.reference
        payout = services.retry(payout.pk)
        self.assertEqual(payout.status, Payout.STATUS_PENDING)
        self.assertTrue(payout.reference.startswith('PO-RETRY-'))
        self.assertNotEqual(payout.reference, old_reference)
        self.assertIsNone(payout.failure_reason)
        self.assertEqual(payout.transfer_code, '')

    def test_reversed_payout_stays_withdrawn(self):
        payout = services.request_payout(vendor=self.vendor, amount='200.00')
        services.submit(payout.pk, transfer_code='TRF_abc')
        services.mark_completed(payout.pk)
        services.reverse(payout.pk, reason='Bank reversal')

        balance = get_vendor_balance(self.vendor)
        self.assertEqual(balance.withdrawn, Decimal('200.00'))
        self.assertEqual(balance.available, Decimal('700.00'))

    def test_completion_notifies_vendor(self):
        payout = self.make_payout(self.vendor, Payout.STATUS_PROCESSING)
        with self.captureOnCommitCallbacks(execute=True):
            services.mark_completed(payout.pk)

        notification = InAppNotifications.objects.get(user=self.vendor)
        self.assertEqual(notification.type, NotificationTypes.PAYMENT_UPDATE)
        self.assertEqual(notification.metadata['status'], Payout.STATUS_COMPLETED)

    def test_cancel_does_not_notify(self):
        payout = self.make_payout(self.vendor, Payout.STATUS_PENDING)
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            services.cancel(payout.pk, reason='Vendor asked')
        self.assertEqual(len(callbacks), 0)


@override_settings(PAYOUT_MINIMUM_AMOUNT=Decimal('50.00'), PAYOUT_FLAT_FEE=Decimal('0.00'))
class ConcurrentPayoutRequestTestCase(PayoutFixtureMixin, TransactionTestCase):

    def test_concurrent_requests_cannot_overdraw(self):
        vendor = self.create_vendor_with_earnings()
        results = []
        barrier = threading.Barrier(2)

        def worker():
            try:
                barrier.wait()
                services.request_payout(vendor=vendor, amount='600.00')
                results.append('ok')
            except InsufficientBalance:
                results.append('insufficient')
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(sorted(results), ['insufficient', 'ok'])
        self.assertEqual(get_vendor_balance(vendor).available, Decimal('300.00'))


@override_settings(PAYSTACK_SECRET_KEY=SECRET, PAYSTACK_BASE_URL='https://api.paystack.test')
class PaystackClientTestCase(TestCase):

    @patch('payouts.paystack.requests.post')
    def test_initiate_transfer_sends_minor_units(self, mock_post):
        mock_post.return_value = paystack_response({'transfer_code': 'TRF_1', 'status': 'pending'})

        data = paystack.initiate_transfer(amount=Decimal('97.50'), recipient='RCP_1', reference='KIOSK_1')

        self.assertEqual(data['transfer_code'], 'TRF_1')
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], 'https://api.paystack.test/transfer')
        self.assertEqual(kwargs['json']['amount'], 9750)
        self.assertEqual(kwargs['headers']['Authorization'], f'Bearer {SECRET}')

    @patch('payouts.paystack.time.sleep')
    @patch('payouts.paystack.requests.get')
    def test_timeouts_are_retried(self, mock_get, mock_sleep):
        mock_get.side_effect = [requests.exceptions.Timeout('slow'), paystack_response({'status': 'success'})]

        data = paystack.verify_transfer('KIOSK_1')

        self.assertEqual(data['status'], 'success')
        self.assertEqual(mock_get.call_count, 2)
        mock_sleep.assert_called_once_with(1)

    @patch('payouts.paystack.requests.post')
    def test_transfer_is_not_retried(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError('reset')
        with self.assertRaises(paystack.PaystackAPIError):
            paystack.initiate_transfer(amount=Decimal('10.00'), recipient='RCP_1', reference='KIOSK_1')
        self.assertEqual(mock_post.call_count, 1)

    @patch('payouts.paystack.requests.post')
    def test_false_status_raises(self, mock_post):
        mock_post.return_value = paystack_response(None, ok=False, message='Your balance is not enough')
        with self.assertRaises(paystack.PaystackAPIError) as ctx:
            paystack.initiate_transfer(amount=Decimal('10.00'), recipient='RCP_1', reference='KIOSK_1')
        self.assertEqual(ctx.exception.message, 'Your balance is not enough')

    @override_settings(PAYSTACK_SECRET_KEY='')
    def test_missing_secret_raises(self):
        with self.assertRaises(paystack.PaystackAPIError):
            paystack.verify_transfer('KIOSK_1')

    def test_minor_units(self):
        self.assertEqual(paystack.to_minor_units('10.005'), 1001)
        self.assertEqual(paystack.from_minor_units(1001), Decimal('10.01'))


@override_settings(PAYSTACK_SECRET_KEY=SECRET, PAYOUT_MINIMUM_AMOUNT=Decimal('50.00'))
class DispatchPayoutTestCase(PayoutFixtureMixin, TestCase):

    def setUp(self):
        self.vendor = self.create_vendor_with_earnings()
        self.payout = services.request_payout(
            vendor=self.vendor, amount='100.00'
        )

    @patch('payouts.paystack.requests.post')
    def test_dispatch_moves_to_processing(self, mock_post):
        mock_post.side_effect = [
            paystack_response({'recipient_code': 'RCP_1'}),
            paystack_response({'transfer_code': 'TRF_1', 'status': 'pending'}),
        ]

        payout = dispatch_payout(self.payout)

        self.assertEqual(payout.status, Payout.STATUS_PROCESSING)
        self.assertEqual(payout.transfer_code, 'TRF_1')
        self.assertEqual(payout.recipient_code, 'RCP_1')
        recipient_payload = mock_post.call_args_list[0].kwargs['json']
        self.assertEqual(recipient_payload['type'], 'ghipss')
        self.assertEqual(recipient_payload['bank_code'], 'GCB123')

    @patch('payouts.paystack.requests.post')
    def test_synchronous_success_completes(self, mock_post):
        mock_post.side_effect = [
            paystack_response({'recipient_code': 'RCP_1'}),
            paystack_response({'transfer_code': 'TRF_1', 'status': 'success'}),
        ]
        payout = dispatch_payout(self.payout)
        self.assertEqual(payout.status, Payout.STATUS_COMPLETED)

    @patch('payouts.paystack.requests.post')
    def test_mobile_money_uses_provider_code(self, mock_post):
        payout = self.make_payout(
            self.vendor,
            account_type=Payout.ACCOUNT_MOBILE_MONEY,
            bank_name='',
            bank_code='',
            mobile_money_provider='MTN',
            amount='50.00',
        )
        mock_post.side_effect = [
            paystack_response({'recipient_code': 'RCP_2'}),
            paystack_response({'transfer_code': 'TRF_2', 'status': 'pending'}),
        ]
        dispatch_payout(payout)
        recipient_payload = mock_post.call_args_list[0].kwargs['json']
        self.assertEqual(recipient_payload['type'], 'mobile_money')
        self.assertEqual(recipient_payload['bank_code'], 'MTN')

    @patch('payouts.paystack.requests.post')
    def test_processor_failure_leaves_payout_pending(self, mock_post):
        mock_post.side_effect = [
            paystack_response({'recipient_code': 'RCP_1'}),
            paystack_response(None, ok=False, message='Insufficient balance'),
        ]

        with self.assertRaises(paystack.PaystackAPIError):
            dispatch_payout(self.payout)

        self.payout.refresh_from_db()
        self.assertEqual(self.payout.status, Payout.STATUS_PENDING)
        self.assertEqual(self.payout.recipient_code, 'RCP_1')
        self.assertEqual(get_vendor_balance(self.vendor).reserved, Decimal('100.00'))

    @patch('payouts.paystack.requests.post')
    def test_saved_account_is_registered_once(self, mock_post):
        second = services.request_payout(vendor=self.vendor, amount='100.00')
        mock_post.side_effect = [
            paystack_response({'recipient_code': 'RCP_1'}),
            paystack_response({'transfer_code': 'TRF_1', 'status': 'pending'}),
            paystack_response({'transfer_code': 'TRF_2', 'status': 'pending'}),
        ]

        dispatch_payout(self.payout)
        payout = dispatch_payout(Payout.objects.get(pk=second.pk))

        self.assertEqual(payout.recipient_code, 'RCP_1')
        urls = [c.args[0] for c in mock_post.call_args_list]
        self.assertEqual(sum(url.endswith('/transferrecipient') for url in urls), 1)
        account = VendorBankAccount.objects.get(vendor=self.vendor)
        self.assertEqual(account.recipient_code, 'RCP_1')
        self.assertTrue(account.is_verified)

    def test_dispatch_rejects_non_pending(self):
        Payout.objects.filter(pk=self.payout.pk).update(status=Payout.STATUS_CANCELLED)
        self.payout.refresh_from_db()
        with self.assertRaises(InvalidStateTransition):
            dispatch_payout(self.payout)


class TransferEventTestCase(PayoutFixtureMixin, TestCase):

    def setUp(self):
        self.vendor = self.create_vendor_with_earnings()
        self.payout = self.make_payout(self.vendor, Payout.STATUS_PROCESSING)

    def test_success_event(self):
        payout = apply_transfer_event(
            'transfer.success',
            {'reference': self.payout.reference, 'transferred_at': '2026-03-01T10:00:00Z'},
        )
        self.assertEqual(payout.status, Payout.STATUS_COMPLETED)
        self.assertEqual(payout.processed_at.year, 2026)

    def test_duplicate_event_raises(self):
        apply_transfer_event('transfer.failed', {'reference': self.payout.reference, 'reason': 'Closed'})
        with self.assertRaises(InvalidStateTransition):
            apply_transfer_event('transfer.failed', {'reference': self.payout.reference})
        self.payout.refresh_from_db()
        self.assertEqual(self.payout.failure_reason, 'Closed')

    def test_unknown_reference(self):
        self.assertIsNone(apply_transfer_event('transfer.success', {'reference': 'NOPE'}))

    @override_settings(PAYSTACK_SECRET_KEY=SECRET)
    @patch('payouts.paystack.requests.get')
    def test_sync_task_polls_stale_processing_payouts(self, mock_get):
        fresh = self.make_payout(self.vendor, Payout.STATUS_PROCESSING)
        Payout.objects.filter(pk=self.payout.pk).update(updated_at=timezone.now() - timedelta(hours=1))
        mock_get.return_value = paystack_response({'status': 'success', 'reference': self.payout.reference})

        self.assertEqual(sync_processing_payouts(), 1)

        self.payout.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(self.payout.status, Payout.STATUS_COMPLETED)
        self.assertEqual(fresh.status, Payout.STATUS_PROCESSING)
        self.assertEqual(mock_get.call_count, 1)


@override_settings(PAYSTACK_SECRET_KEY=SECRET)
class PaystackWebhookTestCase(PayoutFixtureMixin, APITestCase):

    def setUp(self):
        self.vendor = self.create_vendor_with_earnings()
        self.payout = self.make_payout(self.vendor, Payout.STATUS_PROCESSING)
        self.url = reverse('paystack-webhook')

    def post_event(self, payload, signature=None):
        body = json.dumps(payload).encode('utf-8')
        return self.client.post(
            self.url,
            data=body,
            content_type='application/json',
            HTTP_X_PAYSTACK_SIGNATURE=signature if signature is not None else sign(body),
        )

    def test_signature_helper(self):
        body = b'{"event": "transfer.success"}'
        self.assertTrue(verify_paystack_signature({'x-paystack-signature': sign(body)}, body))
        self.assertFalse(verify_paystack_signature({'x-paystack-signature': sign(body, 'other')}, body))
        self.assertFalse(verify_paystack_signature({}, body))

    def test_bad_signature_rejected(self):
        response = self.post_event(
            {'event': 'transfer.success', 'data': {'reference': self.payout.reference}},
            signature='deadbeef',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.payout.refresh_from_db()
        self.assertEqual(self.payout.status, Payout.STATUS_PROCESSING)

    @override_settings(PAYSTACK_SECRET_KEY='')
    def test_unconfigured_secret_rejects(self):
        response = self.post_event(
            {'event': 'transfer.success', 'data': {'reference': self.payout.reference}},
            signature='anything',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_success_then_duplicate(self):
        payload = {'event': 'transfer.success', 'data': {'reference': self.payout.reference}}

        response = self.post_event(payload)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Payout.STATUS_COMPLETED)

        response = self.post_event(payload)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['detail'], 'Already processed')
        self.assertEqual(PayoutEvent.objects.filter(payout=self.payout).count(), 1)

    def test_invalid_payload(self):
        response = self.post_event({'event': 'transfer.success', 'data': {}})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_reference_acknowledged(self):
        response = self.post_event({'event': 'transfer.success', 'data': {'reference': 'KIOSK_UNKNOWN'}})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['detail'], 'Acknowledged')


@override_settings(
    PAYSTACK_SECRET_KEY=SECRET,
    PAYOUT_MINIMUM_AMOUNT=Decimal('50.00'),
    PAYOUT_FLAT_FEE=Decimal('0.00'),
)
class PayoutAPITestCase(PayoutFixtureMixin, APITestCase):

    def setUp(self):
        self.vendor = self.create_vendor_with_earnings()
        self.admin = User.objects.create_user(
            username='admin', email='admin@test.com', password='testpass123', role='admin'
        )
        self.url = reverse('vendor-payouts')

    def request_body(self, amount):
        return {'amount': amount}

    def test_vendor_sees_balance(self):
        self.client.force_authenticate(user=self.vendor)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['balance']['available'], '900.00')
        self.assertEqual(response.data['payouts'], [])

    @patch('payouts.paystack.requests.post')
    def test_vendor_requests_payout(self, mock_post):
        mock_post.side_effect = [
            paystack_response({'recipient_code': 'RCP_1'}),
            paystack_response({'transfer_code': 'TRF_1', 'status': 'pending'}),
        ]
        self.client.force_authenticate(user=self.vendor)

        response = self.client.post(self.url, self.request_body('250.00'), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['payout']['status'], Payout.STATUS_PROCESSING)
        self.assertEqual(get_vendor_balance(self.vendor).available, Decimal('650.00'))

    def test_overdraw_rejected(self):
        self.client.force_authenticate(user=self.vendor)
        response = self.client.post(self.url, self.request_body('950.00'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Insufficient balance', response.data['message'])

    def test_bank_code_required(self):
        self.client.force_authenticate(user=self.vendor)
        body = dict(BANK_ACCOUNT)
        body.pop('bank_code')
        response = self.client.post(reverse('vendor-bank-accounts'), body, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('bank_code', response.data['errors'])

    @patch('payouts.paystack.requests.post')
    def test_processor_outage_returns_bad_gateway(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError('down')
        self.client.force_authenticate(user=self.vendor)

        with patch('payouts.paystack.time.sleep'):
            response = self.client.post(self.url, self.request_body('100.00'), format='json')

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['payout']['status'], Payout.STATUS_PENDING)

    def test_buyer_cannot_request(self):
        buyer = User.objects.get(username='testbuyer')
        self.client.force_authenticate(user=buyer)
        response = self.client.post(self.url, self.request_body('100.00'), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_cancel_and_conflict(self):
        payout = self.make_payout(self.vendor, Payout.STATUS_PENDING)
        self.client.force_authenticate(user=self.admin)
        url = reverse('admin-payout-cancel', args=[payout.pk])

        response = self.client.post(url, {'reason': 'Duplicate request'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['payout']['status'], Payout.STATUS_CANCELLED)
        self.assertEqual(response.data['payout']['events'][0]['actor'], self.admin.pk)
        self.assertTrue(response.data['payout']['is_terminal'])

        response = self.client.post(url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_admin_records_manual_transfer(self):
        payout = self.make_payout(self.vendor, Payout.STATUS_PENDING)
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(
            reverse('admin-payout-submit', args=[payout.pk]), {'transfer_code': 'TRF_manual'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['payout']['status'], Payout.STATUS_PROCESSING)

    @patch('payouts.paystack.requests.post')
    def test_admin_retry_dispatches_again(self, mock_post):
        payout = self.make_payout(self.vendor, Payout.STATUS_FAILED, recipient_code='RCP_1')
        mock_post.return_value = paystack_response({'transfer_code': 'TRF_9', 'status': 'pending'})
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(reverse('admin-payout-retry', args=[payout.pk]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['payout']['status'], Payout.STATUS_PROCESSING)
        self.assertTrue(response.data['payout']['reference'].startswith('PO-RETRY-'))
        self.assertEqual(mock_post.call_count, 1)

    def test_admin_list_and_stats(self):
        self.make_payout(self.vendor, Payout.STATUS_COMPLETED, amount='120.00')
        self.make_payout(self.vendor, Payout.STATUS_FAILED, amount='80.00')
        self.client.force_authenticate(user=self.admin)

        response = self.client.get(reverse('admin-payouts'), {'status': Payout.STATUS_FAILED})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(reverse('admin-payout-stats'))
        self.assertEqual(response.data['stats']['total_paid_out'], '120.00')
        self.assertEqual(response.data['stats']['count_failed'], 1)

    def test_vendor_cannot_use_admin_endpoints(self):
        self.client.force_authenticate(user=self.vendor)
        self.assertEqual(
            self.client.get(reverse('admin-payouts')).status_code, status.HTTP_403_FORBIDDEN
        )


class PayoutStatsTestCase(PayoutFixtureMixin, TestCase):

    def test_empty_stats_are_zero(self):
        stats = payout_stats()
        self.assertEqual(stats['total_paid_out'], Decimal('0.00'))
        self.assertEqual(stats['count_pending'], 0)

    def test_totals_have_two_decimal_places(self):
        vendor = self.create_vendor_with_earnings()
        self.assertEqual(str(payout_stats()['total_paid_out']), '0.00')

        self.make_payout(vendor, Payout.STATUS_COMPLETED, amount='120')
        self.make_payout(vendor, Payout.STATUS_PENDING, amount='30.5')

        stats = payout_stats()
        self.assertEqual(str(stats['total_paid_out']), '120.00')
        self.assertEqual(str(stats['total_pending']), '30.50')


class BankAccountTestCase(PayoutFixtureMixin, TestCase):

    def setUp(self):
        self.vendor = self.create_vendor_with_earnings()
        self.account = bank_accounts.get_primary_bank_account(self.vendor)

    def add_wallet(self, **kwargs):
        return bank_accounts.add_bank_account(
            vendor=self.vendor,
            account_type=VendorBankAccount.ACCOUNT_MOBILE_MONEY,
            account_name='Ama Mensah',
            account_number='0241234567',
            mobile_money_provider='mtn',
            **kwargs,
        )

    def test_first_account_is_primary(self):
        self.assertTrue(self.account.is_primary)
        wallet = self.add_wallet()
        self.assertFalse(wallet.is_primary)
        self.assertEqual(bank_accounts.get_primary_bank_account(self.vendor), self.account)

    def test_new_primary_replaces_old(self):
        wallet = self.add_wallet(is_primary=True)
        self.account.refresh_from_db()
        self.assertTrue(wallet.is_primary)
        self.assertFalse(self.account.is_primary)

        bank_accounts.set_primary_bank_account(self.vendor, self.account.pk)
        wallet.refresh_from_db()
        self.assertFalse(wallet.is_primary)
        self.assertEqual(
            VendorBankAccount.objects.filter(vendor=self.vendor, is_primary=True).get(), self.account
        )

    def test_deleting_primary_promotes_another(self):
        wallet = self.add_wallet()
        payout = services.request_payout(vendor=self.vendor, amount='100.00')

        bank_accounts.delete_bank_account(self.vendor, self.account.pk)

        wallet.refresh_from_db()
        self.assertTrue(wallet.is_primary)
        payout.refresh_from_db()
        self.assertIsNone(payout.bank_account)
        self.assertEqual(payout.account_number, '1234567890')

    def test_other_vendors_account_is_not_found(self):
        other = self.create_vendor_with_earnings(username='othervendor')
        with self.assertRaises(InvalidPayoutAccount):
            bank_accounts.set_primary_bank_account(other, self.account.pk)
        with self.assertRaises(InvalidPayoutAccount):
            bank_accounts.delete_bank_account(other, self.account.pk)
        self.assertTrue(VendorBankAccount.objects.filter(pk=self.account.pk).exists())

    @override_settings(PAYSTACK_SECRET_KEY=SECRET)
    @patch('payouts.paystack.requests.post')
    def test_register_recipient_once(self, mock_post):
        wallet = self.add_wallet()
        mock_post.return_value = paystack_response({'recipient_code': 'RCP_MOMO'})

        self.assertEqual(bank_accounts.register_recipient(wallet), 'RCP_MOMO')
        self.assertEqual(bank_accounts.register_recipient(wallet), 'RCP_MOMO')

        self.assertEqual(mock_post.call_count, 1)
        payload = mock_post.call_args.kwargs['json']
        self.assertEqual(payload['type'], 'mobile_money')
        self.assertEqual(payload['bank_code'], 'mtn')
        wallet.refresh_from_db()
        self.assertTrue(wallet.is_verified)

    @override_settings(PAYSTACK_SECRET_KEY=SECRET)
    @patch('payouts.paystack.requests.get')
    def test_bank_list_is_cached(self, mock_get):
        cache.clear()
        mock_get.return_value = paystack_response([
            {'name': 'GCB Bank', 'code': 'GCB123', 'type': 'ghipss', 'active': True},
            {'name': 'Closed Bank', 'code': 'CLS001', 'type': 'ghipss', 'active': False},
        ])

        banks = bank_accounts.list_banks()
        self.assertEqual(banks, [{'name': 'GCB Bank', 'code': 'GCB123', 'type': 'ghipss'}])
        self.assertEqual(bank_accounts.list_banks(), banks)
        self.assertEqual(mock_get.call_count, 1)
        cache.clear()


@override_settings(PAYSTACK_SECRET_KEY=SECRET)
class BankAccountAPITestCase(PayoutFixtureMixin, APITestCase):

    def setUp(self):
        self.vendor = self.create_vendor_with_earnings()
        self.account = bank_accounts.get_primary_bank_account(self.vendor)
        self.client.force_authenticate(user=self.vendor)

    def test_list_and_add(self):
        response = self.client.get(reverse('vendor-bank-accounts'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['accounts']), 1)

        response = self.client.post(reverse('vendor-bank-accounts'), {
            'account_type': VendorBankAccount.ACCOUNT_MOBILE_MONEY,
            'account_name': 'Ama Mensah',
            'account_number': '024 123 4567',
            'mobile_money_provider': 'mtn',
            'is_primary': True,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['account']['account_number'], '0241234567')
        self.assertTrue(response.data['account']['is_primary'])
        self.account.refresh_from_db()
        self.assertFalse(self.account.is_primary)

    def test_unknown_provider_rejected(self):
        response = self.client.post(reverse('vendor-bank-accounts'), {
            'account_type': VendorBankAccount.ACCOUNT_MOBILE_MONEY,
            'account_name': 'Ama Mensah',
            'account_number': '0241234567',
            'mobile_money_provider': 'paypal',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('mobile_money_provider', response.data['errors'])

    @patch('payouts.paystack.requests.post')
    def test_verify_account(self, mock_post):
        mock_post.return_value = paystack_response({'recipient_code': 'RCP_1'})
        url = reverse('vendor-bank-account-detail', args=[self.account.pk])

        response = self.client.patch(url, {'action': 'verify'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['account']['is_verified'])
        self.assertNotIn('recipient_code', response.data['account'])

    @patch('payouts.paystack.requests.post')
    def test_verify_failure_is_bad_gateway(self, mock_post):
        mock_post.return_value = paystack_response(None, ok=False, message='Invalid account number')
        url = reverse('vendor-bank-account-detail', args=[self.account.pk])

        response = self.client.patch(url, {'action': 'verify'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.account.refresh_from_db()
        self.assertFalse(self.account.is_verified)

    def test_other_vendor_cannot_touch_account(self):
        other = self.create_vendor_with_earnings(username='othervendor')
        self.client.force_authenticate(user=other)
        url = reverse('vendor-bank-account-detail', args=[self.account.pk])

        self.assertEqual(
            self.client.patch(url, {'action': 'set_primary'}, format='json').status_code,
            status.HTTP_404_NOT_FOUND,
        )
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_account(self):
        url = reverse('vendor-bank-account-detail', args=[self.account.pk])
        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(VendorBankAccount.objects.filter(vendor=self.vendor).exists())

        response = self.client.post(reverse('vendor-payouts'), {'amount': '100.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('payout account', response.data['message'])

    @patch('payouts.paystack.requests.get')
    def test_bank_list(self, mock_get):
        cache.clear()
        mock_get.return_value = paystack_response([
            {'name': 'GCB Bank', 'code': 'GCB123', 'type': 'ghipss', 'active': True},
        ])

        response = self.client.get(reverse('payout-banks'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['banks'][0]['code'], 'GCB123')
        self.assertIn('mtn', [p['code'] for p in response.data['mobile_money_providers']])
        cache.clear()
