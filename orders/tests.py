from django.test import TestCase
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.urls import reverse

from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework.exceptions import ValidationError as DRFValidationError

from decimal import Decimal

from .models import Order, OrderItem
from .services import create_individual_order, get_product, update_order_status, _price_guard
from notifications.models import InAppNotifications, NotificationTypes
from productManagement.models import Categories, Products

User = get_user_model()


class OrderFixtureMixin:
    def create_fixture(self):
        self.vendor_user = User.objects.create_user(
            username='vendor',
            email='vendor@test.com',
            role='vendor'
        )
        self.buyer_user = User.objects.create_user(
            username='buyer',
            email='buyer@test.com',
            role='buyer'
        )
        self.category = Categories.objects.create(name='Electronics', slug='electronics')
        self.product = Products.objects.create(
            vendor=self.vendor_user,
            title='Test Product',
            description='A test product',
            regular_price=Decimal('100.00'),
            quantity=10,
            category=self.category
        )

    def place_order(self, quantity=1, subtotal=None):
        return create_individual_order(
            buyer_id=self.buyer_user.id,
            product_id=self.product.id,
            quantity=quantity,
            payment_method='mobile_money',
            delivery_address='123 Test St',
            subtotal=subtotal if subtotal is not None else self.product.regular_price * quantity,
            delivery_fee=Decimal('10.00'),
        )


class OrderModelTest(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.create_fixture()

    def test_allowed_transitions(self):
        order = Order(status=Order.STATUS_PENDING)
        self.assertTrue(order.can_transition_to(Order.STATUS_CONFIRMED))
        self.assertFalse(order.can_transition_to(Order.STATUS_DELIVERED))

        order.status = Order.STATUS_SHIPPED
        self.assertFalse(order.can_transition_to(Order.STATUS_CANCELLED))
        order.status = Order.STATUS_DELIVERED
        self.assertTrue(order.is_terminal)

    def test_delivered_total_cannot_change(self):
        order = self.place_order()
        update_order_status(order_id=order.id, new_status=Order.STATUS_CONFIRMED)
        update_order_status(order_id=order.id, new_status=Order.STATUS_PROCESSING)
        update_order_status(order_id=order.id, new_status=Order.STATUS_SHIPPED)
        update_order_status(order_id=order.id, new_status=Order.STATUS_DELIVERED)

        order = Order.objects.get(pk=order.pk)
        order.total_amount = Decimal('1.00')
        with self.assertRaises(ValidationError):
            order.save()

        with self.assertRaises(ValidationError):
            Order.objects.filter(pk=order.pk).update(total_amount=Decimal('1.00'))
        order.refresh_from_db()
        self.assertNotEqual(order.total_amount, Decimal('1.00'))

    def test_open_order_total_can_change(self):
        order = Order.objects.get(pk=self.place_order().pk)
        order.total_amount = Decimal('95.00')
        order.save()
        order.refresh_from_db()
        self.assertEqual(order.total_amount, Decimal('95.00'))

        Order.objects.filter(pk=order.pk).update(total_amount=Decimal('90.00'))
        order.refresh_from_db()
        self.assertEqual(order.total_amount, Decimal('90.00'))

    def test_primary_category_uses_largest_line(self):
        other_category = Categories.objects.create(name='Books', slug='books')
        book = Products.objects.create(
            vendor=self.vendor_user, title='Book', regular_price=Decimal('10.00'), category=other_category
        )
        order = self.place_order()
        OrderItem.objects.create(
            order=order, product=book, quantity=1, unit_price=Decimal('10.00'), price=Decimal('10.00')
        )
        self.assertEqual(order.primary_category, self.category)

    def test_primary_category_without_items(self):
        order = Order.objects.create(
            user=self.buyer_user, vendor=self.vendor_user, payment_method='card', delivery_address='x'
        )
        self.assertIsNone(order.primary_category)


class OrderServicesTest(OrderFixtureMixin, TestCase):
    def setUp(self):
        self.create_fixture()

    def test_get_product_inactive(self):
        self.product.is_active = False
        self.product.save()
        with self.assertRaises(DRFValidationError):
            get_product(self.product.id)

    def test_price_guard(self):
        _price_guard(Decimal('100.00'), Decimal('100.01'))
        with self.assertRaises(ValueError):
            _price_guard(Decimal('100.00'), Decimal('100.02'))

    def test_create_order_decrements_stock(self):
        order = self.place_order(quantity=3)

        self.assertEqual(order.subtotal, Decimal('300.00'))
        self.assertEqual(order.total_amount, Decimal('310.00'))
        self.assertEqual(order.vendor_id, self.vendor_user.id)
        self.assertEqual(order.items.get().quantity, 3)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 7)

    def test_create_order_insufficient_stock(self):
        with self.assertRaises(ValueError):
            self.place_order(quantity=11)
        self.assertFalse(Order.objects.exists())

    def test_create_order_price_mismatch(self):
        with self.assertRaises(ValueError):
            self.place_order(quantity=1, subtotal=Decimal('80.00'))

    def test_low_stock_check_runs_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.place_order(quantity=6)

        notification = InAppNotifications.objects.get(user=self.vendor_user)
        self.assertEqual(notification.type, NotificationTypes.LOW_STOCK_ALERT)
        self.assertEqual(notification.metadata['quantity'], 4)

    def test_status_update_rules(self):
        order = self.place_order()
        with self.assertRaises(ValueError):
            update_order_status(order_id=order.id, new_status=Order.STATUS_SHIPPED)
        with self.assertRaises(ValueError):
            update_order_status(order_id=order.id, new_status=Order.STATUS_PENDING)

        order = update_order_status(order_id=order.id, new_status=Order.STATUS_CANCELLED)
        self.assertEqual(order.status, Order.STATUS_CANCELLED)


class OrderAPITest(OrderFixtureMixin, APITestCase):
    def setUp(self):
        self.create_fixture()
        self.other_vendor = User.objects.create_user(
            username='vendor2', email='vendor2@test.com', role='vendor'
        )

    def test_create_and_list(self):
        self.client.force_authenticate(user=self.buyer_user)
        response = self.client.post(reverse('orders-create'), {
            'product_id': self.product.id,
            'quantity': 2,
            'payment_method': 'card',
            'delivery_address': '123 Test St',
            'subtotal': '200.00',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['total_amount'], '200.00')

        response = self.client.get(reverse('orders-list'))
        self.assertEqual(response.data['count'], 1)

        self.client.force_authenticate(user=self.other_vendor)
        response = self.client.get(reverse('orders-list'))
        self.assertEqual(response.data['count'], 0)

    def test_vendor_updates_own_order_and_buyer_is_notified(self):
        order = self.place_order()
        self.client.force_authenticate(user=self.vendor_user)

        response = self.client.post(
            reverse('orders-update-status'),
            {'order_id': order.id, 'new_status': Order.STATUS_CONFIRMED},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        notification = InAppNotifications.objects.get(user=self.buyer_user)
        self.assertEqual(notification.type, NotificationTypes.ORDER_UPDATE)

    def test_other_vendor_cannot_update(self):
        order = self.place_order()
        self.client.force_authenticate(user=self.other_vendor)
        response = self.client.post(
            reverse('orders-update-status'),
            {'order_id': order.id, 'new_status': Order.STATUS_CONFIRMED},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_illegal_status_move(self):
        order = self.place_order()
        self.client.force_authenticate(user=self.vendor_user)
        response = self.client.post(
            reverse('orders-update-status'),
            {'order_id': order.id, 'new_status': Order.STATUS_DELIVERED},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
