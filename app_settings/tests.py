from django.test import TestCase
from django.contrib.auth import get_user_model
from django.urls import reverse

from rest_framework.test import APITestCase
from rest_framework import status

from .models import AppSettings

User = get_user_model()


class AppSettingsModelTest(TestCase):
    def test_get_value_returns_default_when_missing(self):
        self.assertIsNone(AppSettings.get_value('missing'))
        self.assertEqual(AppSettings.get_value('missing', '0.08'), '0.08')

    def test_set_value_creates_then_updates(self):
        AppSettings.set_value('default_commission_rate', '0.08')
        AppSettings.set_value('default_commission_rate', '0.1')

        self.assertEqual(AppSettings.objects.filter(setting_key='default_commission_rate').count(), 1)
        self.assertEqual(AppSettings.get_value('default_commission_rate'), '0.1')

    def test_string_representation(self):
        setting = AppSettings.objects.create(setting_key='app_name', setting_value='Kiosk')
        self.assertEqual(str(setting), 'app_name = Kiosk')


class AppSettingsAPITest(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(username='admin', password='pass12345', role='admin')
        self.vendor = User.objects.create_user(username='vendor', password='pass12345', role='vendor')

    def test_admin_can_create_setting(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            reverse('app-settings'),
            {'setting_key': 'maintenance_mode', 'setting_value': 'false'},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        setting = AppSettings.objects.get(setting_key='maintenance_mode')
        self.assertEqual(setting.updated_by, self.admin)
        self.assertEqual(response.data['updated_by'], 'admin')

    def test_vendor_cannot_list_settings(self):
        self.client.force_authenticate(self.vendor)
        response = self.client.get(reverse('app-settings'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_can_update_setting(self):
        setting = AppSettings.objects.create(setting_key='max_users', setting_value='100')
        self.client.force_authenticate(self.admin)

        response = self.client.patch(
            reverse('app-settings-detail', kwargs={'id': setting.id}),
            {'setting_value': '200'},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        setting.refresh_from_db()
        self.assertEqual(setting.setting_value, '200')
