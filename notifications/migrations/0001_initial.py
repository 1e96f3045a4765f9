import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('productManagement', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='InAppNotifications',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_type', models.CharField(choices=[('buyer', 'Buyer'), ('vendor', 'Vendor'), ('admin', 'Admin')], max_length=12)),
                ('phone', models.CharField(blank=True, max_length=20)),
                ('type', models.CharField(choices=[('general', 'General'), ('order_update', 'Order Update'), ('payment_update', 'Payment Update'), ('low_stock_alert', 'Low Stock Alert'), ('out_of_stock_alert', 'Out Of Stock Alert')], db_index=True, max_length=32)),
                ('title', models.CharField(max_length=255)),
                ('message', models.TextField()),
                ('is_read', models.BooleanField(db_index=True, default=False)),
                ('is_urgent', models.BooleanField(default=False)),
                ('metadata', models.JSONField(blank=True, null=True)),
                ('expires_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-is_urgent', '-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'user_type'], name='idx_notif_user_type'),
                    models.Index(fields=['type', 'is_read'], name='idx_notif_type_read'),
                    models.Index(fields=['-created_at'], name='idx_notif_created'),
                ],
            },
        ),
        migrations.CreateModel(
            name='LowStockAlertRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('alert_type', models.CharField(blank=True, choices=[('general', 'General'), ('order_update', 'Order Update'), ('payment_update', 'Payment Update'), ('low_stock_alert', 'Low Stock Alert'), ('out_of_stock_alert', 'Out Of Stock Alert')], max_length=32)),
                ('last_alerted_at', models.DateTimeField()),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='low_stock_alert_records', to='productManagement.products')),
                ('vendor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='low_stock_alert_records', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'constraints': [models.UniqueConstraint(fields=('vendor', 'product'), name='uniq_low_stock_alert_vendor_product')],
            },
        ),
    ]
