# Generated manually for the initial loyalty schema

import django.db.models.deletion
import greenleaf.loyalty.models
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('customers', '0001_initial'),
        ('orders', '0001_initial'),
        ('vendors', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='LoyaltyProgram',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(default='Rewards', max_length=200)),
                ('points_per_dollar', models.DecimalField(decimal_places=2, default=Decimal('1.00'), max_digits=6)),
                ('point_value', models.DecimalField(decimal_places=4, default=Decimal('0.0100'), help_text='Dollar value of one point at redemption', max_digits=6)),
                ('min_redemption_points', models.PositiveIntegerField(default=100)),
                ('points_expiry_days', models.PositiveIntegerField(default=365)),
                ('tiers', models.JSONField(blank=True, default=greenleaf.loyalty.models.default_tiers)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('vendor', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='loyalty_program', to='vendors.vendor')),
            ],
            options={
                'db_table': 'loyalty_programs',
            },
        ),
        migrations.CreateModel(
            name='CustomerLoyalty',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('points_balance', models.IntegerField(default=0)),
                ('lifetime_points', models.IntegerField(default=0)),
                ('points_redeemed', models.IntegerField(default=0)),
                ('tier', models.CharField(default='bronze', max_length=50)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='loyalty', to='customers.customer')),
                ('vendor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='customer_loyalty', to='vendors.vendor')),
            ],
            options={
                'verbose_name_plural': 'customer loyalty',
                'db_table': 'customer_loyalty',
            },
        ),
        migrations.CreateModel(
            name='LoyaltyTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('transaction_type', models.CharField(choices=[('earned', 'Earned'), ('redeemed', 'Redeemed'), ('adjusted', 'Adjusted'), ('reversed', 'Reversed'), ('expired', 'Expired')], db_index=True, max_length=20)),
                ('points', models.IntegerField(help_text='Signed change to the balance')),
                ('balance_before', models.IntegerField()),
                ('balance_after', models.IntegerField()),
                ('description', models.CharField(blank=True, max_length=255)),
                ('expires_at', models.DateTimeField(blank=True, null=True)),
                ('is_expired', models.BooleanField(default=False)),
                ('points_remaining', models.IntegerField(default=0, help_text='Unspent part of an earned grant')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='loyalty_transactions', to='customers.customer')),
                ('order', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='loyalty_transactions', to='orders.order')),
                ('vendor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='loyalty_transactions', to='vendors.vendor')),
            ],
            options={
                'db_table': 'loyalty_transactions',
                'ordering': ['-created_at', '-id'],
            },
        ),
    ]
