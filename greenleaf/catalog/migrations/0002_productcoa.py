# Generated manually for product certificates of analysis

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('catalog', '0001_initial'),
        ('vendors', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ProductCOA',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('file_url', models.URLField(max_length=500)),
                ('file_name', models.CharField(blank=True, max_length=255)),
                ('lab_name', models.CharField(blank=True, max_length=200)),
                ('batch_number', models.CharField(blank=True, db_index=True, max_length=100)),
                ('product_name_on_coa', models.CharField(blank=True, max_length=255)),
                ('test_date', models.DateField(blank=True, null=True)),
                ('expiry_date', models.DateField(blank=True, null=True)),
                ('test_results', models.JSONField(blank=True, default=dict, help_text='Cannabinoid percentages, terpenes and *_passed safety flags')),
                ('is_verified', models.BooleanField(default=False)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='coas', to='catalog.product')),
                ('uploaded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='uploaded_coas', to=settings.AUTH_USER_MODEL)),
                ('vendor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='coas', to='vendors.vendor')),
            ],
            options={
                'verbose_name': 'product COA',
                'db_table': 'product_coas',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['vendor', 'product'], name='idx_coa_vendor_product')],
            },
        ),
    ]
