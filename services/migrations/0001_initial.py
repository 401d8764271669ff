import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Platform',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100)),
                ('slug', models.SlugField(max_length=100, unique=True)),
                ('active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Provider',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100)),
                ('slug', models.SlugField(max_length=100, unique=True)),
                ('api_url', models.URLField()),
                ('api_key', models.CharField(blank=True, max_length=255)),
                ('active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='Service',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('provider_service_id', models.CharField(help_text='Service id on the provider panel', max_length=50)),
                ('name', models.CharField(max_length=255)),
                ('type', models.CharField(blank=True, max_length=50)),
                ('category', models.CharField(blank=True, max_length=255)),
                ('provider_rate', models.DecimalField(decimal_places=4, help_text='Provider price per 1000 (USDT)', max_digits=12)),
                ('boost_rate', models.DecimalField(decimal_places=4, help_text='Our price per 1000 (USDT)', max_digits=12)),
                ('min_order', models.PositiveIntegerField()),
                ('max_order', models.PositiveIntegerField()),
                ('dripfeed', models.BooleanField(default=False)),
                ('refill', models.BooleanField(default=False)),
                ('cancel', models.BooleanField(default=False)),
                ('active', models.BooleanField(default=True)),
                ('last_checked', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('platform', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='services', to='services.platform')),
                ('provider', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='services', to='services.provider')),
            ],
            options={
                'indexes': [models.Index(fields=['platform', 'active'], name='service_platform_active_idx')],
                'constraints': [models.UniqueConstraint(fields=('provider', 'provider_service_id'), name='unique_provider_service')],
            },
        ),
    ]
