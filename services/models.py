import uuid
from django.conf import settings
from django.db import models


class Platform(models.Model):
    """Social platform the engagement is delivered on (Instagram, TikTok, ...)."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=100, unique=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class Provider(models.Model):
    """Upstream SMM panel that fulfils dispatched orders."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=100, unique=True)
    api_url = models.URLField()
    api_key = models.CharField(max_length=255, blank=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name


class Service(models.Model):
    """One provider catalog entry, priced per 1000 units in USDT."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    provider = models.ForeignKey(Provider, on_delete=models.CASCADE, related_name='services')
    platform = models.ForeignKey(Platform, on_delete=models.SET_NULL, null=True, blank=True, related_name='services')
    provider_service_id = models.CharField(max_length=50, help_text="Service id on the provider panel")
    name = models.CharField(max_length=255)
    type = models.CharField(max_length=50, blank=True)
    category = models.CharField(max_length=255, blank=True)
    provider_rate = models.DecimalField(max_digits=12, decimal_places=4, help_text="Provider price per 1000 (USDT)")
    boost_rate = models.DecimalField(max_digits=12, decimal_places=4, help_text="Our price per 1000 (USDT)")
    min_order = models.PositiveIntegerField()
    max_order = models.PositiveIntegerField()
    dripfeed = models.BooleanField(default=False)
    refill = models.BooleanField(default=False)
    cancel = models.BooleanField(default=False)
    active = models.BooleanField(default=True)
    last_checked = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['provider', 'provider_service_id'], name='unique_provider_service'),
        ]
        indexes = [
            models.Index(fields=['platform', 'active'], name='service_platform_active_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.provider.slug}#{self.provider_service_id})"

    def accepts_quantity(self, quantity):
        return self.min_order <= quantity <= self.max_order


class PricingSettings(models.Model):
    """
    Markup and exchange rate set by an operator.

    Rows are never edited; each change adds a row and the latest one is in
    force. With no rows the values from settings apply.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    markup_percentage = models.DecimalField(max_digits=6, decimal_places=2)
    usdt_exchange_rate = models.DecimalField(max_digits=12, decimal_places=4, help_text="NGN per 1 USDT")
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        get_latest_by = 'created_at'
        verbose_name_plural = 'pricing settings'

    def __str__(self):
        return f"Markup {self.markup_percentage}% at {self.usdt_exchange_rate} NGN/USDT"
