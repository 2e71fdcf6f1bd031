import uuid
from django.db import models
from django.utils import timezone


class Business(models.Model):
    """Represents a business (tenant) that bills its own customers."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    owner_name = models.CharField(max_length=100, blank=True)
    contact_email = models.EmailField(blank=True, null=True)
    contact_phone = models.CharField(max_length=20, blank=True, null=True)
    description = models.CharField(max_length=500, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'businesses'
        ordering = ['name']

    def __str__(self):
        return self.name

    def deactivate(self):
        """Soft-delete the business; child records are kept"""
        if self.is_active:
            self.is_active = False
            self.save(update_fields=['is_active', 'updated_at'])


class Customer(models.Model):
    """A customer of a business, holding zero or more subscriptions"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    business = models.ForeignKey(Business, on_delete=models.PROTECT, related_name='customers')
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    phone_number = models.CharField(max_length=20, unique=True)
    email = models.EmailField(blank=True, null=True)
    is_active = models.BooleanField(default=True)
    join_date = models.DateField(default=timezone.localdate)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'customers'
        ordering = ['last_name', 'first_name']
        indexes = [
            models.Index(fields=['business', 'is_active'], name='customers_busines_5b1f0e_idx'),
        ]

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def deactivate(self):
        """Mark the customer inactive. Returns True if the flag changed."""
        if not self.is_active:
            return False
        self.is_active = False
        self.save(update_fields=['is_active', 'updated_at'])
        return True
