from django.db.models.deletion import ProtectedError
from django.test import TestCase

from .models import Business, Customer


class BusinessModelTest(TestCase):
    """Test cases for Business model"""

    def setUp(self):
        self.business = Business.objects.create(name='Gym Co', owner_name='Reza')

    def test_business_creation(self):
        """Test business creation"""
        self.assertEqual(str(self.business), 'Gym Co')
        self.assertTrue(self.business.is_active)

    def test_deactivate_keeps_customers(self):
        """Test soft delete of a business"""
        customer = Customer.objects.create(
            business=self.business, first_name='Ali', last_name='Karimi', phone_number='09121111111'
        )

        self.business.deactivate()

        self.business.refresh_from_db()
        self.assertFalse(self.business.is_active)
        self.assertTrue(Customer.objects.filter(pk=customer.pk).exists())

    def test_cannot_hard_delete_with_customers(self):
        Customer.objects.create(
            business=self.business, first_name='Ali', last_name='Karimi', phone_number='09121111112'
        )
        with self.assertRaises(ProtectedError):
            self.business.delete()


class CustomerModelTest(TestCase):
    """Test cases for Customer model"""

    def setUp(self):
        self.business = Business.objects.create(name='Gym Co')
        self.customer = Customer.objects.create(
            business=self.business,
            first_name='Ali',
            last_name='Karimi',
            phone_number='09122222222',
            email='ali@example.com',
        )

    def test_full_name(self):
        self.assertEqual(self.customer.full_name, 'Ali Karimi')
        self.assertEqual(str(self.customer), 'Ali Karimi')

    def test_join_date_defaults_to_today(self):
        self.assertIsNotNone(self.customer.join_date)

    def test_deactivate_is_idempotent(self):
        self.assertTrue(self.customer.deactivate())
        self.assertFalse(self.customer.deactivate())
        self.customer.refresh_from_db()
        self.assertFalse(self.customer.is_active)
