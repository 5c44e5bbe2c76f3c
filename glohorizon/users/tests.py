from django.test import TestCase

from bookings.exceptions import InvalidPhoneNumberError
from users.models import User


class UserManagerTest(TestCase):

    def test_customer_phone_stored_in_e164(self):
        user = User.objects.create_user(email='Esi@Example.COM', password='pass', phone='024 123 4567')
        self.assertEqual(user.email, 'Esi@example.com')
        self.assertEqual(user.phone, '+233241234567')
        self.assertFalse(user.is_staff)

    def test_invalid_phone_rejected(self):
        with self.assertRaises(InvalidPhoneNumberError):
            User.objects.create_user(email='yaw@example.com', phone='call me')
        self.assertFalse(User.objects.exists())

    def test_email_required(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email='', password='pass')

    def test_staff_user(self):
        agent = User.objects.create_staff_user(
            email='ama@glohorizonsgh.com', first_name='Ama', last_name='Mensah',
        )
        self.assertTrue(agent.is_staff)
        self.assertFalse(agent.is_superuser)
        self.assertFalse(agent.has_usable_password())
        self.assertEqual(agent.display_name, 'Ama Mensah')

    def test_superuser_flags_enforced(self):
        with self.assertRaises(ValueError):
            User.objects.create_superuser(email='root@glohorizonsgh.com', is_staff=False)
        root = User.objects.create_superuser(email='root@glohorizonsgh.com', password='pass')
        self.assertTrue(root.is_staff and root.is_superuser)

    def test_display_name_falls_back_to_email(self):
        user = User.objects.create_user(email='kofi@example.com')
        self.assertEqual(user.display_name, 'kofi@example.com')
