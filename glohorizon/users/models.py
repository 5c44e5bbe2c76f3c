from django.contrib.auth.models import AbstractUser
from django.db import models

from .managers import UserManager


class User(AbstractUser):
    """Customer or admin account. Customers own bookings; admins (is_staff) price and progress them."""

    username = None
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, blank=True, default='')

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    objects = UserManager()

    def __str__(self):
        return self.email

    @property
    def display_name(self):
        """Name written into status history rows (`changed_by`)."""
        return self.get_full_name() or self.email
