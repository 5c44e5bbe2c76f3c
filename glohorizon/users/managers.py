from django.contrib.auth.base_user import BaseUserManager


class UserManager(BaseUserManager):
    """Email-login accounts. Phones are stored in E.164 so booking SMS can reuse them."""

    use_in_migrations = True

    def _create_account(self, email, password, phone='', **extra_fields):
        if not email:
            raise ValueError('An email address is required to create an account')
        if phone:
            from bookings.notifications.phone import normalize_phone
            phone = normalize_phone(phone)
        user = self.model(email=self.normalize_email(email), phone=phone, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        return self._create_account(email, password, **extra_fields)

    def create_staff_user(self, email, password=None, **extra_fields):
        """Back-office agent: can price, progress and annotate requests."""
        extra_fields['is_staff'] = True
        extra_fields.setdefault('is_superuser', False)
        return self._create_account(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        if not (extra_fields['is_staff'] and extra_fields['is_superuser']):
            raise ValueError('Superusers need both is_staff and is_superuser set')
        return self._create_account(email, password, **extra_fields)
