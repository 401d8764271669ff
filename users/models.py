import uuid
from django.core.validators import MinLengthValidator, RegexValidator
from django.db import models
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin, BaseUserManager

username_validator = RegexValidator(
    r'^[a-zA-Z0-9_]+$',
    'Username can only contain letters, numbers, and underscores.',
)


class UserManager(BaseUserManager):

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('An email address is required')
        user = self.model(email=self.normalize_email(email), **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Operator account: reviews payments, approves and dispatches orders."""
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', User.Role.ADMIN)

        if extra_fields['role'] != User.Role.ADMIN:
            raise ValueError('Superuser must have the ADMIN role.')

        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    A customer placing boost orders, or an operator running the shop.

    Customers may check out anonymously, so orders reference users through a
    nullable FK. Email is the login and the delivery address for order
    notifications unless the customer turned them off.
    """

    class Role(models.TextChoices):
        CUSTOMER = 'CUSTOMER', 'Customer'
        ADMIN = 'ADMIN', 'Admin'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField('email address', unique=True)
    username = models.CharField(
        'username',
        max_length=20,
        blank=True,
        validators=[MinLengthValidator(3), username_validator],
    )
    role = models.CharField('role', max_length=10, choices=Role.choices, default=Role.CUSTOMER)
    email_notifications = models.BooleanField(
        'email notifications', default=True, help_text='Email order and payment updates to this user.'
    )
    is_staff = models.BooleanField('staff status', default=False)
    is_active = models.BooleanField('active', default=True)
    date_joined = models.DateTimeField('date joined', auto_now_add=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = 'user'
        verbose_name_plural = 'users'

    def __str__(self):
        return self.email

    def get_short_name(self):
        """Name used to greet the user; falls back to the email local part."""
        return self.username or self.email.split('@')[0]

    @property
    def is_admin(self):
        return self.role == self.Role.ADMIN

    def can_view_order(self, order):
        return self.is_admin or (order.customer_id is not None and order.customer_id == self.id)
