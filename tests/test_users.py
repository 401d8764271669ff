import pytest
from django.core.exceptions import ValidationError

from users.models import User

pytestmark = pytest.mark.django_db


class TestUser:
    def test_short_name_falls_back_to_email(self):
        user = User.objects.create_user(email='Ada.Obi@Example.com', password='pass1234')

        assert user.get_short_name() == 'Ada.Obi'
        assert user.email_notifications is True

    def test_superuser_is_admin(self):
        user = User.objects.create_superuser(email='ops@example.com', password='pass1234')

        assert user.is_admin is True
        assert user.is_staff is True

    def test_superuser_cannot_be_customer(self):
        with pytest.raises(ValueError):
            User.objects.create_superuser(email='ops@example.com', password='pass1234', role=User.Role.CUSTOMER)

    def test_email_required(self):
        with pytest.raises(ValueError):
            User.objects.create_user(email='', password='pass1234')

    @pytest.mark.parametrize('username', ['ab', 'has space', 'way_too_long_username_x'])
    def test_username_rules(self, username):
        user = User(email='x@example.com', username=username)

        with pytest.raises(ValidationError) as exc:
            user.full_clean(exclude=['password'])
        assert 'username' in exc.value.message_dict


class TestOrderVisibility:
    def test_owner_and_admin_only(self, customer, other_customer, admin_user, make_order):
        order = make_order()

        assert customer.can_view_order(order) is True
        assert admin_user.can_view_order(order) is True
        assert other_customer.can_view_order(order) is False

    def test_anonymous_order_visible_to_admin_only(self, customer, admin_user, make_order):
        order = make_order(owner=None)

        assert customer.can_view_order(order) is False
        assert admin_user.can_view_order(order) is True
