from rest_framework.permissions import BasePermission


class HasRole(BasePermission):
    """
    Base class for role-based permissions.
    """
    allowed_roles = []

    def has_permission(self, request, view):
        return (
            request.user.is_authenticated
            and request.user.role in self.allowed_roles
        )


class IsCustomer(HasRole):
    """Allows access only to customers."""
    allowed_roles = ["CUSTOMER"]


class IsAdmin(HasRole):
    """Allows access only to operators who approve and dispatch orders."""
    allowed_roles = ["ADMIN"]


class IsOrderOwnerOrAdmin(BasePermission):
    """
    Customers see only their own orders; admins see every order.
    Assumes the object has a nullable `customer` FK.
    """

    def has_object_permission(self, request, view, obj):
        return request.user.can_view_order(obj)
