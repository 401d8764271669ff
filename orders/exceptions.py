from django.core.exceptions import ValidationError


class IllegalTransition(ValidationError):
    """A status change was attempted that the order/payment lifecycle forbids."""

    def __init__(self, message, *, current=None, target=None):
        super().__init__(message, code='illegal_transition')
        self.current = current
        self.target = target

    def __str__(self):
        return self.messages[0]


class DispatchError(Exception):
    """An order could not be handed to the upstream provider."""
