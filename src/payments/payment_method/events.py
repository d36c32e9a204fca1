"""Domain events for the PaymentMethod aggregate."""

from protean.fields import Boolean, DateTime, Identifier, String

from payments.domain import payments


@payments.event(part_of="PaymentMethod")
class PaymentMethodAdded:
    """A payment method was stored for a user."""

    __version__ = 1

    payment_method_id = Identifier(required=True)
    user_id = Identifier(required=True)
    method_type = String(required=True)
    provider = String(required=True)
    display_name = String(required=True)
    is_default = Boolean(default=False)
    added_at = DateTime(required=True)


@payments.event(part_of="PaymentMethod")
class PaymentMethodUpdated:
    __version__ = 1

    payment_method_id = Identifier(required=True)
    user_id = Identifier(required=True)
    display_name = String(required=True)
    updated_at = DateTime(required=True)


@payments.event(part_of="PaymentMethod")
class DefaultPaymentMethodChanged:
    """The method became (or stopped being) the user's default."""

    __version__ = 1

    payment_method_id = Identifier(required=True)
    user_id = Identifier(required=True)
    is_default = Boolean(required=True)
    changed_at = DateTime(required=True)


@payments.event(part_of="PaymentMethod")
class PaymentMethodActivated:
    __version__ = 1

    payment_method_id = Identifier(required=True)
    user_id = Identifier(required=True)
    activated_at = DateTime(required=True)


@payments.event(part_of="PaymentMethod")
class PaymentMethodDeactivated:
    __version__ = 1

    payment_method_id = Identifier(required=True)
    user_id = Identifier(required=True)
    deactivated_at = DateTime(required=True)


@payments.event(part_of="PaymentMethod")
class PaymentMethodDeleted:
    """The method was soft-deleted; it stays on record for past payments."""

    __version__ = 1

    payment_method_id = Identifier(required=True)
    user_id = Identifier(required=True)
    deleted_at = DateTime(required=True)
