"""Stored payment method management — commands and handler.

All commands name the owning user; a method belonging to someone else is
reported as not found. Making a method the default clears the previous
default in the same unit of work.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from payments.domain import payments
from payments.payment_method.lookup import active_methods_for_user, get_user_payment_method
from payments.payment_method.payment_method import PaymentMethod

logger = structlog.get_logger(__name__)


@payments.command(part_of="PaymentMethod")
class SetDefaultPaymentMethod:
    user_id = Identifier(required=True)
    payment_method_id = Identifier(required=True)


@payments.command(part_of="PaymentMethod")
class UpdatePaymentMethodDisplayName:
    user_id = Identifier(required=True)
    payment_method_id = Identifier(required=True)
    display_name = String(required=True, max_length=100)


@payments.command(part_of="PaymentMethod")
class DeactivatePaymentMethod:
    user_id = Identifier(required=True)
    payment_method_id = Identifier(required=True)


@payments.command(part_of="PaymentMethod")
class DeletePaymentMethod:
    user_id = Identifier(required=True)
    payment_method_id = Identifier(required=True)


@payments.command_handler(part_of=PaymentMethod)
class ManagePaymentMethodHandler:
    @handle(SetDefaultPaymentMethod)
    def set_default(self, command):
        repo = current_domain.repository_for(PaymentMethod)
        method = get_user_payment_method(command.payment_method_id, command.user_id)
        method.set_default()

        for other in active_methods_for_user(command.user_id):
            if str(other.id) != str(method.id) and other.is_default:
                other.clear_default()
                repo.add(other)
        repo.add(method)

        logger.info("Default payment method changed", user_id=str(command.user_id), payment_method_id=str(method.id))
        return str(method.id)

    @handle(UpdatePaymentMethodDisplayName)
    def update_display_name(self, command):
        method = get_user_payment_method(command.payment_method_id, command.user_id)
        method.update_display_name(command.display_name)
        current_domain.repository_for(PaymentMethod).add(method)
        return str(method.id)

    @handle(DeactivatePaymentMethod)
    def deactivate(self, command):
        method = get_user_payment_method(command.payment_method_id, command.user_id)
        method.deactivate()
        current_domain.repository_for(PaymentMethod).add(method)
        return str(method.id)

    @handle(DeletePaymentMethod)
    def delete(self, command):
        method = get_user_payment_method(command.payment_method_id, command.user_id)
        method.delete()
        current_domain.repository_for(PaymentMethod).add(method)

        logger.info("Payment method deleted", user_id=str(command.user_id), payment_method_id=str(method.id))
        return str(method.id)
