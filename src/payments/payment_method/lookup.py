"""PaymentMethod loading helpers."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from payments.payment_method.payment_method import PaymentMethod
from shared.errors import NotFoundError


def get_user_payment_method(payment_method_id, user_id) -> PaymentMethod:
    """Load a method owned by ``user_id``. Someone else's method is reported as missing."""
    try:
        method = current_domain.repository_for(PaymentMethod).get(payment_method_id)
    except ObjectNotFoundError:
        method = None

    if method is None or (user_id is not None and not method.belongs_to(user_id)):
        raise NotFoundError("PaymentMethod.NotFound", f"Payment method {payment_method_id} not found")
    return method


def active_methods_for_user(user_id) -> list[PaymentMethod]:
    dao = current_domain.repository_for(PaymentMethod)._dao
    return dao.query.filter(user_id=str(user_id), is_active=True).all().items


def methods_for_user_with_token(user_id, token) -> list[PaymentMethod]:
    """Stored (not deleted) methods of the user that use ``token``."""
    dao = current_domain.repository_for(PaymentMethod)._dao
    return [m for m in dao.query.filter(user_id=str(user_id), token=token).all().items if not m.is_deleted]
