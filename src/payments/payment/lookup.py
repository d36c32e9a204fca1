"""Payment loading helpers shared by the payment command handlers."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from payments.payment.payment import Payment
from shared.errors import NotFoundError


def get_payment(payment_id) -> Payment:
    try:
        return current_domain.repository_for(Payment).get(payment_id)
    except ObjectNotFoundError:
        raise NotFoundError("Payment.NotFound", f"Payment {payment_id} not found") from None


def find_payment_by_transaction(transaction_id) -> Payment | None:
    """Resolve a provider transaction id (external reference first, then captured id)."""
    dao = current_domain.repository_for(Payment)._dao
    for field in ("external_reference", "transaction_id"):
        matches = dao.query.filter(**{field: transaction_id}).all().items
        if matches:
            return matches[0]
    return None
