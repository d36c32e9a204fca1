"""Address aggregate — a shipping/billing address owned by a user.

Orders only reference addresses by id; checkout checks that both ids exist
and belong to the ordering user.
"""

from datetime import UTC, datetime

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from sales.domain import sales
from shared.errors import NotFoundError


@sales.aggregate
class Address:
    user_id = Identifier(required=True)
    line1 = String(required=True, max_length=255)
    line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=2)
    created_at = DateTime(default=lambda: datetime.now(UTC))

    def belongs_to(self, user_id) -> bool:
        return user_id is not None and str(self.user_id) == str(user_id)


@sales.command(part_of="Address")
class RegisterAddress:
    user_id = Identifier(required=True)
    line1 = String(required=True, max_length=255)
    line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=2)


def get_user_address(address_id, user_id) -> Address:
    """Load an address, treating someone else's address as not found."""
    try:
        address = current_domain.repository_for(Address).get(address_id)
    except ObjectNotFoundError:
        address = None
    if address is None or not address.belongs_to(user_id):
        raise NotFoundError("Address.NotFound", f"Address {address_id} not found")
    return address


@sales.command_handler(part_of=Address)
class RegisterAddressHandler:
    @handle(RegisterAddress)
    def register_address(self, command):
        address = Address(
            user_id=command.user_id,
            line1=command.line1,
            line2=command.line2,
            city=command.city,
            state=command.state,
            postal_code=command.postal_code,
            country=command.country,
        )
        current_domain.repository_for(Address).add(address)
        return str(address.id)
