"""
Domain errors raised by the reservation and billing core.

Every error carries a machine-readable ``code``, a French user-facing
message and a ``context`` dict (entity id, attempted value, current state)
so the request layer can build a response without parsing strings.
"""

from utils.messages import get_message


class CoworkingError(ValueError):
    """Base class for recoverable, caller-visible domain errors."""

    code = 'domain_error'
    message_key = 'invalid_value'
    http_status = 400

    def __init__(self, message: str = None, **context):
        self.context = context
        if message is None:
            message = get_message(self.message_key, **context)
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {'code': self.code, 'error': self.message, 'context': self.context}


class ValidationError(CoworkingError):
    code = 'validation_error'
    message_key = 'invalid_value'


class EntityNotFound(CoworkingError):
    code = 'not_found'
    message_key = 'not_found'
    http_status = 404

    def __init__(self, entity_type: str, entity_id=None):
        super().__init__(
            get_message('not_found', entity=get_message(f'entity_{entity_type}')),
            entity_type=entity_type,
            entity_id=entity_id,
        )


class InvalidInterval(CoworkingError):
    code = 'invalid_interval'
    message_key = 'invalid_interval'


class SlotConflict(CoworkingError):
    code = 'slot_conflict'
    message_key = 'slot_conflict'
    http_status = 409


class SpaceUnavailable(CoworkingError):
    code = 'space_unavailable'
    message_key = 'space_unavailable'
    http_status = 409


class CapacityExceeded(CoworkingError):
    code = 'capacity_exceeded'
    message_key = 'capacity_exceeded'


class MemberNotActive(CoworkingError):
    code = 'member_not_active'
    message_key = 'member_not_active'
    http_status = 409


class InvalidTransition(CoworkingError):
    code = 'invalid_transition'
    message_key = 'invalid_transition'
    http_status = 409


class AlreadyCheckedIn(InvalidTransition):
    code = 'already_checked_in'
    message_key = 'already_checked_in'


class NotConfirmed(InvalidTransition):
    code = 'not_confirmed'
    message_key = 'not_confirmed'


class InvalidLineItem(CoworkingError):
    code = 'invalid_line_item'
    message_key = 'invalid_line_item'


class NotPayable(CoworkingError):
    code = 'not_payable'
    message_key = 'not_payable'
    http_status = 409


class InvalidAmount(CoworkingError):
    code = 'invalid_amount'
    message_key = 'invalid_amount'


class RefundExceedsPayment(CoworkingError):
    code = 'refund_exceeds_payment'
    message_key = 'refund_exceeds_payment'
    http_status = 409


class NegativeStock(CoworkingError):
    code = 'negative_stock'
    message_key = 'negative_stock'
    http_status = 409


class AlreadyAssigned(InvalidTransition):
    code = 'already_assigned'
    message_key = 'already_assigned'


class InvoiceIntegrityError(CoworkingError):
    code = 'invoice_integrity'
    message_key = 'invoice_integrity'
    http_status = 500


class AlreadyInvoiced(InvalidTransition):
    code = 'already_invoiced'
    message_key = 'already_invoiced'


class PromoCodeRejected(CoworkingError):
    """A known, active promo code that this booking may not use."""
    code = 'promo_code_rejected'
    message_key = 'promo_code_rejected'


class PromoCodeExhausted(PromoCodeRejected):
    code = 'promo_code_exhausted'
    message_key = 'promo_code_exhausted'


class PromoCodeAlreadyUsed(PromoCodeRejected):
    code = 'promo_code_already_used'
    message_key = 'promo_code_already_used'


class PromoCodeBelowMinimum(PromoCodeRejected):
    code = 'promo_code_below_minimum'
    message_key = 'promo_code_below_minimum'
