"""
Payment API routes: processing, refunds and queries.
"""

from flask import request

from models.errors import EntityNotFound
from models.payment import process_payment, refund_payment, get_payment_by_id, get_payments
from utils.api_response import api_success
from utils.messages import get_message
from utils.validators import parse_int, require_fields
from blueprints.api.common import current_actor, json_body


def register_routes(bp):
    """Register payment API routes on the blueprint."""

    @bp.route('/payments', methods=['POST'])
    def payment_create():
        """
        Record a payment.

        Request JSON:
        {
            "member_id": 1,
            "amount": 238000,            (minor units)
            "method": "card",
            "invoice_id": 3,             (optional)
            "reference": "..."           (optional)
        }
        """
        data = json_body()
        require_fields(data, ('member_id', 'amount', 'method'))
        payment = process_payment(
            parse_int(data, 'member_id'),
            parse_int(data, 'amount'),
            data['method'],
            invoice_id=parse_int(data, 'invoice_id'),
            reference=data.get('reference'),
            changed_by=current_actor(),
        )
        return api_success(data=payment, message=get_message('payment_processed'), status=201)

    @bp.route('/payments/<int:payment_id>/refund', methods=['POST'])
    def payment_refund(payment_id):
        """Refund part or all of a payment. JSON: amount, reason."""
        data = json_body()
        require_fields(data, ('amount',))
        payment = refund_payment(
            payment_id,
            parse_int(data, 'amount'),
            reason=(data.get('reason') or '').strip(),
            changed_by=current_actor(),
        )
        return api_success(data=payment, message=get_message('payment_refunded'))

    @bp.route('/payments')
    def payment_list():
        """List payments. Query: member_id, invoice_id."""
        payments = get_payments(
            member_id=parse_int(request.args, 'member_id'),
            invoice_id=parse_int(request.args, 'invoice_id'),
        )
        return api_success(data=payments, count=len(payments))

    @bp.route('/payments/<int:payment_id>')
    def payment_detail(payment_id):
        """Get a payment."""
        payment = get_payment_by_id(payment_id)
        if not payment:
            raise EntityNotFound('payment', payment_id)
        return api_success(data=payment)
