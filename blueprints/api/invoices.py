"""
Invoice API routes: generation, lifecycle and queries.
"""

from flask import request

from models.errors import EntityNotFound, InvalidLineItem
from models.invoice import (
    generate_invoice,
    generate_invoice_for_reservation,
    send_invoice,
    mark_invoice_paid,
    cancel_invoice,
    get_invoice_by_id,
    get_invoices,
    get_overdue_invoices,
)
from utils.api_response import api_success
from utils.messages import get_message
from utils.validators import parse_int, require_fields
from blueprints.api.common import current_actor, json_body


def register_routes(bp):
    """Register invoice API routes on the blueprint."""

    @bp.route('/invoices', methods=['POST'])
    def invoice_create():
        """
        Generate a draft invoice.

        Request JSON:
        {
            "member_id": 1,
            "items": [
                {"description": "Journée bureau", "quantity": 2,
                 "unit_price": 300000, "tax_rate": "0.19", "discount": 0}
            ],
            "issue_date": "2026-10-19",    (optional)
            "due_date": "2026-11-03",      (optional)
            "reservation_id": 12,          (optional)
            "notes": "..."                 (optional)
        }
        """
        data = json_body()
        require_fields(data, ('member_id', 'items'))
        if not isinstance(data['items'], list):
            raise InvalidLineItem(detail='items doit être une liste')

        invoice = generate_invoice(
            parse_int(data, 'member_id'),
            data['items'],
            issue_date=data.get('issue_date'),
            due_date=data.get('due_date'),
            reservation_id=parse_int(data, 'reservation_id'),
            notes=data.get('notes'),
            changed_by=current_actor(),
        )
        return api_success(data=invoice, message=get_message('invoice_created'), status=201)

    @bp.route('/reservations/<int:reservation_id>/invoice', methods=['POST'])
    def invoice_for_reservation(reservation_id):
        """Bill a reservation with a one-line invoice. JSON: tax_rate (optional)."""
        data = json_body()
        invoice = generate_invoice_for_reservation(
            reservation_id,
            tax_rate=data.get('tax_rate'),
            changed_by=current_actor(),
        )
        return api_success(data=invoice, message=get_message('invoice_created'), status=201)

    @bp.route('/invoices')
    def invoice_list():
        """List invoices. Query: member_id, status (effective, 'overdue' included)."""
        invoices = get_invoices(
            member_id=parse_int(request.args, 'member_id'),
            status=request.args.get('status'),
        )
        return api_success(data=invoices, count=len(invoices))

    @bp.route('/invoices/overdue')
    def invoice_overdue():
        """List sent invoices past their due date."""
        invoices = get_overdue_invoices()
        return api_success(data=invoices, count=len(invoices))

    @bp.route('/invoices/<int:invoice_id>')
    def invoice_detail(invoice_id):
        """Get an invoice with its items."""
        invoice = get_invoice_by_id(invoice_id)
        if not invoice:
            raise EntityNotFound('invoice', invoice_id)
        return api_success(data=invoice)

    @bp.route('/invoices/<int:invoice_id>/send', methods=['POST'])
    def invoice_send(invoice_id):
        """Issue a draft invoice."""
        invoice = send_invoice(invoice_id, changed_by=current_actor())
        return api_success(data=invoice, message=get_message('invoice_sent'))

    @bp.route('/invoices/<int:invoice_id>/pay', methods=['POST'])
    def invoice_pay(invoice_id):
        """Mark an invoice paid. JSON: method."""
        data = json_body()
        require_fields(data, ('method',))
        invoice = mark_invoice_paid(invoice_id, data['method'], changed_by=current_actor())
        return api_success(data=invoice, message=get_message('invoice_paid'))

    @bp.route('/invoices/<int:invoice_id>/cancel', methods=['POST'])
    def invoice_cancel(invoice_id):
        """Void a draft or sent invoice."""
        invoice = cancel_invoice(invoice_id, changed_by=current_actor())
        return api_success(data=invoice, message=get_message('invoice_cancelled'))
