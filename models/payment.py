"""
Payment processing and refunds.

Payments and refunds are append/patch only: a refund accumulates on the
payment row it reverses, and no payment row is ever deleted. Every
read-modify-write runs in a BEGIN IMMEDIATE transaction, so concurrent
refunds of the same payment see each other's committed refund_amount.
"""

import logging

from database import get_db, immediate_transaction, retry_on_lock
from models.errors import (
    EntityNotFound,
    InvalidAmount,
    InvalidTransition,
    NotPayable,
    RefundExceedsPayment,
    ValidationError,
)
from models.invoice import PAYABLE_STATUSES, PAYMENT_METHODS, effective_status, settle_invoice
from models.reservation_state import update_payment_status
from utils.audit import log_audit
from utils.datetime_helpers import now_timestamp

logger = logging.getLogger(__name__)

PAYMENT_STATUSES = ('pending', 'completed', 'failed', 'refunded')


def _validate_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(amount=amount)
    return amount


def _load_payment(cursor, payment_id: int) -> dict:
    cursor.execute('SELECT * FROM payments WHERE id = ?', (payment_id,))
    row = cursor.fetchone()
    if not row:
        raise EntityNotFound('payment', payment_id)
    return dict(row)


def _net_paid(cursor, invoice_id: int) -> int:
    """Completed payments against an invoice, net of refunds."""
    cursor.execute('''
        SELECT COALESCE(SUM(amount - refund_amount), 0) as net
        FROM payments
        WHERE invoice_id = ? AND status = 'completed'
    ''', (invoice_id,))
    return cursor.fetchone()['net']


# =============================================================================
# PROCESS
# =============================================================================

@retry_on_lock
def process_payment(
    member_id: int,
    amount: int,
    method: str,
    invoice_id: int = None,
    reference: str = None,
    changed_by: str = None
) -> dict:
    """
    Record a completed payment, optionally against an invoice.

    When the invoice's net completed payments reach its total, the invoice
    is marked paid in the same transaction. A reservation billed by the
    invoice gets payment status 'paid' or 'partial'.

    Args:
        member_id: Paying member
        amount: Amount in minor units (> 0)
        method: One of PAYMENT_METHODS
        invoice_id: Invoice being paid (optional)
        reference: External reference (cheque number, transfer id...)
        changed_by: Actor name for audit

    Returns:
        dict: The payment

    Raises:
        InvalidAmount: Non-positive or non-integer amount
        ValidationError: Unknown method, or invoice billed to another member
        EntityNotFound: Unknown member or invoice
        NotPayable: Invoice is draft, paid or cancelled
    """
    _validate_amount(amount)
    if method not in PAYMENT_METHODS:
        raise ValidationError(field='method', value=method)

    invoice_settled = False
    with immediate_transaction() as cursor:
        cursor.execute('SELECT id FROM members WHERE id = ?', (member_id,))
        if not cursor.fetchone():
            raise EntityNotFound('member', member_id)

        invoice = None
        if invoice_id is not None:
            cursor.execute('SELECT * FROM invoices WHERE id = ?', (invoice_id,))
            row = cursor.fetchone()
            if not row:
                raise EntityNotFound('invoice', invoice_id)
            invoice = dict(row)
            if invoice['member_id'] != member_id:
                raise ValidationError(field='invoice_id', value=invoice_id)
            status = effective_status(invoice)
            if status not in PAYABLE_STATUSES:
                raise NotPayable(invoice_id=invoice_id, status=status)

        cursor.execute('''
            INSERT INTO payments (
                member_id, invoice_id, amount, method, status, reference, processed_at
            ) VALUES (?, ?, ?, ?, 'completed', ?, ?)
        ''', (member_id, invoice_id, amount, method, reference, now_timestamp()))
        payment_id = cursor.lastrowid

        if invoice is not None:
            if _net_paid(cursor, invoice_id) >= invoice['total']:
                settle_invoice(cursor, invoice_id, method)
                invoice_settled = True
            if invoice['reservation_id']:
                update_payment_status(
                    invoice['reservation_id'],
                    'paid' if invoice_settled else 'partial',
                    cursor=cursor,
                    changed_by=changed_by,
                )

    logger.info(
        f"[Payment] {payment_id}: {amount} via {method} from member {member_id} "
        f"invoice={invoice_id} settled={invoice_settled}"
    )
    log_audit(
        action='PAYMENT',
        entity_type='payment',
        entity_id=payment_id,
        after={'amount': amount, 'method': method, 'invoice_id': invoice_id,
               'invoice_settled': invoice_settled},
        changed_by=changed_by,
    )
    return get_payment_by_id(payment_id)


# =============================================================================
# REFUND
# =============================================================================

@retry_on_lock
def refund_payment(payment_id: int, amount: int, reason: str = '', changed_by: str = None) -> dict:
    """
    Refund part or all of a completed payment.

    Refunds accumulate on the payment row. Once the whole amount has been
    refunded the payment status becomes 'refunded', and a reservation billed
    through the payment's invoice gets payment status 'refunded'.

    Args:
        payment_id: Payment to refund
        amount: Refund in minor units (> 0, <= remaining refundable)
        reason: Free text
        changed_by: Actor name for audit

    Returns:
        dict: The updated payment

    Raises:
        InvalidAmount: Non-positive or non-integer amount
        EntityNotFound: Unknown payment
        InvalidTransition: Payment is not completed
        RefundExceedsPayment: Amount above the remaining refundable balance
    """
    _validate_amount(amount)

    with immediate_transaction() as cursor:
        payment = _load_payment(cursor, payment_id)

        if payment['status'] != 'completed':
            raise InvalidTransition(
                payment_id=payment_id,
                current=payment['status'],
                target='refunded',
            )

        remaining = payment['amount'] - payment['refund_amount']
        if amount > remaining:
            logger.warning(
                f"[Payment] Refund of {amount} rejected on payment {payment_id}: "
                f"only {remaining} refundable"
            )
            raise RefundExceedsPayment(payment_id=payment_id, amount=amount, remaining=remaining)

        refund_amount = payment['refund_amount'] + amount
        fully_refunded = refund_amount == payment['amount']
        new_status = 'refunded' if fully_refunded else 'completed'

        cursor.execute('''
            UPDATE payments
            SET refund_amount = ?, refund_date = ?, refund_reason = ?,
                status = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (refund_amount, now_timestamp(), reason, new_status, payment_id))

        if fully_refunded and payment['invoice_id']:
            cursor.execute('SELECT status, reservation_id FROM invoices WHERE id = ?',
                           (payment['invoice_id'],))
            invoice = cursor.fetchone()
            if invoice and invoice['status'] == 'paid' and invoice['reservation_id']:
                update_payment_status(
                    invoice['reservation_id'], 'refunded',
                    cursor=cursor, changed_by=changed_by,
                )

    logger.info(f"[Payment] Refunded {amount} on payment {payment_id} ({refund_amount}/{payment['amount']})")
    log_audit(
        action='REFUND',
        entity_type='payment',
        entity_id=payment_id,
        before={'refund_amount': payment['refund_amount'], 'status': payment['status']},
        after={'refund_amount': refund_amount, 'status': new_status, 'reason': reason},
        changed_by=changed_by,
    )
    return get_payment_by_id(payment_id)


# =============================================================================
# QUERIES
# =============================================================================

def get_payment_by_id(payment_id: int) -> dict:
    """Get payment by ID, or None."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM payments WHERE id = ?', (payment_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_payments(member_id: int = None, invoice_id: int = None) -> list:
    """
    Get payments filtered by member and/or invoice.

    Args:
        member_id: Filter by member (optional)
        invoice_id: Filter by invoice (optional)

    Returns:
        List of payment dicts, newest first
    """
    db = get_db()
    cursor = db.cursor()

    query = 'SELECT * FROM payments WHERE 1=1'
    params = []

    if member_id is not None:
        query += ' AND member_id = ?'
        params.append(member_id)

    if invoice_id is not None:
        query += ' AND invoice_id = ?'
        params.append(invoice_id)

    query += ' ORDER BY id DESC'

    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]
