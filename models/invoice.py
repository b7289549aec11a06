"""
Invoice ledger.
Invoice generation from line items, the draft -> sent -> paid lifecycle,
number sequencing and total reconciliation.

Arithmetic (minor units, half-up):
    gross      = round(quantity x unit_price)
    tax        = round(gross x tax_rate)
    line_total = gross + tax - discount

    subtotal   = sum(gross)
    tax_amount = sum(tax)
    discount   = sum(line discount)
    total      = subtotal + tax_amount - discount  (== sum(line_total))

Overdue is derived on read: a sent invoice whose due date has passed is
reported as 'overdue'. The stored status stays 'sent'.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from flask import current_app

from database import get_db, immediate_transaction, retry_on_lock
from models.errors import (
    AlreadyInvoiced,
    EntityNotFound,
    InvalidLineItem,
    InvalidTransition,
    InvoiceIntegrityError,
    NotPayable,
    ValidationError,
)
from utils.audit import log_audit
from utils.datetime_helpers import get_today, now_timestamp, to_date
from utils.money import round_minor, to_decimal

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

INVOICE_STATUSES = ('draft', 'sent', 'paid', 'overdue', 'cancelled')
PAYABLE_STATUSES = ('sent', 'overdue')
CANCELLABLE_STATUSES = ('draft', 'sent')
BILLABLE_RESERVATION_STATUSES = ('confirmed', 'completed')

PAYMENT_METHODS = ('cash', 'card', 'bank_transfer', 'check', 'edahabia')

INVOICE_NUMBER_PREFIX = 'INV'
MAX_MONTHLY_SEQUENCE = 9999


# =============================================================================
# ARITHMETIC
# =============================================================================

def compute_line(item: dict, default_tax_rate=None) -> dict:
    """
    Validate one line item and compute its amounts.

    Args:
        item: {'description', 'quantity' (default 1), 'unit_price' (minor units),
               'tax_rate' (optional, fraction), 'discount' (minor units, default 0)}
        default_tax_rate: Rate used when the item has none

    Returns:
        dict: Normalized line with gross_amount, tax_amount and line_total

    Raises:
        InvalidLineItem: Item is not a mapping, blank description,
            non-positive quantity or unit price, tax rate outside [0, 1],
            or discount outside [0, gross + tax]
    """
    if not isinstance(item, dict):
        raise InvalidLineItem(detail='une ligne doit être un objet', item=repr(item))

    description = item.get('description')
    description = description.strip() if isinstance(description, str) else ''
    if not description:
        raise InvalidLineItem(detail='description requise', item=item)

    try:
        quantity = to_decimal(item.get('quantity', 1), 'quantity')
    except ValueError:
        raise InvalidLineItem(detail='quantité invalide', item=item)
    if quantity <= 0:
        raise InvalidLineItem(detail='la quantité doit être positive', item=item)

    unit_price = item.get('unit_price')
    if isinstance(unit_price, bool) or not isinstance(unit_price, int) or unit_price <= 0:
        raise InvalidLineItem(detail='le prix unitaire doit être un entier positif', item=item)

    tax_rate = item.get('tax_rate')
    if tax_rate is None:
        tax_rate = default_tax_rate if default_tax_rate is not None else '0'
    try:
        tax_rate = to_decimal(tax_rate, 'tax_rate')
    except ValueError:
        raise InvalidLineItem(detail='taux de TVA invalide', item=item)
    if tax_rate < 0 or tax_rate > 1:
        raise InvalidLineItem(detail='le taux de TVA doit être entre 0 et 1', item=item)

    gross_amount = round_minor(quantity * unit_price)
    tax_amount = round_minor(Decimal(gross_amount) * tax_rate)

    discount = item.get('discount', 0) or 0
    if isinstance(discount, bool) or not isinstance(discount, int) or discount < 0:
        raise InvalidLineItem(detail='la remise doit être un entier positif ou nul', item=item)
    if discount > gross_amount + tax_amount:
        raise InvalidLineItem(detail='la remise dépasse le montant de la ligne', item=item)

    return {
        'description': description,
        'quantity': str(quantity),
        'unit_price': unit_price,
        'tax_rate': str(tax_rate),
        'discount': discount,
        'gross_amount': gross_amount,
        'tax_amount': tax_amount,
        'line_total': gross_amount + tax_amount - discount,
    }


def compute_totals(lines: list) -> dict:
    """Invoice totals from computed lines."""
    subtotal = sum(line['gross_amount'] for line in lines)
    tax_amount = sum(line['tax_amount'] for line in lines)
    discount = sum(line['discount'] for line in lines)
    return {
        'subtotal': subtotal,
        'tax_amount': tax_amount,
        'discount': discount,
        'total': subtotal + tax_amount - discount,
    }


def effective_status(invoice: dict, today=None) -> str:
    """Stored status, or 'overdue' for a sent invoice past its due date."""
    today = today or get_today()
    if invoice['status'] == 'sent' and to_date(invoice['due_date']) < today:
        return 'overdue'
    return invoice['status']


def _decorate(invoice: dict, today=None) -> dict:
    invoice['stored_status'] = invoice['status']
    invoice['status'] = effective_status(invoice, today)
    return invoice


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def generate_invoice_number(issue_date, cursor) -> str:
    """
    Next sequential invoice number for the issue month.

    Format: INV-YYYYMM-NNNN, e.g. INV-202610-0001.
    Must run inside the insert transaction.

    Raises:
        ValueError: If the monthly sequence is exhausted
    """
    month_prefix = f"{INVOICE_NUMBER_PREFIX}-{to_date(issue_date).strftime('%Y%m')}-"

    cursor.execute('''
        SELECT MAX(CAST(SUBSTR(invoice_number, ?) AS INTEGER)) as max_seq
        FROM invoices
        WHERE invoice_number LIKE ?
    ''', (len(month_prefix) + 1, f'{month_prefix}%'))

    result = cursor.fetchone()
    next_seq = (result['max_seq'] or 0) + 1

    if next_seq > MAX_MONTHLY_SEQUENCE:
        raise ValueError(f"Monthly invoice sequence exhausted for {month_prefix}")

    return f"{month_prefix}{next_seq:04d}"


def _parse_date(value, field: str):
    try:
        return to_date(value)
    except ValueError:
        raise ValidationError(field=field, value=str(value))


def _load_invoice(cursor, invoice_id: int) -> dict:
    cursor.execute('SELECT * FROM invoices WHERE id = ?', (invoice_id,))
    row = cursor.fetchone()
    if not row:
        raise EntityNotFound('invoice', invoice_id)
    return dict(row)


def _check_billable_reservation(cursor, reservation_id: int, member_id: int) -> None:
    """A reservation is billed to its own member, by at most one live invoice."""
    cursor.execute('SELECT member_id FROM reservations WHERE id = ?', (reservation_id,))
    row = cursor.fetchone()
    if not row:
        raise EntityNotFound('reservation', reservation_id)
    if row['member_id'] != member_id:
        raise ValidationError(field='reservation_id', value=reservation_id)

    cursor.execute('''
        SELECT id, invoice_number FROM invoices
        WHERE reservation_id = ? AND status != 'cancelled'
    ''', (reservation_id,))
    existing = cursor.fetchone()
    if existing:
        raise AlreadyInvoiced(
            reservation_id=reservation_id,
            invoice_id=existing['id'],
            invoice_number=existing['invoice_number'],
            current='invoiced',
            target='invoiced',
        )


def _get_items(cursor, invoice_id: int) -> list:
    cursor.execute('''
        SELECT * FROM invoice_items
        WHERE invoice_id = ?
        ORDER BY position
    ''', (invoice_id,))
    return [dict(row) for row in cursor.fetchall()]


def verify_invoice_totals(cursor, invoice_id: int) -> None:
    """
    Re-read an invoice and its items and check the stored totals reconcile.

    Raises:
        InvoiceIntegrityError: Stored header disagrees with its items
    """
    invoice = _load_invoice(cursor, invoice_id)
    items = _get_items(cursor, invoice_id)
    expected = compute_totals(items)

    stored = {key: invoice[key] for key in ('subtotal', 'tax_amount', 'discount', 'total')}
    lines_total = sum(item['line_total'] for item in items)

    if stored != expected or lines_total != invoice['total']:
        logger.error(
            f"[Invoice] Totals mismatch on {invoice['invoice_number']}: "
            f"stored={stored} expected={expected} lines_total={lines_total}"
        )
        raise InvoiceIntegrityError(invoice_id=invoice_id, stored=stored, expected=expected)


def _set_status(cursor, invoice: dict, new_status: str, extra_sql: str = '', extra_params: tuple = ()) -> None:
    cursor.execute(f'''
        UPDATE invoices
        SET status = ?{extra_sql},
            updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (new_status, *extra_params, invoice['id']))
    verify_invoice_totals(cursor, invoice['id'])


def settle_invoice(cursor, invoice_id: int, method: str) -> dict:
    """
    Mark a payable invoice as paid inside the caller's transaction.

    Returns:
        dict: The invoice row as it was before the update

    Raises:
        EntityNotFound: Unknown invoice
        NotPayable: Invoice is draft, paid or cancelled
        ValidationError: Unknown payment method
    """
    if method not in PAYMENT_METHODS:
        raise ValidationError(field='payment_method', value=method)

    invoice = _load_invoice(cursor, invoice_id)
    status = effective_status(invoice)
    if status not in PAYABLE_STATUSES:
        raise NotPayable(invoice_id=invoice_id, status=status)

    _set_status(
        cursor, invoice, 'paid',
        extra_sql=', paid_date = ?, payment_method = ?',
        extra_params=(now_timestamp(), method),
    )
    return invoice


# =============================================================================
# GENERATION
# =============================================================================

@retry_on_lock
def generate_invoice(
    member_id: int,
    items: list,
    issue_date=None,
    due_date=None,
    reservation_id: int = None,
    notes: str = None,
    changed_by: str = None
) -> dict:
    """
    Create a draft invoice from line items.

    Args:
        member_id: Billed member
        items: List of line item dicts (see compute_line())
        issue_date: Issue date (default today)
        due_date: Due date (default issue date + INVOICE_DUE_DAYS)
        reservation_id: Reservation being billed (optional)
        notes: Free text
        changed_by: Actor name for audit

    Returns:
        dict: Created invoice with items

    Raises:
        InvalidLineItem: Empty item list or malformed item
        ValidationError: Unparseable dates, due date before issue date, or
            a reservation that belongs to another member
        EntityNotFound: Unknown member or reservation
        AlreadyInvoiced: The reservation already has a live invoice
    """
    if not items:
        raise InvalidLineItem(detail='au moins une ligne est requise')

    default_tax_rate = current_app.config.get('DEFAULT_TAX_RATE', '0.19')
    lines = [compute_line(item, default_tax_rate) for item in items]
    totals = compute_totals(lines)

    issue = _parse_date(issue_date, 'issue_date') if issue_date else get_today()
    if due_date:
        due = _parse_date(due_date, 'due_date')
    else:
        due = issue + timedelta(days=int(current_app.config.get('INVOICE_DUE_DAYS', 15)))
    if due < issue:
        raise ValidationError(field='due_date', value=str(due))

    with immediate_transaction() as cursor:
        cursor.execute('SELECT id FROM members WHERE id = ?', (member_id,))
        if not cursor.fetchone():
            raise EntityNotFound('member', member_id)
        if reservation_id is not None:
            _check_billable_reservation(cursor, reservation_id, member_id)

        invoice_number = generate_invoice_number(issue, cursor)

        cursor.execute('''
            INSERT INTO invoices (
                invoice_number, member_id, reservation_id, issue_date, due_date,
                status, subtotal, tax_amount, discount, total, notes
            ) VALUES (?, ?, ?, ?, ?, 'draft', ?, ?, ?, ?, ?)
        ''', (
            invoice_number, member_id, reservation_id, issue.isoformat(), due.isoformat(),
            totals['subtotal'], totals['tax_amount'], totals['discount'], totals['total'], notes
        ))
        invoice_id = cursor.lastrowid

        for position, line in enumerate(lines, start=1):
            cursor.execute('''
                INSERT INTO invoice_items (
                    invoice_id, position, description, quantity, unit_price,
                    tax_rate, discount, gross_amount, tax_amount, line_total
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                invoice_id, position, line['description'], line['quantity'], line['unit_price'],
                line['tax_rate'], line['discount'], line['gross_amount'], line['tax_amount'],
                line['line_total']
            ))

        verify_invoice_totals(cursor, invoice_id)

    logger.info(f"[Invoice] Generated {invoice_number} for member {member_id}: total={totals['total']}")
    log_audit(
        action='CREATE',
        entity_type='invoice',
        entity_id=invoice_id,
        after={'invoice_number': invoice_number, 'total': totals['total']},
        changed_by=changed_by,
    )
    return get_invoice_by_id(invoice_id)


def generate_invoice_for_reservation(reservation_id: int, tax_rate=None, changed_by: str = None) -> dict:
    """
    Bill a confirmed or completed reservation with a one-line invoice.

    The line carries the reservation's pricing discount, and its unit price is
    total_amount + discount, so the line nets to the booked total before tax
    even when rounding made the total exceed base_amount - discount.

    Raises:
        EntityNotFound: Unknown reservation
        InvalidTransition: Reservation is pending or cancelled
        AlreadyInvoiced: Reservation already has a live invoice
        InvalidLineItem: Reservation has no billable amount
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT r.*, s.name as space_name
        FROM reservations r
        JOIN spaces s ON r.space_id = s.id
        WHERE r.id = ?
    ''', (reservation_id,))
    row = cursor.fetchone()
    if not row:
        raise EntityNotFound('reservation', reservation_id)
    reservation = dict(row)

    if reservation['status'] not in BILLABLE_RESERVATION_STATUSES:
        raise InvalidTransition(
            reservation_id=reservation_id,
            current=reservation['status'],
            target='invoiced',
        )

    discount = max(0, reservation['discount'])
    item = {
        'description': (
            f"Réservation {reservation['space_name']} "
            f"du {reservation['start_time']} au {reservation['end_time']}"
        ),
        'quantity': 1,
        'unit_price': reservation['total_amount'] + discount,
        'discount': discount,
    }
    if tax_rate is not None:
        item['tax_rate'] = tax_rate

    return generate_invoice(
        reservation['member_id'], [item],
        reservation_id=reservation_id,
        changed_by=changed_by,
    )


# =============================================================================
# LIFECYCLE
# =============================================================================

@retry_on_lock
def send_invoice(invoice_id: int, changed_by: str = None) -> dict:
    """
    Issue a draft invoice to the member (draft -> sent).

    Raises:
        EntityNotFound: Unknown invoice
        InvalidTransition: Invoice is not a draft
    """
    with immediate_transaction() as cursor:
        invoice = _load_invoice(cursor, invoice_id)
        if invoice['status'] != 'draft':
            raise InvalidTransition(
                invoice_id=invoice_id,
                current=effective_status(invoice),
                target='sent',
            )
        _set_status(cursor, invoice, 'sent')

    logger.info(f"[Invoice] {invoice['invoice_number']} sent")
    log_audit(
        action='UPDATE', entity_type='invoice', entity_id=invoice_id,
        before={'status': 'draft'}, after={'status': 'sent'}, changed_by=changed_by,
    )
    return get_invoice_by_id(invoice_id)


@retry_on_lock
def mark_invoice_paid(invoice_id: int, method: str, changed_by: str = None) -> dict:
    """
    Mark a sent or overdue invoice as paid, stamping paid date and method.

    Raises:
        EntityNotFound: Unknown invoice
        NotPayable: Invoice is draft, paid or cancelled
        ValidationError: Unknown payment method
    """
    with immediate_transaction() as cursor:
        before = settle_invoice(cursor, invoice_id, method)

    logger.info(f"[Invoice] {before['invoice_number']} marked paid ({method})")
    log_audit(
        action='UPDATE', entity_type='invoice', entity_id=invoice_id,
        before={'status': before['status']},
        after={'status': 'paid', 'payment_method': method},
        changed_by=changed_by,
    )
    return get_invoice_by_id(invoice_id)


@retry_on_lock
def cancel_invoice(invoice_id: int, changed_by: str = None) -> dict:
    """
    Void a draft or sent invoice. The row is kept.

    Raises:
        EntityNotFound: Unknown invoice
        InvalidTransition: Invoice is paid or already cancelled
    """
    with immediate_transaction() as cursor:
        invoice = _load_invoice(cursor, invoice_id)
        if invoice['status'] not in CANCELLABLE_STATUSES:
            raise InvalidTransition(
                invoice_id=invoice_id,
                current=invoice['status'],
                target='cancelled',
            )
        _set_status(cursor, invoice, 'cancelled')

    logger.info(f"[Invoice] {invoice['invoice_number']} cancelled")
    log_audit(
        action='CANCEL', entity_type='invoice', entity_id=invoice_id,
        before={'status': invoice['status']}, after={'status': 'cancelled'},
        changed_by=changed_by,
    )
    return get_invoice_by_id(invoice_id)


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice_by_id(invoice_id: int) -> dict:
    """
    Get invoice by ID with its line items.

    Returns:
        dict: Invoice with 'items', effective 'status' and 'stored_status', or None
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM invoices WHERE id = ?', (invoice_id,))
    row = cursor.fetchone()
    if not row:
        return None

    invoice = _decorate(dict(row))
    invoice['items'] = _get_items(cursor, invoice_id)
    return invoice


def get_invoices(member_id: int = None, status: str = None) -> list:
    """
    Get invoices filtered by member and/or effective status.

    Args:
        member_id: Filter by member (optional)
        status: Effective status filter; 'overdue' and 'sent' are told apart
            by due date (optional)

    Returns:
        List of invoice dicts (without items), newest first
    """
    if status and status not in INVOICE_STATUSES:
        raise ValidationError(field='status', value=status)

    db = get_db()
    cursor = db.cursor()
    today = get_today()

    query = 'SELECT * FROM invoices WHERE 1=1'
    params = []

    if member_id is not None:
        query += ' AND member_id = ?'
        params.append(member_id)

    if status == 'overdue':
        query += " AND status = 'sent' AND due_date < ?"
        params.append(today.isoformat())
    elif status == 'sent':
        query += " AND status = 'sent' AND due_date >= ?"
        params.append(today.isoformat())
    elif status:
        query += ' AND status = ?'
        params.append(status)

    query += ' ORDER BY issue_date DESC, id DESC'

    cursor.execute(query, params)
    return [_decorate(dict(row), today) for row in cursor.fetchall()]


def get_overdue_invoices() -> list:
    """Sent invoices whose due date has passed, oldest due first."""
    invoices = get_invoices(status='overdue')
    return sorted(invoices, key=lambda inv: (inv['due_date'], inv['id']))
