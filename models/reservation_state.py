"""
Reservation state management functions.
Handles lifecycle transitions, presence (check-in/check-out), billing status
setters and the status history.

Lifecycle:
    pending -> confirmed -> completed
    pending | confirmed -> cancelled

Check-in requires a confirmed reservation; check-out requires a check-in.
Check-out frees the slot but leaves the status alone; completion is the
separate complete_reservation() step.
"""

import logging

from database import immediate_transaction, retry_on_lock, get_db
from models.errors import (
    AlreadyCheckedIn,
    EntityNotFound,
    InvalidTransition,
    NotConfirmed,
    ValidationError,
)
from utils.audit import log_audit
from utils.datetime_helpers import now_timestamp
from utils.messages import get_message

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

RESERVATION_STATUSES = ('pending', 'confirmed', 'cancelled', 'completed')
PAYMENT_STATUSES = ('unpaid', 'partial', 'paid', 'refunded')

VALID_TRANSITIONS = {
    'pending': ('confirmed', 'cancelled'),
    'confirmed': ('completed', 'cancelled'),
    'cancelled': (),
    'completed': (),
}


def get_valid_transitions(current_status: str) -> tuple:
    """Statuses reachable from current_status."""
    return VALID_TRANSITIONS.get(current_status, ())


def validate_state_transition(current_status: str, new_status: str, reservation_id: int = None) -> None:
    """
    Validate a lifecycle transition.

    Raises:
        InvalidTransition: If new_status is not reachable from current_status
    """
    if new_status not in get_valid_transitions(current_status):
        raise InvalidTransition(
            reservation_id=reservation_id,
            current=current_status,
            target=new_status,
        )


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _load_reservation(cursor, reservation_id: int) -> dict:
    """Read a reservation inside an open transaction or raise EntityNotFound."""
    cursor.execute('SELECT * FROM reservations WHERE id = ?', (reservation_id,))
    row = cursor.fetchone()
    if not row:
        raise EntityNotFound('reservation', reservation_id)
    return dict(row)


def record_status_history(cursor, reservation_id: int, status_type: str, action: str,
                          changed_by: str = None, notes: str = '') -> None:
    """Append a status history row (caller owns the transaction)."""
    cursor.execute('''
        INSERT INTO reservation_status_history
        (reservation_id, status_type, action, changed_by, notes, created_at)
        VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
    ''', (reservation_id, status_type, action, changed_by, notes))


def _set_status(cursor, reservation: dict, new_status: str, changed_by: str = None,
                notes: str = '', extra_sql: str = '', extra_params: tuple = ()) -> None:
    validate_state_transition(reservation['status'], new_status, reservation['id'])
    cursor.execute(f'''
        UPDATE reservations
        SET status = ?{extra_sql},
            updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (new_status, *extra_params, reservation['id']))
    record_status_history(
        cursor, reservation['id'], new_status, 'changed', changed_by,
        notes or f"{reservation['status']} -> {new_status}"
    )


# =============================================================================
# LIFECYCLE TRANSITIONS
# =============================================================================

@retry_on_lock
def confirm_reservation(reservation_id: int, changed_by: str = None) -> dict:
    """
    Confirm a pending reservation.

    Raises:
        EntityNotFound: Unknown reservation
        InvalidTransition: Reservation is not pending
    """
    with immediate_transaction() as cursor:
        reservation = _load_reservation(cursor, reservation_id)
        if reservation['status'] != 'pending':
            raise InvalidTransition(
                reservation_id=reservation_id,
                current=reservation['status'],
                target='confirmed',
            )
        _set_status(cursor, reservation, 'confirmed', changed_by)

    logger.info(f"[Reservation] {reservation_id} confirmed by {changed_by or 'system'}")
    return get_reservation(reservation_id)


@retry_on_lock
def check_in_reservation(reservation_id: int, changed_by: str = None) -> dict:
    """
    Record the member's arrival.

    Raises:
        EntityNotFound: Unknown reservation
        AlreadyCheckedIn: Arrival already recorded
        NotConfirmed: Reservation is not confirmed
    """
    with immediate_transaction() as cursor:
        reservation = _load_reservation(cursor, reservation_id)
        if reservation['check_in_time']:
            raise AlreadyCheckedIn(
                reservation_id=reservation_id,
                check_in_time=reservation['check_in_time'],
            )
        if reservation['status'] != 'confirmed':
            raise NotConfirmed(reservation_id=reservation_id, current=reservation['status'])

        cursor.execute('''
            UPDATE reservations
            SET check_in_time = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (now_timestamp(), reservation_id))
        record_status_history(cursor, reservation_id, 'check_in', 'added', changed_by)

    logger.info(f"[Reservation] {reservation_id} checked in")
    return get_reservation(reservation_id)


@retry_on_lock
def check_out_reservation(reservation_id: int, changed_by: str = None) -> dict:
    """
    Record the member's departure. Does not change the status.

    Raises:
        EntityNotFound: Unknown reservation
        InvalidTransition: Not checked in, already checked out, or not confirmed
    """
    with immediate_transaction() as cursor:
        reservation = _load_reservation(cursor, reservation_id)
        if not reservation['check_in_time']:
            raise InvalidTransition(
                get_message('not_checked_in'),
                reservation_id=reservation_id,
                current=reservation['status'],
                target='check_out',
            )
        if reservation['check_out_time']:
            raise InvalidTransition(
                get_message('already_checked_out'),
                reservation_id=reservation_id,
                check_out_time=reservation['check_out_time'],
            )
        if reservation['status'] != 'confirmed':
            raise InvalidTransition(
                reservation_id=reservation_id,
                current=reservation['status'],
                target='check_out',
            )

        cursor.execute('''
            UPDATE reservations
            SET check_out_time = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (now_timestamp(), reservation_id))
        record_status_history(cursor, reservation_id, 'check_out', 'added', changed_by)

    logger.info(f"[Reservation] {reservation_id} checked out")
    return get_reservation(reservation_id)


@retry_on_lock
def complete_reservation(reservation_id: int, changed_by: str = None) -> dict:
    """
    Mark a checked-out reservation as completed.

    Raises:
        EntityNotFound: Unknown reservation
        InvalidTransition: Not confirmed or not yet checked out
    """
    with immediate_transaction() as cursor:
        reservation = _load_reservation(cursor, reservation_id)
        if reservation['status'] == 'confirmed' and not reservation['check_out_time']:
            raise InvalidTransition(
                reservation_id=reservation_id,
                current='confirmed (sans départ)',
                target='completed',
            )
        _set_status(cursor, reservation, 'completed', changed_by)

    logger.info(f"[Reservation] {reservation_id} completed")
    return get_reservation(reservation_id)


@retry_on_lock
def cancel_reservation(reservation_id: int, reason: str = '', changed_by: str = None) -> dict:
    """
    Cancel a pending or confirmed reservation and release its slot.

    The status write is the release: availability queries only consider
    pending/confirmed rows, so the interval is free as soon as this commits.

    Raises:
        EntityNotFound: Unknown reservation
        InvalidTransition: Already cancelled/completed, or already checked out
    """
    with immediate_transaction() as cursor:
        reservation = _load_reservation(cursor, reservation_id)
        if reservation['check_out_time']:
            raise InvalidTransition(
                reservation_id=reservation_id,
                current='checked_out',
                target='cancelled',
            )
        _set_status(
            cursor, reservation, 'cancelled', changed_by,
            notes=reason or 'Annulation',
            extra_sql=', cancelled_at = ?, cancellation_reason = ?',
            extra_params=(now_timestamp(), reason),
        )

    logger.info(f"[Reservation] {reservation_id} cancelled: {reason}")
    log_audit(
        action='CANCEL',
        entity_type='reservation',
        entity_id=reservation_id,
        before={'status': reservation['status']},
        after={'status': 'cancelled', 'reason': reason},
        changed_by=changed_by,
    )
    return get_reservation(reservation_id)


# =============================================================================
# DIRECT SETTERS (billing layer)
# =============================================================================

@retry_on_lock
def update_status(reservation_id: int, status: str, changed_by: str = None) -> dict:
    """
    Set the status directly, without scheduling checks.

    Raises:
        ValidationError: Unknown status
        EntityNotFound: Unknown reservation
    """
    if status not in RESERVATION_STATUSES:
        raise ValidationError(field='status', value=status)

    with immediate_transaction() as cursor:
        reservation = _load_reservation(cursor, reservation_id)
        cursor.execute('''
            UPDATE reservations SET status = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (status, reservation_id))
        record_status_history(
            cursor, reservation_id, status, 'changed', changed_by,
            f"{reservation['status']} -> {status} (direct)"
        )

    return get_reservation(reservation_id)


def update_payment_status(reservation_id: int, payment_status: str, cursor=None,
                          changed_by: str = None) -> None:
    """
    Set the payment status directly.

    When a cursor is given the write joins the caller's transaction;
    otherwise it runs in its own.

    Raises:
        ValidationError: Unknown payment status
        EntityNotFound: Unknown reservation
    """
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(field='payment_status', value=payment_status)

    if cursor is None:
        with immediate_transaction() as own_cursor:
            _write_payment_status(own_cursor, reservation_id, payment_status, changed_by)
    else:
        _write_payment_status(cursor, reservation_id, payment_status, changed_by)


def _write_payment_status(cursor, reservation_id: int, payment_status: str, changed_by: str) -> None:
    cursor.execute('''
        UPDATE reservations SET payment_status = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (payment_status, reservation_id))
    if cursor.rowcount == 0:
        raise EntityNotFound('reservation', reservation_id)
    record_status_history(cursor, reservation_id, f'payment:{payment_status}', 'changed', changed_by)


# =============================================================================
# READ
# =============================================================================

def get_reservation(reservation_id: int) -> dict:
    """Get a reservation row by ID, or None."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM reservations WHERE id = ?', (reservation_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_status_history(reservation_id: int) -> list:
    """
    Get state change history for reservation.

    Args:
        reservation_id: Reservation ID

    Returns:
        list: History entries, oldest first
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM reservation_status_history
        WHERE reservation_id = ?
        ORDER BY id
    ''', (reservation_id,))
    return [dict(r) for r in cursor.fetchall()]
