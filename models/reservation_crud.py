"""
Reservation create, reschedule and read operations.

Creation checks availability and inserts the row inside one
BEGIN IMMEDIATE transaction, so two concurrent bookings for the same slot
cannot both pass the check.
"""

import logging

from flask import current_app

from database import get_db, immediate_transaction, retry_on_lock
from models.errors import (
    CapacityExceeded,
    EntityNotFound,
    InvalidInterval,
    InvalidTransition,
    MemberNotActive,
    SlotConflict,
    SpaceUnavailable,
    ValidationError,
)
from models.pricing import quote_price
from models.promo_code import (
    check_promo_eligibility,
    find_active_promo_code,
    get_promo_code,
    promo_table,
    record_promo_usage,
)
from models.reservation_availability import get_conflicting_reservations, validate_interval
from models.reservation_state import get_reservation, record_status_history
from models.space import get_space_by_id, is_space_bookable
from utils.audit import log_audit
from utils.datetime_helpers import format_timestamp, get_now, to_local_naive
from utils.messages import get_message

logger = logging.getLogger(__name__)


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def _normalize_interval(start_time, end_time, allow_past: bool = False) -> tuple:
    """Parse and validate a booking interval, returning naive local datetimes."""
    start, end = validate_interval(start_time, end_time)

    if not allow_past and start < to_local_naive(get_now()):
        raise InvalidInterval(get_message('start_in_past'), start=str(start), end=str(end))

    return start, end


def _check_member(cursor, member_id: int) -> dict:
    cursor.execute('SELECT id, status FROM members WHERE id = ?', (member_id,))
    row = cursor.fetchone()
    if not row:
        raise EntityNotFound('member', member_id)
    if row['status'] != 'active':
        raise MemberNotActive(member_id=member_id, status=row['status'])
    return dict(row)


def _check_space(cursor, space_id: int, participants: int) -> dict:
    space = get_space_by_id(space_id, cursor=cursor)
    if not space:
        raise EntityNotFound('space', space_id)
    if not is_space_bookable(space):
        raise SpaceUnavailable(
            space_id=space_id,
            is_available=bool(space['is_available']),
            maintenance_status=space['maintenance_status'],
        )
    if participants > space['capacity']:
        raise CapacityExceeded(space_id=space_id, capacity=space['capacity'], participants=participants)
    return space


def _quote(space: dict, start, end, promo: dict = None) -> dict:
    return quote_price(
        space, start, end,
        promo_code=promo['code'] if promo else None,
        promo_codes=promo_table(promo),
        duration_discounts=current_app.config.get('DURATION_DISCOUNTS'),
    )


def _raise_if_conflicting(cursor, space_id: int, start, end, exclude_reservation_id: int = None) -> None:
    conflicts = get_conflicting_reservations(
        space_id, start, end,
        exclude_reservation_id=exclude_reservation_id,
        cursor=cursor
    )
    if conflicts:
        logger.warning(
            f"[Reservation] Slot conflict on space {space_id} "
            f"{format_timestamp(start)} - {format_timestamp(end)}: "
            f"{[c['id'] for c in conflicts]}"
        )
        raise SlotConflict(
            space_id=space_id,
            start=format_timestamp(start),
            end=format_timestamp(end),
            conflicting_reservation_ids=[c['id'] for c in conflicts],
        )


# =============================================================================
# CREATE
# =============================================================================

@retry_on_lock
def _insert_reservation(
    member_id: int,
    space_id: int,
    start_time,
    end_time,
    initial_status: str,
    notes: str = None,
    promo_code: str = None,
    participants: int = 1,
    created_by: str = None
) -> dict:
    start, end = _normalize_interval(start_time, end_time)

    if not isinstance(participants, int) or participants < 1:
        raise ValidationError(field='participants', value=participants)

    with immediate_transaction() as cursor:
        _check_member(cursor, member_id)
        space = _check_space(cursor, space_id, participants)
        _raise_if_conflicting(cursor, space_id, start, end)

        promo = find_active_promo_code(promo_code, cursor=cursor) if promo_code else None
        quote = _quote(space, start, end, promo)
        if promo:
            check_promo_eligibility(cursor, promo, member_id, quote['base_amount'])
        applied_code = promo['code'] if promo and quote['promo_discount'] else None

        cursor.execute('''
            INSERT INTO reservations (
                space_id, member_id, start_time, end_time,
                status, payment_status, pricing_tier,
                base_amount, discount, total_amount, promo_code,
                participants, notes, created_by, created_at
            ) VALUES (?, ?, ?, ?, ?, 'unpaid', ?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
        ''', (
            space_id, member_id, format_timestamp(start), format_timestamp(end),
            initial_status, quote['tier'],
            quote['base_amount'], quote['discount'], quote['total'], applied_code,
            participants, notes, created_by
        ))
        reservation_id = cursor.lastrowid

        if applied_code:
            record_promo_usage(
                cursor, promo, member_id, reservation_id, quote['promo_discount'],
                amount_before=quote['base_amount'], amount_after=quote['total'],
            )

        record_status_history(
            cursor, reservation_id, initial_status, 'added', created_by,
            'Création de la réservation'
        )

    logger.info(
        f"[Reservation] Created {reservation_id} ({initial_status}) on space {space_id} "
        f"{format_timestamp(start)} - {format_timestamp(end)} total={quote['total']}"
    )
    log_audit(
        action='CREATE',
        entity_type='reservation',
        entity_id=reservation_id,
        after={'status': initial_status, 'space_id': space_id, 'total_amount': quote['total']},
        changed_by=created_by,
    )
    return get_reservation(reservation_id)


def create_reservation(
    member_id: int,
    space_id: int,
    start_time,
    end_time,
    notes: str = None,
    promo_code: str = None,
    participants: int = 1,
    created_by: str = None
) -> dict:
    """
    Book a space directly (status confirmed, payment unpaid).

    Args:
        member_id: Booking member
        space_id: Space to book
        start_time: Start (datetime or ISO string)
        end_time: End (datetime or ISO string), strictly after start
        notes: Optional notes
        promo_code: Optional promo code (unknown, inactive or expired codes are ignored)
        participants: Number of people (<= space capacity)
        created_by: Actor name for history/audit

    Returns:
        dict: The created reservation

    Raises:
        InvalidInterval: end <= start, or start in the past
        EntityNotFound: Unknown member or space
        MemberNotActive: Member inactive or suspended
        SpaceUnavailable: Space flagged unavailable or under maintenance
        CapacityExceeded: Too many participants
        SlotConflict: Overlapping pending/confirmed reservation
        PromoCodeRejected: Code exhausted, already used by the member, or
            booking below the code's minimum amount
    """
    return _insert_reservation(
        member_id, space_id, start_time, end_time, 'confirmed',
        notes=notes, promo_code=promo_code, participants=participants, created_by=created_by
    )


def request_reservation(
    member_id: int,
    space_id: int,
    start_time,
    end_time,
    notes: str = None,
    promo_code: str = None,
    participants: int = 1,
    created_by: str = None
) -> dict:
    """
    Book a space pending admin confirmation (status pending).

    The pending reservation already holds the slot. Same arguments and
    errors as create_reservation().
    """
    return _insert_reservation(
        member_id, space_id, start_time, end_time, 'pending',
        notes=notes, promo_code=promo_code, participants=participants, created_by=created_by
    )


# =============================================================================
# UPDATE
# =============================================================================

@retry_on_lock
def reschedule_reservation(reservation_id: int, start_time, end_time, changed_by: str = None) -> dict:
    """
    Move a pending/confirmed reservation to a new interval and reprice it.

    The reservation's own slot is ignored when checking for conflicts.
    The original promo code is kept without re-checking its rules, and its
    recorded usage follows the new price.

    Raises:
        EntityNotFound: Unknown reservation
        InvalidTransition: Reservation not pending/confirmed or already checked in
        InvalidInterval: Bad interval
        SpaceUnavailable: Space not bookable
        SlotConflict: New interval overlaps another reservation
    """
    start, end = _normalize_interval(start_time, end_time)

    with immediate_transaction() as cursor:
        cursor.execute('SELECT * FROM reservations WHERE id = ?', (reservation_id,))
        row = cursor.fetchone()
        if not row:
            raise EntityNotFound('reservation', reservation_id)
        reservation = dict(row)

        if reservation['status'] not in ('pending', 'confirmed') or reservation['check_in_time']:
            raise InvalidTransition(
                reservation_id=reservation_id,
                current=reservation['status'],
                target='rescheduled',
            )

        space = _check_space(cursor, reservation['space_id'], reservation['participants'])
        _raise_if_conflicting(cursor, reservation['space_id'], start, end,
                              exclude_reservation_id=reservation_id)

        promo = get_promo_code(reservation['promo_code'], cursor=cursor)
        quote = _quote(space, start, end, promo)
        cursor.execute('''
            UPDATE reservations
            SET start_time = ?, end_time = ?, pricing_tier = ?,
                base_amount = ?, discount = ?, total_amount = ?,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (
            format_timestamp(start), format_timestamp(end), quote['tier'],
            quote['base_amount'], quote['discount'], quote['total'],
            reservation_id
        ))
        if promo and quote['promo_discount']:
            cursor.execute('''
                UPDATE promo_code_usages
                SET discount = ?, amount_before = ?, amount_after = ?
                WHERE reservation_id = ?
            ''', (quote['promo_discount'], quote['base_amount'], quote['total'], reservation_id))
        record_status_history(
            cursor, reservation_id, reservation['status'], 'rescheduled', changed_by,
            f"{reservation['start_time']} - {reservation['end_time']} -> "
            f"{format_timestamp(start)} - {format_timestamp(end)}"
        )

    logger.info(f"[Reservation] {reservation_id} rescheduled to {format_timestamp(start)} - {format_timestamp(end)}")
    return get_reservation(reservation_id)


# =============================================================================
# READ
# =============================================================================

def get_reservation_by_id(reservation_id: int) -> dict:
    """
    Get reservation by ID with space and member names.

    Args:
        reservation_id: Reservation ID

    Returns:
        dict: Reservation or None
    """
    db = get_db()
    cursor = db.cursor()

    cursor.execute('''
        SELECT r.*,
               s.name as space_name,
               s.space_type,
               m.first_name || ' ' || COALESCE(m.last_name, '') as member_name,
               m.email as member_email
        FROM reservations r
        JOIN spaces s ON r.space_id = s.id
        JOIN members m ON r.member_id = m.id
        WHERE r.id = ?
    ''', (reservation_id,))

    row = cursor.fetchone()
    return dict(row) if row else None
