"""
Promo code registry.
Flat deductions with an optional validity window, a usage cap, a minimum
booking amount and single use per member.

Lookup rules:
- unknown, inactive or out-of-window codes deduct nothing
- a code that is found but exhausted, already used by the member, or
  below its minimum amount is rejected with a PromoCodeRejected subclass

Eligibility is checked and usage recorded inside the booking's
BEGIN IMMEDIATE transaction, so the usage cap holds under concurrency.
"""

import logging
from decimal import Decimal

from database import get_db, retry_on_lock
from models.errors import (
    EntityNotFound,
    PromoCodeAlreadyUsed,
    PromoCodeBelowMinimum,
    PromoCodeExhausted,
    ValidationError,
)
from utils.audit import log_audit
from utils.datetime_helpers import format_timestamp, now_timestamp
from utils.messages import get_message
from utils.money import MINOR_UNITS, format_amount

logger = logging.getLogger(__name__)


def normalize_code(code) -> str:
    """Strip and upper-case a code; empty or non-string input gives ''."""
    if not isinstance(code, str):
        return ''
    return code.strip().upper()


def promo_table(promo: dict) -> dict:
    """
    Pricing lookup table for one promo row: {code: whole currency units}.

    An empty table when there is no usable promo.
    """
    if not promo:
        return {}
    return {promo['code']: Decimal(promo['amount']) / MINOR_UNITS}


# =============================================================================
# CREATE / READ
# =============================================================================

def create_promo_code(
    code: str,
    amount: int,
    valid_from=None,
    valid_until=None,
    max_uses: int = None,
    min_amount: int = 0,
    description: str = None,
    changed_by: str = None
) -> int:
    """
    Register a promo code.

    Args:
        code: Code, stored upper-case
        amount: Flat deduction in minor units (> 0)
        valid_from: First instant the code applies (optional)
        valid_until: Last instant the code applies (optional)
        max_uses: Total usage cap (optional, unlimited when None)
        min_amount: Minimum undiscounted booking amount, minor units
        description: Free text

    Returns:
        int: New promo code ID

    Raises:
        ValidationError: Blank or duplicate code, bad amounts, bad window
    """
    normalized = normalize_code(code)
    if not normalized:
        raise ValidationError(get_message('field_required', field='code'), field='code')
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError(field='amount', value=amount)
    if isinstance(min_amount, bool) or not isinstance(min_amount, int) or min_amount < 0:
        raise ValidationError(field='min_amount', value=min_amount)
    if max_uses is not None and (isinstance(max_uses, bool) or not isinstance(max_uses, int) or max_uses < 1):
        raise ValidationError(field='max_uses', value=max_uses)

    window = {}
    for field, value in (('valid_from', valid_from), ('valid_until', valid_until)):
        if value is None:
            window[field] = None
            continue
        try:
            window[field] = format_timestamp(value)
        except (TypeError, ValueError):
            raise ValidationError(field=field, value=str(value))
    if window['valid_from'] and window['valid_until'] and window['valid_until'] < window['valid_from']:
        raise ValidationError(field='valid_until', value=window['valid_until'])

    db = get_db()
    cursor = db.cursor()
    if get_promo_code(normalized, cursor=cursor):
        raise ValidationError(field='code', value=normalized)

    cursor.execute('''
        INSERT INTO promo_codes (code, amount, valid_from, valid_until, max_uses,
                                 min_amount, description)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (normalized, amount, window['valid_from'], window['valid_until'], max_uses,
          min_amount, description))
    db.commit()
    promo_id = cursor.lastrowid

    logger.info(f"[PromoCode] Created {normalized} ({amount}) max_uses={max_uses}")
    log_audit(
        action='CREATE',
        entity_type='promo_code',
        entity_id=promo_id,
        after={'code': normalized, 'amount': amount, 'max_uses': max_uses},
        changed_by=changed_by,
    )
    return promo_id


def get_promo_code(code: str, cursor=None) -> dict:
    """Get a promo code by code (case-insensitive), active or not, or None."""
    normalized = normalize_code(code)
    if not normalized:
        return None
    cursor = cursor or get_db().cursor()
    cursor.execute('SELECT * FROM promo_codes WHERE code = ?', (normalized,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_all_promo_codes(active_only: bool = False) -> list:
    """List promo codes, by code."""
    db = get_db()
    cursor = db.cursor()
    query = 'SELECT * FROM promo_codes'
    if active_only:
        query += ' WHERE is_active = 1'
    query += ' ORDER BY code'
    cursor.execute(query)
    return [dict(row) for row in cursor.fetchall()]


def find_active_promo_code(code: str, at: str = None, cursor=None) -> dict:
    """
    Get a code that is active and inside its validity window, or None.

    Args:
        code: Code as typed by the member
        at: Storage timestamp to check the window against (default now)
        cursor: Cursor of the caller's transaction (optional)
    """
    promo = get_promo_code(code, cursor=cursor)
    if not promo or not promo['is_active']:
        return None
    at = at or now_timestamp()
    if promo['valid_from'] and at < promo['valid_from']:
        return None
    if promo['valid_until'] and at > promo['valid_until']:
        return None
    return promo


# =============================================================================
# ELIGIBILITY / USAGE
# =============================================================================

def check_promo_eligibility(cursor, promo: dict, member_id: int = None, amount: int = 0) -> None:
    """
    Check the per-use rules of an active code.

    Args:
        cursor: Cursor of the caller's transaction
        promo: Row from find_active_promo_code()
        member_id: Member about to use the code (optional for previews)
        amount: Undiscounted booking amount, minor units

    Raises:
        PromoCodeExhausted: Usage cap reached
        PromoCodeAlreadyUsed: Member already used this code
        PromoCodeBelowMinimum: Amount under the code's minimum
    """
    if promo['max_uses'] is not None and promo['current_uses'] >= promo['max_uses']:
        raise PromoCodeExhausted(code=promo['code'], max_uses=promo['max_uses'])

    if member_id is not None:
        cursor.execute('''
            SELECT id FROM promo_code_usages
            WHERE promo_code_id = ? AND member_id = ?
        ''', (promo['id'], member_id))
        if cursor.fetchone():
            raise PromoCodeAlreadyUsed(code=promo['code'], member_id=member_id)

    if amount < promo['min_amount']:
        raise PromoCodeBelowMinimum(
            code=promo['code'],
            amount=amount,
            minimum=format_amount(promo['min_amount']),
        )


def record_promo_usage(
    cursor,
    promo: dict,
    member_id: int,
    reservation_id: int,
    discount: int,
    amount_before: int,
    amount_after: int
) -> None:
    """Log one use of a code and bump its counter, inside the caller's transaction."""
    cursor.execute('''
        INSERT INTO promo_code_usages (
            promo_code_id, member_id, reservation_id, discount,
            amount_before, amount_after, used_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (promo['id'], member_id, reservation_id, discount,
          amount_before, amount_after, now_timestamp()))
    cursor.execute('''
        UPDATE promo_codes
        SET current_uses = current_uses + 1,
            updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (promo['id'],))
    logger.info(f"[PromoCode] {promo['code']} used by member {member_id} on reservation {reservation_id}")


def get_promo_usages(code: str) -> list:
    """Uses of a code, oldest first."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT u.*, p.code
        FROM promo_code_usages u
        JOIN promo_codes p ON u.promo_code_id = p.id
        WHERE p.code = ?
        ORDER BY u.id
    ''', (normalize_code(code),))
    return [dict(row) for row in cursor.fetchall()]


def validate_promo_code(code: str, member_id: int = None, amount: int = 0) -> dict:
    """
    Check a code for a prospective booking without using it.

    Returns:
        dict: {'code', 'amount', 'discount', 'final_amount'} in minor units

    Raises:
        EntityNotFound: Unknown, inactive or out-of-window code
        PromoCodeRejected: See check_promo_eligibility()
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise ValidationError(field='amount', value=amount)

    cursor = get_db().cursor()
    promo = find_active_promo_code(code, cursor=cursor)
    if not promo:
        raise EntityNotFound('promo_code', normalize_code(code) or code)
    check_promo_eligibility(cursor, promo, member_id, amount)

    discount = min(promo['amount'], amount)
    return {
        'code': promo['code'],
        'amount': promo['amount'],
        'discount': discount,
        'final_amount': amount - discount,
    }


@retry_on_lock
def deactivate_promo_code(code: str, changed_by: str = None) -> dict:
    """
    Switch a code off. Past usages are kept.

    Raises:
        EntityNotFound: Unknown code
    """
    promo = get_promo_code(code)
    if not promo:
        raise EntityNotFound('promo_code', normalize_code(code) or code)

    db = get_db()
    db.execute('''
        UPDATE promo_codes
        SET is_active = 0, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (promo['id'],))
    db.commit()

    logger.info(f"[PromoCode] {promo['code']} deactivated")
    log_audit(
        action='UPDATE', entity_type='promo_code', entity_id=promo['id'],
        before={'is_active': bool(promo['is_active'])}, after={'is_active': False},
        changed_by=changed_by,
    )
    return get_promo_code(promo['code'])
