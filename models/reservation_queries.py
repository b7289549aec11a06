"""
Reservation listing queries.
"""

from database import get_db
from utils.datetime_helpers import format_timestamp


def get_reservations_by_space(
    space_id: int,
    start_time=None,
    end_time=None,
    include_cancelled: bool = False
) -> list:
    """
    Get reservations of a space, optionally limited to those overlapping a range.

    Args:
        space_id: Space ID
        start_time: Range start (optional)
        end_time: Range end (optional)
        include_cancelled: Include cancelled reservations

    Returns:
        List of reservation dicts ordered by start time
    """
    db = get_db()
    cursor = db.cursor()

    query = '''
        SELECT r.*,
               m.first_name || ' ' || COALESCE(m.last_name, '') as member_name
        FROM reservations r
        JOIN members m ON r.member_id = m.id
        WHERE r.space_id = ?
    '''
    params = [space_id]

    if end_time is not None:
        query += ' AND r.start_time < ?'
        params.append(format_timestamp(end_time))

    if start_time is not None:
        query += ' AND r.end_time > ?'
        params.append(format_timestamp(start_time))

    if not include_cancelled:
        query += " AND r.status != 'cancelled'"

    query += ' ORDER BY r.start_time'

    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


def get_reservations_by_member(member_id: int, status: str = None) -> list:
    """
    Get a member's reservations, newest first.

    Args:
        member_id: Member ID
        status: Filter by status (optional)

    Returns:
        List of reservation dicts with space name
    """
    db = get_db()
    cursor = db.cursor()

    query = '''
        SELECT r.*, s.name as space_name
        FROM reservations r
        JOIN spaces s ON r.space_id = s.id
        WHERE r.member_id = ?
    '''
    params = [member_id]

    if status:
        query += ' AND r.status = ?'
        params.append(status)

    query += ' ORDER BY r.start_time DESC'

    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


def get_reservation_stats(space_id: int = None) -> dict:
    """
    Count reservations by status and payment status.

    Returns:
        dict: {'total': int, 'by_status': {...}, 'by_payment_status': {...}}
    """
    db = get_db()
    cursor = db.cursor()

    where = ''
    params = []
    if space_id is not None:
        where = 'WHERE space_id = ?'
        params.append(space_id)

    cursor.execute(f'SELECT status, COUNT(*) as n FROM reservations {where} GROUP BY status', params)
    by_status = {row['status']: row['n'] for row in cursor.fetchall()}

    cursor.execute(
        f'SELECT payment_status, COUNT(*) as n FROM reservations {where} GROUP BY payment_status',
        params
    )
    by_payment_status = {row['payment_status']: row['n'] for row in cursor.fetchall()}

    return {
        'total': sum(by_status.values()),
        'by_status': by_status,
        'by_payment_status': by_payment_status,
    }
