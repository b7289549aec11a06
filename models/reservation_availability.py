"""
Space availability checking.

A space is available for [start, end) when it is flagged available, its
maintenance status is operational and no blocking reservation overlaps the
interval. Blocking reservations are pending or confirmed and not yet
checked out. Intervals are half-open, so back-to-back bookings do not
conflict.

Callers that act on the answer (reservation creation) must run the check
inside immediate_transaction() and pass its cursor.
"""

from database import get_db
from models.errors import EntityNotFound, InvalidInterval
from models.space import get_space_by_id, is_space_bookable
from utils.datetime_helpers import format_timestamp, to_local_naive

BLOCKING_STATUSES = ('pending', 'confirmed')


def validate_interval(start_time, end_time) -> tuple:
    """
    Parse an interval into naive local datetimes.

    Raises:
        InvalidInterval: Unparseable bounds or end <= start
    """
    try:
        start = to_local_naive(start_time)
        end = to_local_naive(end_time)
    except (TypeError, ValueError):
        raise InvalidInterval(start=str(start_time), end=str(end_time))
    if end <= start:
        raise InvalidInterval(start=str(start), end=str(end))
    return start, end


def _overlap_clause(exclude_reservation_id: int = None) -> str:
    """SQL predicate for blocking reservations overlapping an interval."""
    placeholders = ','.join('?' * len(BLOCKING_STATUSES))
    clause = f'''
        space_id = ?
        AND status IN ({placeholders})
        AND check_out_time IS NULL
        AND start_time < ?
        AND end_time > ?
    '''
    if exclude_reservation_id is not None:
        clause += ' AND id != ?'
    return clause


def get_conflicting_reservations(
    space_id: int,
    start_time,
    end_time,
    exclude_reservation_id: int = None,
    cursor=None
) -> list:
    """
    List blocking reservations of a space that overlap [start_time, end_time).

    Args:
        space_id: Space ID
        start_time: Interval start (datetime or ISO string)
        end_time: Interval end (datetime or ISO string)
        exclude_reservation_id: Reservation to ignore (update in place)
        cursor: Optional cursor of an open transaction

    Returns:
        List of reservation dicts ordered by start time
    """
    cur = cursor or get_db().cursor()

    params = [space_id, *BLOCKING_STATUSES, format_timestamp(end_time), format_timestamp(start_time)]
    if exclude_reservation_id is not None:
        params.append(exclude_reservation_id)

    cur.execute(f'''
        SELECT id, member_id, start_time, end_time, status
        FROM reservations
        WHERE {_overlap_clause(exclude_reservation_id)}
        ORDER BY start_time
    ''', params)
    return [dict(row) for row in cur.fetchall()]


def is_space_available(
    space_id: int,
    start_time,
    end_time,
    exclude_reservation_id: int = None,
    cursor=None
) -> bool:
    """
    Check whether a space can be booked for [start_time, end_time).

    Args:
        space_id: Space ID
        start_time: Interval start
        end_time: Interval end
        exclude_reservation_id: Reservation to ignore (update in place)
        cursor: Optional cursor of an open transaction

    Returns:
        bool: True if bookable and free

    Raises:
        InvalidInterval: If end_time <= start_time
        EntityNotFound: If the space does not exist
    """
    start_time, end_time = validate_interval(start_time, end_time)
    space = get_space_by_id(space_id, cursor=cursor)
    if not space:
        raise EntityNotFound('space', space_id)

    if not is_space_bookable(space):
        return False

    conflicts = get_conflicting_reservations(
        space_id, start_time, end_time,
        exclude_reservation_id=exclude_reservation_id,
        cursor=cursor
    )
    return not conflicts


def get_available_spaces(
    start_time,
    end_time,
    space_type: str = None,
    min_capacity: int = None
) -> list:
    """
    Get spaces bookable for an interval.

    Args:
        start_time: Interval start
        end_time: Interval end
        space_type: Filter by space type (optional)
        min_capacity: Minimum capacity (optional)

    Returns:
        List of space dicts ordered by name

    Raises:
        InvalidInterval: If end_time <= start_time
    """
    start_time, end_time = validate_interval(start_time, end_time)

    db = get_db()
    cursor = db.cursor()

    placeholders = ','.join('?' * len(BLOCKING_STATUSES))
    query = f'''
        SELECT s.*
        FROM spaces s
        WHERE s.is_available = 1
          AND s.maintenance_status = 'operational'
          AND NOT EXISTS (
              SELECT 1 FROM reservations r
              WHERE r.space_id = s.id
                AND r.status IN ({placeholders})
                AND r.check_out_time IS NULL
                AND r.start_time < ?
                AND r.end_time > ?
          )
    '''
    params = [*BLOCKING_STATUSES, format_timestamp(end_time), format_timestamp(start_time)]

    if space_type:
        query += ' AND s.space_type = ?'
        params.append(space_type)

    if min_capacity:
        query += ' AND s.capacity >= ?'
        params.append(min_capacity)

    query += ' ORDER BY s.name'

    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]
