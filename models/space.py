"""
Space directory.
Bookable spaces with their rates, capacity, availability flag and
maintenance status.
"""

import logging

from database import get_db
from models.errors import EntityNotFound, ValidationError

logger = logging.getLogger(__name__)

SPACE_TYPES = ('desk', 'meeting_room', 'office', 'event_space')
MAINTENANCE_STATUSES = ('operational', 'under_maintenance', 'out_of_order')


# =============================================================================
# READ OPERATIONS
# =============================================================================

def get_space_by_id(space_id: int, cursor=None) -> dict:
    """
    Get space by ID.

    Args:
        space_id: Space ID
        cursor: Optional cursor of an open transaction

    Returns:
        Space dict or None if not found
    """
    cur = cursor or get_db().cursor()
    cur.execute('SELECT * FROM spaces WHERE id = ?', (space_id,))
    row = cur.fetchone()
    return dict(row) if row else None


def get_all_spaces(space_type: str = None, bookable_only: bool = False) -> list:
    """
    Get all spaces.

    Args:
        space_type: Filter by type (optional)
        bookable_only: Only spaces flagged available and operational

    Returns:
        List of space dicts ordered by name
    """
    db = get_db()
    cursor = db.cursor()

    query = 'SELECT * FROM spaces WHERE 1=1'
    params = []

    if space_type:
        query += ' AND space_type = ?'
        params.append(space_type)

    if bookable_only:
        query += " AND is_available = 1 AND maintenance_status = 'operational'"

    query += ' ORDER BY name'

    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


def is_space_bookable(space: dict) -> bool:
    """A space can take bookings only when flagged available and operational."""
    return bool(space['is_available']) and space['maintenance_status'] == 'operational'


# =============================================================================
# CREATE / UPDATE
# =============================================================================

def create_space(name: str, space_type: str, capacity: int = 1, **kwargs) -> int:
    """
    Create a new space.

    Args:
        name: Display name
        space_type: desk, meeting_room, office or event_space
        capacity: Maximum number of people
        **kwargs: hourly_rate, daily_rate, monthly_rate (minor units),
            is_available, maintenance_status, description

    Returns:
        int: New space ID

    Raises:
        ValidationError: Invalid type, capacity or rates
    """
    if not name or not name.strip():
        raise ValidationError(field='name')
    if space_type not in SPACE_TYPES:
        raise ValidationError(field='space_type', value=space_type)
    if capacity < 1:
        raise ValidationError(field='capacity', value=capacity)

    rates = {}
    for field in ('hourly_rate', 'daily_rate', 'monthly_rate'):
        value = int(kwargs.get(field, 0))
        if value < 0:
            raise ValidationError(field=field, value=value)
        rates[field] = value

    maintenance_status = kwargs.get('maintenance_status', 'operational')
    if maintenance_status not in MAINTENANCE_STATUSES:
        raise ValidationError(field='maintenance_status', value=maintenance_status)

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        INSERT INTO spaces (name, space_type, capacity, hourly_rate, daily_rate,
                            monthly_rate, is_available, maintenance_status, description)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    ''', (
        name.strip(), space_type, capacity,
        rates['hourly_rate'], rates['daily_rate'], rates['monthly_rate'],
        1 if kwargs.get('is_available', True) else 0,
        maintenance_status,
        kwargs.get('description'),
    ))
    db.commit()
    return cursor.lastrowid


def update_space_maintenance_status(space_id: int, maintenance_status: str) -> bool:
    """
    Set a space's maintenance status.

    Anything other than 'operational' removes the space from availability.

    Raises:
        ValidationError: Unknown status
        EntityNotFound: Space does not exist
    """
    if maintenance_status not in MAINTENANCE_STATUSES:
        raise ValidationError(field='maintenance_status', value=maintenance_status)

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        UPDATE spaces SET maintenance_status = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (maintenance_status, space_id))
    if cursor.rowcount == 0:
        db.rollback()
        raise EntityNotFound('space', space_id)
    db.commit()
    logger.info(f"[Space] Space {space_id} maintenance status set to {maintenance_status}")
    return True


def set_space_availability(space_id: int, is_available: bool) -> bool:
    """Toggle the manual availability flag of a space."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        UPDATE spaces SET is_available = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (1 if is_available else 0, space_id))
    if cursor.rowcount == 0:
        db.rollback()
        raise EntityNotFound('space', space_id)
    db.commit()
    return True
