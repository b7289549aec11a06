"""
Maintenance request tracker.

    pending -> in_progress -> completed
    pending | in_progress -> cancelled

Requests do not block bookings by themselves. A space stops being
bookable only when its maintenance_status is changed through
models.space.update_space_maintenance_status().
"""

import logging

from database import get_db, immediate_transaction, retry_on_lock
from models.errors import AlreadyAssigned, EntityNotFound, InvalidTransition, ValidationError
from utils.audit import log_audit
from utils.datetime_helpers import now_timestamp, to_date
from utils.messages import get_message

logger = logging.getLogger(__name__)

PRIORITIES = ('low', 'medium', 'high', 'critical')
REQUEST_STATUSES = ('pending', 'in_progress', 'completed', 'cancelled')
OPEN_STATUSES = ('pending', 'in_progress')


def _load_request(cursor, request_id: int) -> dict:
    cursor.execute('SELECT * FROM maintenance_requests WHERE id = ?', (request_id,))
    row = cursor.fetchone()
    if not row:
        raise EntityNotFound('maintenance_request', request_id)
    return dict(row)


def _validate_cost(field: str, value) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(field=field, value=value)


# =============================================================================
# CREATE / READ
# =============================================================================

def create_maintenance_request(
    space_id: int,
    title: str,
    priority: str = 'medium',
    description: str = None,
    scheduled_date=None,
    estimated_cost: int = None,
    reported_by: str = None
) -> dict:
    """
    Open a maintenance request on a space (status pending).

    Args:
        space_id: Space concerned
        title: Short summary (required)
        priority: low, medium, high or critical
        description: Details
        scheduled_date: Planned intervention date (optional)
        estimated_cost: Minor units (optional)
        reported_by: Actor name

    Returns:
        dict: The created request

    Raises:
        ValidationError: Blank title, unknown priority or negative cost
        EntityNotFound: Unknown space
    """
    if not title or not title.strip():
        raise ValidationError(get_message('field_required', field='title'), field='title')
    if priority not in PRIORITIES:
        raise ValidationError(field='priority', value=priority)
    _validate_cost('estimated_cost', estimated_cost)

    db = get_db()
    cursor = db.cursor()

    cursor.execute('SELECT id FROM spaces WHERE id = ?', (space_id,))
    if not cursor.fetchone():
        raise EntityNotFound('space', space_id)

    cursor.execute('''
        INSERT INTO maintenance_requests (
            space_id, title, description, priority, status,
            request_date, scheduled_date, estimated_cost, reported_by
        ) VALUES (?, ?, ?, ?, 'pending', ?, ?, ?, ?)
    ''', (
        space_id, title.strip(), description, priority, now_timestamp(),
        to_date(scheduled_date).isoformat() if scheduled_date else None,
        estimated_cost, reported_by
    ))
    request_id = cursor.lastrowid
    db.commit()

    logger.info(f"[Maintenance] Request {request_id} opened on space {space_id} ({priority}): {title.strip()}")
    return get_maintenance_request_by_id(request_id)


def get_maintenance_request_by_id(request_id: int) -> dict:
    """Get a maintenance request by ID, or None."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT mr.*, s.name as space_name
        FROM maintenance_requests mr
        JOIN spaces s ON mr.space_id = s.id
        WHERE mr.id = ?
    ''', (request_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_open_requests_for_space(space_id: int) -> list:
    """Pending and in-progress requests of a space, most urgent first."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM maintenance_requests
        WHERE space_id = ? AND status IN (?, ?)
        ORDER BY CASE priority
                    WHEN 'critical' THEN 0
                    WHEN 'high' THEN 1
                    WHEN 'medium' THEN 2
                    ELSE 3
                 END,
                 id
    ''', (space_id, *OPEN_STATUSES))
    return [dict(row) for row in cursor.fetchall()]


# =============================================================================
# LIFECYCLE
# =============================================================================

@retry_on_lock
def assign_maintenance_request(request_id: int, staff: str, changed_by: str = None) -> dict:
    """
    Assign a pending request to a staff member (pending -> in_progress).

    Raises:
        ValidationError: Blank staff name
        EntityNotFound: Unknown request
        AlreadyAssigned: Request is not pending
    """
    if not staff or not str(staff).strip():
        raise ValidationError(get_message('field_required', field='assigned_to'), field='assigned_to')

    with immediate_transaction() as cursor:
        request = _load_request(cursor, request_id)
        if request['status'] != 'pending':
            raise AlreadyAssigned(
                request_id=request_id,
                current=request['status'],
                assigned_to=request['assigned_to'],
            )
        cursor.execute('''
            UPDATE maintenance_requests
            SET status = 'in_progress', assigned_to = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (str(staff).strip(), request_id))

    logger.info(f"[Maintenance] Request {request_id} assigned to {staff}")
    log_audit(
        action='UPDATE', entity_type='maintenance_request', entity_id=request_id,
        before={'status': 'pending'},
        after={'status': 'in_progress', 'assigned_to': str(staff).strip()},
        changed_by=changed_by,
    )
    return get_maintenance_request_by_id(request_id)


@retry_on_lock
def complete_maintenance_request(request_id: int, actual_cost: int = None, changed_by: str = None) -> dict:
    """
    Close an in-progress request, stamping the completion date.

    Raises:
        ValidationError: Negative actual cost
        EntityNotFound: Unknown request
        InvalidTransition: Request is not in progress
    """
    _validate_cost('actual_cost', actual_cost)

    with immediate_transaction() as cursor:
        request = _load_request(cursor, request_id)
        if request['status'] != 'in_progress':
            raise InvalidTransition(
                request_id=request_id,
                current=request['status'],
                target='completed',
            )
        cursor.execute('''
            UPDATE maintenance_requests
            SET status = 'completed', completion_date = ?,
                actual_cost = COALESCE(?, actual_cost),
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (now_timestamp(), actual_cost, request_id))

    logger.info(f"[Maintenance] Request {request_id} completed")
    log_audit(
        action='UPDATE', entity_type='maintenance_request', entity_id=request_id,
        before={'status': 'in_progress'},
        after={'status': 'completed', 'actual_cost': actual_cost},
        changed_by=changed_by,
    )
    return get_maintenance_request_by_id(request_id)


@retry_on_lock
def cancel_maintenance_request(request_id: int, changed_by: str = None) -> dict:
    """
    Drop an open request (pending | in_progress -> cancelled).

    Raises:
        EntityNotFound: Unknown request
        InvalidTransition: Request already completed or cancelled
    """
    with immediate_transaction() as cursor:
        request = _load_request(cursor, request_id)
        if request['status'] not in OPEN_STATUSES:
            raise InvalidTransition(
                request_id=request_id,
                current=request['status'],
                target='cancelled',
            )
        cursor.execute('''
            UPDATE maintenance_requests
            SET status = 'cancelled', updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (request_id,))

    logger.info(f"[Maintenance] Request {request_id} cancelled")
    log_audit(
        action='CANCEL', entity_type='maintenance_request', entity_id=request_id,
        before={'status': request['status']}, after={'status': 'cancelled'},
        changed_by=changed_by,
    )
    return get_maintenance_request_by_id(request_id)
