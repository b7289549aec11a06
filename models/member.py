"""
Member directory.
Create, read and status updates for coworking members.
"""

import logging

from database import get_db
from models.errors import EntityNotFound, ValidationError
from utils.validators import sanitize_input, validate_email, validate_phone

logger = logging.getLogger(__name__)

MEMBER_STATUSES = ('active', 'inactive', 'suspended')


# =============================================================================
# READ OPERATIONS
# =============================================================================

def get_member_by_id(member_id: int) -> dict:
    """
    Get member by ID.

    Args:
        member_id: Member ID

    Returns:
        Member dict or None if not found
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM members WHERE id = ?', (member_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_all_members(status: str = None) -> list:
    """
    Get all members, optionally filtered by status.

    Args:
        status: 'active', 'inactive' or 'suspended' (None for all)

    Returns:
        List of member dicts
    """
    db = get_db()
    cursor = db.cursor()

    query = 'SELECT * FROM members WHERE 1=1'
    params = []

    if status:
        query += ' AND status = ?'
        params.append(status)

    query += ' ORDER BY last_name, first_name'

    cursor.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


# =============================================================================
# CREATE / UPDATE
# =============================================================================

def create_member(first_name: str, last_name: str = None, **kwargs) -> int:
    """
    Create a new member.

    Args:
        first_name: First name (required)
        last_name: Last name
        **kwargs: email, phone, company, billing_address, status

    Returns:
        int: New member ID

    Raises:
        ValidationError: If first name is blank or status unknown
    """
    if not first_name or not first_name.strip():
        raise ValidationError(field='first_name')

    status = kwargs.get('status', 'active')
    if status not in MEMBER_STATUSES:
        raise ValidationError(field='status', value=status)

    if kwargs.get('email') and not validate_email(kwargs['email']):
        raise ValidationError(field='email', value=kwargs['email'])

    if kwargs.get('phone') and not validate_phone(kwargs['phone']):
        raise ValidationError(field='phone', value=kwargs['phone'])

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        INSERT INTO members (first_name, last_name, email, phone, company,
                             billing_address, status)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    ''', (
        first_name.strip(),
        last_name,
        kwargs.get('email'),
        kwargs.get('phone'),
        sanitize_input(kwargs.get('company'), 150) or None,
        sanitize_input(kwargs.get('billing_address'), 500) or None,
        status,
    ))
    db.commit()
    return cursor.lastrowid


def update_member_status(member_id: int, status: str) -> bool:
    """
    Change a member's status (active/inactive/suspended).

    Raises:
        ValidationError: Unknown status
        EntityNotFound: Member does not exist
    """
    if status not in MEMBER_STATUSES:
        raise ValidationError(field='status', value=status)

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        UPDATE members SET status = ?, updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    ''', (status, member_id))
    if cursor.rowcount == 0:
        db.rollback()
        raise EntityNotFound('member', member_id)
    db.commit()
    logger.info(f"[Member] Member {member_id} status set to {status}")
    return True
