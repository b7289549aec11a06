"""
Audit Log model and data access functions.
Handles audit log creation, retrieval, filtering, and retention cleanup.
"""

import json
from datetime import timedelta
from database import get_db
from utils.datetime_helpers import get_now, TIMESTAMP_FORMAT


# =============================================================================
# READ OPERATIONS
# =============================================================================

def get_audit_logs(
    action: str = None,
    entity_type: str = None,
    entity_id: int = None,
    changed_by: str = None,
    limit: int = 100,
    offset: int = 0
) -> list:
    """
    Get audit logs with optional filtering.

    Args:
        action: Filter by action type (CREATE, UPDATE, CANCEL, etc.)
        entity_type: Filter by entity type (reservation, invoice, etc.)
        entity_id: Filter by specific entity ID
        changed_by: Filter by actor
        limit: Maximum number of records to return (default 100)
        offset: Number of records to skip for pagination

    Returns:
        List of audit log dicts, newest first, with 'changes' decoded
    """
    db = get_db()
    cursor = db.cursor()

    query = 'SELECT * FROM audit_log WHERE 1=1'
    params = []

    if action:
        query += ' AND action = ?'
        params.append(action)

    if entity_type:
        query += ' AND entity_type = ?'
        params.append(entity_type)

    if entity_id is not None:
        query += ' AND entity_id = ?'
        params.append(entity_id)

    if changed_by:
        query += ' AND changed_by = ?'
        params.append(changed_by)

    query += ' ORDER BY id DESC LIMIT ? OFFSET ?'
    params.extend([limit, offset])

    cursor.execute(query, params)
    logs = []
    for row in cursor.fetchall():
        entry = dict(row)
        if entry.get('changes'):
            entry['changes'] = json.loads(entry['changes'])
        logs.append(entry)
    return logs


def get_audit_logs_for_entity(entity_type: str, entity_id: int, limit: int = 50) -> list:
    """Get audit history for a specific entity, newest first."""
    return get_audit_logs(entity_type=entity_type, entity_id=entity_id, limit=limit)


# =============================================================================
# CREATE OPERATIONS
# =============================================================================

def create_audit_log(
    action: str,
    entity_type: str,
    entity_id: int = None,
    changed_by: str = None,
    changes: dict = None,
    ip_address: str = None,
    user_agent: str = None
) -> int:
    """
    Create a new audit log entry.

    Args:
        action: Action type (CREATE, UPDATE, CANCEL, PAYMENT, REFUND, etc.)
        entity_type: Entity type (reservation, invoice, payment, etc.)
        entity_id: ID of the affected entity
        changed_by: Actor name (None for system actions)
        changes: Dictionary with before/after state
        ip_address: Client IP address
        user_agent: Client user agent string

    Returns:
        New audit log ID
    """
    changes_json = None
    if changes is not None:
        changes_json = json.dumps(changes, default=str, ensure_ascii=False)

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        INSERT INTO audit_log
        (action, entity_type, entity_id, changed_by, changes, ip_address, user_agent, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    ''', (action, entity_type, entity_id, changed_by, changes_json, ip_address, user_agent,
          get_now().strftime(TIMESTAMP_FORMAT)))
    db.commit()
    return cursor.lastrowid


# =============================================================================
# CLEANUP OPERATIONS
# =============================================================================

def cleanup_old_logs(days: int = 90) -> int:
    """
    Delete audit logs older than specified number of days.

    Args:
        days: Number of days to retain logs (default 90)

    Returns:
        Number of deleted records
    """
    db = get_db()
    cursor = db.cursor()

    cutoff_str = (get_now() - timedelta(days=days)).strftime(TIMESTAMP_FORMAT)
    cursor.execute('DELETE FROM audit_log WHERE created_at < ?', (cutoff_str,))

    deleted_count = cursor.rowcount
    db.commit()
    return deleted_count
