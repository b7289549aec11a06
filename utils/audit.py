"""
Audit logging utility.
Records who changed what on reservations, invoices, payments and stock.
"""

import logging
from flask import request, has_request_context

# Configure logger for audit operations
logger = logging.getLogger(__name__)


def _request_origin() -> tuple:
    """Client IP and user agent of the current request, or (None, None)."""
    if not has_request_context():
        return None, None

    # Get client IP, considering proxies
    ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
    if ip_address and ',' in ip_address:
        ip_address = ip_address.split(',')[0].strip()
    user_agent = request.headers.get('User-Agent', '')[:255]
    return ip_address, user_agent


def log_audit(
    action: str,
    entity_type: str,
    entity_id: int = None,
    before: dict = None,
    after: dict = None,
    changed_by: str = None
) -> int:
    """
    Log an audit entry.

    Runs after the business transaction has committed. A failure here is
    logged and never undoes or fails the main operation.

    Args:
        action: Action type (CREATE, UPDATE, CANCEL, PAYMENT, REFUND, ADJUST, etc.)
        entity_type: Entity type (reservation, invoice, payment, inventory_item, etc.)
        entity_id: ID of the affected entity
        before: Dictionary with entity state before the change
        after: Dictionary with entity state after the change
        changed_by: Actor name (None for system actions)

    Returns:
        New audit log ID, or None if logging failed

    Example:
        log_audit(
            action='CANCEL',
            entity_type='reservation',
            entity_id=123,
            before={'status': 'confirmed'},
            after={'status': 'cancelled'}
        )
    """
    try:
        from models.audit_log import create_audit_log

        ip_address, user_agent = _request_origin()

        changes = None
        if before is not None or after is not None:
            changes = {
                'before': before,
                'after': after
            }

        return create_audit_log(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            changed_by=changed_by,
            changes=changes,
            ip_address=ip_address,
            user_agent=user_agent
        )

    except Exception as e:
        # Audit logging should never fail the main operation
        logger.error(f"Failed to log audit entry: {e}", exc_info=True)
        return None
