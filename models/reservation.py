"""
Reservation data access functions.

This module re-exports the functions of the split modules:
- reservation_state.py: Lifecycle transitions, direct setters, history
- reservation_crud.py: Create, reschedule and read
- reservation_queries.py: Listing by space/member and counts
- reservation_availability.py: Overlap detection and free spaces
"""

# =============================================================================
# RE-EXPORTS
# =============================================================================

# State management
from .reservation_state import (
    # Constants
    RESERVATION_STATUSES,
    PAYMENT_STATUSES,
    VALID_TRANSITIONS,
    # Validation
    get_valid_transitions,
    validate_state_transition,
    # Transitions
    confirm_reservation,
    check_in_reservation,
    check_out_reservation,
    complete_reservation,
    cancel_reservation,
    # Direct setters
    update_status,
    update_payment_status,
    # Read
    get_reservation,
    get_status_history,
)

# CRUD operations
from .reservation_crud import (
    create_reservation,
    request_reservation,
    reschedule_reservation,
    get_reservation_by_id,
)

# Queries
from .reservation_queries import (
    get_reservations_by_space,
    get_reservations_by_member,
    get_reservation_stats,
)

# Availability
from .reservation_availability import (
    BLOCKING_STATUSES,
    get_conflicting_reservations,
    is_space_available,
    get_available_spaces,
)


__all__ = [
    'RESERVATION_STATUSES',
    'PAYMENT_STATUSES',
    'VALID_TRANSITIONS',
    'get_valid_transitions',
    'validate_state_transition',
    'confirm_reservation',
    'check_in_reservation',
    'check_out_reservation',
    'complete_reservation',
    'cancel_reservation',
    'update_status',
    'update_payment_status',
    'get_reservation',
    'get_status_history',
    'create_reservation',
    'request_reservation',
    'reschedule_reservation',
    'get_reservation_by_id',
    'get_reservations_by_space',
    'get_reservations_by_member',
    'get_reservation_stats',
    'BLOCKING_STATUSES',
    'get_conflicting_reservations',
    'is_space_available',
    'get_available_spaces',
]
