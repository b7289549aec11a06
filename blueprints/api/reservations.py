"""
Reservation API routes: booking, lifecycle transitions, history and
billing status.
"""

from flask import request

from models.errors import EntityNotFound
from models.reservation import (
    create_reservation,
    request_reservation,
    reschedule_reservation,
    get_reservation_by_id,
    get_reservations_by_member,
    confirm_reservation,
    check_in_reservation,
    check_out_reservation,
    complete_reservation,
    cancel_reservation,
    update_status,
    update_payment_status,
    get_status_history,
    get_reservation_stats,
    get_valid_transitions,
)
from utils.api_response import api_success
from utils.messages import get_message
from utils.validators import parse_datetime, parse_int, require_fields
from blueprints.api.common import current_actor, json_body


def register_routes(bp):
    """Register reservation API routes on the blueprint."""

    # ============================================================================
    # CREATE / READ
    # ============================================================================

    @bp.route('/reservations', methods=['POST'])
    def reservation_create():
        """
        Book a space.

        Request JSON:
        {
            "member_id": 1,
            "space_id": 5,
            "start_time": "2026-11-02T09:00:00",
            "end_time": "2026-11-02T11:00:00",
            "participants": 2,           (optional, default 1)
            "promo_code": "COWORK20",    (optional)
            "notes": "...",              (optional)
            "pending": true              (optional: wait for admin confirmation)
        }
        """
        data = json_body()
        require_fields(data, ('member_id', 'space_id', 'start_time', 'end_time'))

        create = request_reservation if data.get('pending') else create_reservation
        reservation = create(
            member_id=parse_int(data, 'member_id'),
            space_id=parse_int(data, 'space_id'),
            start_time=parse_datetime(data['start_time'], 'start_time'),
            end_time=parse_datetime(data['end_time'], 'end_time'),
            notes=data.get('notes'),
            promo_code=data.get('promo_code'),
            participants=parse_int(data, 'participants', default=1, minimum=1),
            created_by=current_actor(),
        )
        message_key = 'reservation_requested' if data.get('pending') else 'reservation_created'
        return api_success(data=reservation, message=get_message(message_key), status=201)

    @bp.route('/reservations/stats')
    def reservation_stats():
        """Reservation counts by status and payment status. Query: space_id."""
        return api_success(data=get_reservation_stats(space_id=parse_int(request.args, 'space_id')))

    @bp.route('/reservations/<int:reservation_id>')
    def reservation_detail(reservation_id):
        """Get reservation details."""
        reservation = get_reservation_by_id(reservation_id)
        if not reservation:
            raise EntityNotFound('reservation', reservation_id)
        reservation['allowed_transitions'] = list(get_valid_transitions(reservation['status']))
        return api_success(data=reservation)

    @bp.route('/members/<int:member_id>/reservations')
    def member_reservations(member_id):
        """List a member's reservations, newest first."""
        reservations = get_reservations_by_member(member_id, status=request.args.get('status'))
        return api_success(data=reservations, count=len(reservations))

    @bp.route('/reservations/<int:reservation_id>/reschedule', methods=['POST'])
    def reservation_reschedule(reservation_id):
        """Move a reservation to a new interval. JSON: start_time, end_time."""
        data = json_body()
        require_fields(data, ('start_time', 'end_time'))
        reservation = reschedule_reservation(
            reservation_id,
            parse_datetime(data['start_time'], 'start_time'),
            parse_datetime(data['end_time'], 'end_time'),
            changed_by=current_actor(),
        )
        return api_success(data=reservation)

    @bp.route('/reservations/<int:reservation_id>/history')
    def reservation_history(reservation_id):
        """Get reservation state change history."""
        if not get_reservation_by_id(reservation_id):
            raise EntityNotFound('reservation', reservation_id)
        history = get_status_history(reservation_id)
        return api_success(data=[{
            'status_type': h.get('status_type'),
            'action': h.get('action'),
            'changed_by': h.get('changed_by'),
            'notes': h.get('notes'),
            'created_at': h.get('created_at')
        } for h in history])

    # ============================================================================
    # LIFECYCLE
    # ============================================================================

    @bp.route('/reservations/<int:reservation_id>/confirm', methods=['POST'])
    def reservation_confirm(reservation_id):
        """Confirm a pending reservation."""
        reservation = confirm_reservation(reservation_id, changed_by=current_actor())
        return api_success(data=reservation, message=get_message('reservation_confirmed'))

    @bp.route('/reservations/<int:reservation_id>/check-in', methods=['POST'])
    def reservation_check_in(reservation_id):
        """Record the member's arrival."""
        reservation = check_in_reservation(reservation_id, changed_by=current_actor())
        return api_success(data=reservation, message=get_message('reservation_checked_in'))

    @bp.route('/reservations/<int:reservation_id>/check-out', methods=['POST'])
    def reservation_check_out(reservation_id):
        """Record the member's departure."""
        reservation = check_out_reservation(reservation_id, changed_by=current_actor())
        return api_success(data=reservation, message=get_message('reservation_checked_out'))

    @bp.route('/reservations/<int:reservation_id>/complete', methods=['POST'])
    def reservation_complete(reservation_id):
        """Close a checked-out reservation."""
        reservation = complete_reservation(reservation_id, changed_by=current_actor())
        return api_success(data=reservation, message=get_message('reservation_completed'))

    @bp.route('/reservations/<int:reservation_id>/cancel', methods=['POST'])
    def reservation_cancel(reservation_id):
        """Cancel a reservation. JSON: reason (optional)."""
        data = json_body()
        reservation = cancel_reservation(
            reservation_id,
            reason=(data.get('reason') or '').strip(),
            changed_by=current_actor(),
        )
        return api_success(data=reservation, message=get_message('reservation_cancelled'))

    # ============================================================================
    # DIRECT STATUS SETTERS
    # ============================================================================

    @bp.route('/reservations/<int:reservation_id>/status', methods=['POST'])
    def reservation_set_status(reservation_id):
        """Set the status directly. JSON: status."""
        data = json_body()
        require_fields(data, ('status',))
        reservation = update_status(reservation_id, data['status'], changed_by=current_actor())
        return api_success(data=reservation)

    @bp.route('/reservations/<int:reservation_id>/payment-status', methods=['POST'])
    def reservation_set_payment_status(reservation_id):
        """Set the payment status directly. JSON: payment_status."""
        data = json_body()
        require_fields(data, ('payment_status',))
        update_payment_status(reservation_id, data['payment_status'], changed_by=current_actor())
        return api_success(data=get_reservation_by_id(reservation_id))
