"""
Maintenance API routes: request creation, assignment and completion.
"""

from models.errors import EntityNotFound
from models.maintenance import (
    create_maintenance_request,
    assign_maintenance_request,
    complete_maintenance_request,
    cancel_maintenance_request,
    get_maintenance_request_by_id,
)
from utils.api_response import api_success
from utils.messages import get_message
from utils.validators import parse_int, require_fields
from blueprints.api.common import current_actor, json_body


def register_routes(bp):
    """Register maintenance API routes on the blueprint."""

    @bp.route('/maintenance', methods=['POST'])
    def maintenance_create():
        """
        Open a maintenance request.

        Request JSON:
        {
            "space_id": 5,
            "title": "Vidéoprojecteur en panne",
            "priority": "high",              (optional, default medium)
            "description": "...",            (optional)
            "scheduled_date": "2026-10-21",  (optional)
            "estimated_cost": 1500000        (optional, minor units)
        }
        """
        data = json_body()
        require_fields(data, ('space_id', 'title'))
        request_row = create_maintenance_request(
            parse_int(data, 'space_id'),
            data['title'],
            priority=data.get('priority') or 'medium',
            description=data.get('description'),
            scheduled_date=data.get('scheduled_date'),
            estimated_cost=parse_int(data, 'estimated_cost'),
            reported_by=current_actor(),
        )
        return api_success(data=request_row, message=get_message('maintenance_created'), status=201)

    @bp.route('/maintenance/<int:request_id>')
    def maintenance_detail(request_id):
        """Get a maintenance request."""
        request_row = get_maintenance_request_by_id(request_id)
        if not request_row:
            raise EntityNotFound('maintenance_request', request_id)
        return api_success(data=request_row)

    @bp.route('/maintenance/<int:request_id>/assign', methods=['POST'])
    def maintenance_assign(request_id):
        """Assign a pending request. JSON: assigned_to."""
        data = json_body()
        require_fields(data, ('assigned_to',))
        request_row = assign_maintenance_request(
            request_id, data['assigned_to'], changed_by=current_actor()
        )
        return api_success(data=request_row, message=get_message('maintenance_assigned'))

    @bp.route('/maintenance/<int:request_id>/complete', methods=['POST'])
    def maintenance_complete(request_id):
        """Complete an in-progress request. JSON: actual_cost (optional)."""
        data = json_body()
        request_row = complete_maintenance_request(
            request_id,
            actual_cost=parse_int(data, 'actual_cost'),
            changed_by=current_actor(),
        )
        return api_success(data=request_row, message=get_message('maintenance_completed'))

    @bp.route('/maintenance/<int:request_id>/cancel', methods=['POST'])
    def maintenance_cancel(request_id):
        """Cancel an open request."""
        request_row = cancel_maintenance_request(request_id, changed_by=current_actor())
        return api_success(data=request_row, message=get_message('maintenance_cancelled'))
