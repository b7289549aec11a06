"""
Member and audit API routes.
"""

from flask import request

from models.audit_log import get_audit_logs
from models.errors import EntityNotFound
from models.member import create_member, get_all_members, get_member_by_id
from utils.api_response import api_success
from utils.messages import get_message
from utils.validators import parse_int, require_fields
from blueprints.api.common import json_body


def register_routes(bp):
    """Register member and audit API routes on the blueprint."""

    @bp.route('/members')
    def member_list():
        """List members. Query: status."""
        members = get_all_members(status=request.args.get('status'))
        return api_success(data=members, count=len(members))

    @bp.route('/members', methods=['POST'])
    def member_create():
        """
        Register a member.

        Request JSON:
        {
            "first_name": "Amina",
            "last_name": "Benali",         (optional)
            "email": "amina@example.com",  (optional)
            "phone": "0551234567",         (optional)
            "company": "..."               (optional)
        }
        """
        data = json_body()
        require_fields(data, ('first_name',))
        member_id = create_member(
            data['first_name'],
            data.get('last_name'),
            email=data.get('email'),
            phone=data.get('phone'),
            company=data.get('company'),
            billing_address=data.get('billing_address'),
        )
        return api_success(data=get_member_by_id(member_id), message=get_message('member_created'), status=201)

    @bp.route('/members/<int:member_id>')
    def member_detail(member_id):
        """Get a member."""
        member = get_member_by_id(member_id)
        if not member:
            raise EntityNotFound('member', member_id)
        return api_success(data=member)

    @bp.route('/audit')
    def audit_list():
        """
        Audit trail, newest first.

        Query params: action, entity_type, entity_id, changed_by, limit, offset
        """
        logs = get_audit_logs(
            action=request.args.get('action'),
            entity_type=request.args.get('entity_type'),
            entity_id=parse_int(request.args, 'entity_id'),
            changed_by=request.args.get('changed_by'),
            limit=parse_int(request.args, 'limit', default=100, minimum=1),
            offset=parse_int(request.args, 'offset', default=0, minimum=0),
        )
        return api_success(data=logs, count=len(logs))
