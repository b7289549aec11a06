"""
Space API routes: directory, availability search, price quotes and
per-space schedules.
"""

from flask import current_app, request

from models.errors import EntityNotFound
from models.maintenance import get_open_requests_for_space
from models.pricing import quote_price
from models.promo_code import find_active_promo_code, promo_table
from models.reservation import get_available_spaces, get_reservations_by_space
from models.space import get_all_spaces, get_space_by_id
from utils.api_response import api_success
from utils.validators import parse_datetime, parse_int, require_fields
from blueprints.api.common import json_body


def register_routes(bp):
    """Register space and pricing API routes on the blueprint."""

    @bp.route('/spaces')
    def list_spaces():
        """List spaces. Query: type, bookable=1."""
        spaces = get_all_spaces(
            space_type=request.args.get('type'),
            bookable_only=request.args.get('bookable') in ('1', 'true'),
        )
        return api_success(data=spaces, count=len(spaces))

    @bp.route('/spaces/available')
    def available_spaces():
        """
        Spaces bookable for an interval.

        Query params:
            start, end: ISO-8601 date-times (required)
            type: space type (optional)
            min_capacity: minimum capacity (optional)
        """
        start = parse_datetime(request.args.get('start'), 'start')
        end = parse_datetime(request.args.get('end'), 'end')
        spaces = get_available_spaces(
            start, end,
            space_type=request.args.get('type'),
            min_capacity=parse_int(request.args, 'min_capacity', minimum=1),
        )
        return api_success(data=spaces, count=len(spaces))

    @bp.route('/spaces/<int:space_id>')
    def space_detail(space_id):
        """Get a space with its open maintenance requests."""
        space = get_space_by_id(space_id)
        if not space:
            raise EntityNotFound('space', space_id)
        space['open_maintenance_requests'] = get_open_requests_for_space(space_id)
        return api_success(data=space)

    @bp.route('/spaces/<int:space_id>/reservations')
    def space_reservations(space_id):
        """
        Reservations of a space overlapping an optional range.

        Query params:
            start, end: ISO-8601 date-times (optional)
            include_cancelled: 1 to include cancelled reservations
        """
        if not get_space_by_id(space_id):
            raise EntityNotFound('space', space_id)

        start = request.args.get('start')
        end = request.args.get('end')
        reservations = get_reservations_by_space(
            space_id,
            start_time=parse_datetime(start, 'start') if start else None,
            end_time=parse_datetime(end, 'end') if end else None,
            include_cancelled=request.args.get('include_cancelled') in ('1', 'true'),
        )
        return api_success(data=reservations, count=len(reservations))

    @bp.route('/pricing/quote', methods=['POST'])
    def pricing_quote():
        """
        Price a prospective booking without reserving anything.

        Request JSON:
        {
            "space_id": 1,
            "start_time": "2026-11-02T09:00:00",
            "end_time": "2026-11-02T11:00:00",
            "promo_code": "BIENVENUE10"    (optional)
        }

        Response data: hours, tier, base_amount, duration_discount,
        promo_discount, discount, rounding, total (minor units).
        The promo code's per-member rules are checked only at booking time.
        """
        data = json_body()
        require_fields(data, ('space_id', 'start_time', 'end_time'))

        space_id = parse_int(data, 'space_id')
        space = get_space_by_id(space_id)
        if not space:
            raise EntityNotFound('space', space_id)

        promo = find_active_promo_code(data.get('promo_code'))
        quote = quote_price(
            space,
            parse_datetime(data['start_time'], 'start_time'),
            parse_datetime(data['end_time'], 'end_time'),
            promo_code=promo['code'] if promo else None,
            promo_codes=promo_table(promo),
            duration_discounts=current_app.config.get('DURATION_DISCOUNTS'),
        )
        quote['hours'] = str(quote['hours'])
        quote['space_id'] = space_id
        quote['currency'] = current_app.config.get('CURRENCY', 'DZD')
        return api_success(data=quote)
