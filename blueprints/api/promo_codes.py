"""
Promo code API routes: registry, validation preview and deactivation.
"""

from flask import request

from models.errors import EntityNotFound
from models.promo_code import (
    create_promo_code,
    deactivate_promo_code,
    get_all_promo_codes,
    get_promo_code,
    get_promo_usages,
    validate_promo_code,
)
from utils.api_response import api_success
from utils.messages import get_message
from utils.validators import parse_int, require_fields
from blueprints.api.common import current_actor, json_body


def register_routes(bp):
    """Register promo code API routes on the blueprint."""

    @bp.route('/promo-codes')
    def promo_code_list():
        """List promo codes. Query: active=1."""
        codes = get_all_promo_codes(active_only=request.args.get('active') in ('1', 'true'))
        return api_success(data=codes, count=len(codes))

    @bp.route('/promo-codes', methods=['POST'])
    def promo_code_create():
        """
        Register a promo code.

        Request JSON:
        {
            "code": "RENTREE",
            "amount": 1500,                        (minor units)
            "valid_from": "2026-09-01T00:00:00",   (optional)
            "valid_until": "2026-09-30T23:59:59",  (optional)
            "max_uses": 100,                       (optional)
            "min_amount": 50000,                   (optional)
            "description": "..."                   (optional)
        }
        """
        data = json_body()
        require_fields(data, ('code', 'amount'))
        create_promo_code(
            data['code'],
            parse_int(data, 'amount'),
            valid_from=data.get('valid_from'),
            valid_until=data.get('valid_until'),
            max_uses=parse_int(data, 'max_uses'),
            min_amount=parse_int(data, 'min_amount', default=0, minimum=0),
            description=data.get('description'),
            changed_by=current_actor(),
        )
        return api_success(
            data=get_promo_code(data['code']),
            message=get_message('promo_code_created'),
            status=201,
        )

    @bp.route('/promo-codes/validate', methods=['POST'])
    def promo_code_validate():
        """
        Check a code for a prospective booking without using it.

        Request JSON: code, amount (minor units), member_id (optional)
        """
        data = json_body()
        require_fields(data, ('code',))
        result = validate_promo_code(
            data['code'],
            member_id=parse_int(data, 'member_id'),
            amount=parse_int(data, 'amount', default=0, minimum=0),
        )
        return api_success(data=result, message=get_message('promo_code_valid'))

    @bp.route('/promo-codes/<code>')
    def promo_code_detail(code):
        """Get a promo code with its usages."""
        promo = get_promo_code(code)
        if not promo:
            raise EntityNotFound('promo_code', code)
        promo['usages'] = get_promo_usages(code)
        return api_success(data=promo)

    @bp.route('/promo-codes/<code>/deactivate', methods=['POST'])
    def promo_code_deactivate(code):
        """Switch a code off."""
        promo = deactivate_promo_code(code, changed_by=current_actor())
        return api_success(data=promo, message=get_message('promo_code_deactivated'))
