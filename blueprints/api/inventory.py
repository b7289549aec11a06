"""
Inventory API routes: stock adjustments and low-stock report.
"""

from models.errors import EntityNotFound
from models.inventory import (
    adjust_quantity,
    get_adjustment_history,
    get_inventory_item_by_id,
    get_low_stock_items,
)
from utils.api_response import api_success
from utils.messages import get_message
from utils.validators import parse_int, require_fields
from blueprints.api.common import current_actor, json_body


def register_routes(bp):
    """Register inventory API routes on the blueprint."""

    @bp.route('/inventory/low-stock')
    def inventory_low_stock():
        """Items at or below their minimum quantity."""
        items = get_low_stock_items()
        return api_success(data=items, count=len(items))

    @bp.route('/inventory/<int:item_id>')
    def inventory_detail(item_id):
        """Get a stock item with its adjustment history."""
        item = get_inventory_item_by_id(item_id)
        if not item:
            raise EntityNotFound('inventory_item', item_id)
        item['adjustments'] = get_adjustment_history(item_id)
        return api_success(data=item)

    @bp.route('/inventory/<int:item_id>/adjust', methods=['POST'])
    def inventory_adjust(item_id):
        """Apply a signed stock change. JSON: delta, reason."""
        data = json_body()
        require_fields(data, ('delta', 'reason'))
        item = adjust_quantity(
            item_id,
            parse_int(data, 'delta'),
            data['reason'],
            adjusted_by=current_actor(),
        )
        return api_success(data=item, message=get_message('stock_adjusted'))
