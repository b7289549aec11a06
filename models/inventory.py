"""
Inventory stock controller.
Consumable stock levels with a non-negative quantity and an append-only
adjustment log.
"""

import logging

from database import get_db, immediate_transaction, retry_on_lock
from models.errors import EntityNotFound, NegativeStock, ValidationError
from utils.audit import log_audit
from utils.messages import get_message

logger = logging.getLogger(__name__)

STOCK_STATUSES = ('in_stock', 'low_stock', 'out_of_stock')


def stock_status(quantity: int, min_quantity: int) -> str:
    """
    Derive the stock status from a quantity.

    quantity == 0 -> out_of_stock
    0 < quantity <= min_quantity -> low_stock
    otherwise -> in_stock
    """
    if quantity == 0:
        return 'out_of_stock'
    if quantity <= min_quantity:
        return 'low_stock'
    return 'in_stock'


# =============================================================================
# CREATE / READ
# =============================================================================

def create_inventory_item(
    name: str,
    quantity: int = 0,
    min_quantity: int = 0,
    category: str = None,
    unit: str = 'unit',
    purchase_price: int = 0,
    location: str = None
) -> int:
    """
    Create a stock item.

    Returns:
        int: New item ID

    Raises:
        ValidationError: Blank name or negative quantities/price
    """
    if not name or not name.strip():
        raise ValidationError(get_message('field_required', field='name'), field='name')
    for field, value in (('quantity', quantity), ('min_quantity', min_quantity),
                         ('purchase_price', purchase_price)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(field=field, value=value)

    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        INSERT INTO inventory_items (name, category, quantity, min_quantity, unit,
                                     purchase_price, status, location)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    ''', (name.strip(), category, quantity, min_quantity, unit, purchase_price,
          stock_status(quantity, min_quantity), location))
    db.commit()
    return cursor.lastrowid


def get_inventory_item_by_id(item_id: int) -> dict:
    """Get stock item by ID, or None."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('SELECT * FROM inventory_items WHERE id = ?', (item_id,))
    row = cursor.fetchone()
    return dict(row) if row else None


def get_low_stock_items() -> list:
    """
    Items at or below their minimum quantity, out-of-stock ones included.

    Returns:
        List of item dicts, emptiest first
    """
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM inventory_items
        WHERE quantity <= min_quantity
        ORDER BY quantity, name
    ''')
    return [dict(row) for row in cursor.fetchall()]


def get_adjustment_history(item_id: int) -> list:
    """Adjustments of an item, oldest first."""
    db = get_db()
    cursor = db.cursor()
    cursor.execute('''
        SELECT * FROM inventory_adjustments
        WHERE item_id = ?
        ORDER BY id
    ''', (item_id,))
    return [dict(row) for row in cursor.fetchall()]


# =============================================================================
# ADJUST
# =============================================================================

@retry_on_lock
def adjust_quantity(item_id: int, delta: int, reason: str, adjusted_by: str = None) -> dict:
    """
    Add delta to an item's quantity and recompute its status.

    The read and the write happen in one BEGIN IMMEDIATE transaction, so
    concurrent adjustments serialize and the quantity never goes negative.

    Args:
        item_id: Stock item
        delta: Signed change (non-zero)
        reason: Why the stock changed (required)
        adjusted_by: Actor name

    Returns:
        dict: The updated item

    Raises:
        ValidationError: Zero or non-integer delta, blank reason
        EntityNotFound: Unknown item
        NegativeStock: Resulting quantity would be below zero
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError(field='delta', value=delta)
    if delta == 0:
        raise ValidationError(get_message('zero_adjustment'), field='delta', value=delta)
    if not reason or not reason.strip():
        raise ValidationError(get_message('reason_required'), field='reason')

    with immediate_transaction() as cursor:
        cursor.execute('SELECT * FROM inventory_items WHERE id = ?', (item_id,))
        row = cursor.fetchone()
        if not row:
            raise EntityNotFound('inventory_item', item_id)
        item = dict(row)

        new_quantity = item['quantity'] + delta
        if new_quantity < 0:
            logger.warning(
                f"[Inventory] Adjustment {delta} rejected on item {item_id}: "
                f"only {item['quantity']} in stock"
            )
            raise NegativeStock(item_id=item_id, quantity=item['quantity'], delta=delta)

        new_status = stock_status(new_quantity, item['min_quantity'])
        cursor.execute('''
            UPDATE inventory_items
            SET quantity = ?, status = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (new_quantity, new_status, item_id))

        cursor.execute('''
            INSERT INTO inventory_adjustments
            (item_id, delta, quantity_before, quantity_after, reason, adjusted_by)
            VALUES (?, ?, ?, ?, ?, ?)
        ''', (item_id, delta, item['quantity'], new_quantity, reason.strip(), adjusted_by))

    logger.info(
        f"[Inventory] {item['name']}: {item['quantity']} -> {new_quantity} ({reason.strip()})"
    )
    log_audit(
        action='ADJUST',
        entity_type='inventory_item',
        entity_id=item_id,
        before={'quantity': item['quantity'], 'status': item['status']},
        after={'quantity': new_quantity, 'status': new_status, 'reason': reason.strip()},
        changed_by=adjusted_by,
    )
    return get_inventory_item_by_id(item_id)
