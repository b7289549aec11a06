"""
Tests for inventory stock adjustments.
"""

import threading

import pytest


@pytest.fixture
def toner(app):
    from models.inventory import create_inventory_item
    return create_inventory_item('Toner couleur', quantity=5, min_quantity=2, category='impression')


class TestStockStatus:

    @pytest.mark.parametrize('quantity,min_quantity,expected', [
        (0, 0, 'out_of_stock'),
        (0, 5, 'out_of_stock'),
        (1, 2, 'low_stock'),
        (2, 2, 'low_stock'),
        (3, 2, 'in_stock'),
        (10, 0, 'in_stock'),
    ])
    def test_thresholds(self, quantity, min_quantity, expected):
        from models.inventory import stock_status
        assert stock_status(quantity, min_quantity) == expected


class TestAdjustQuantity:

    def test_consume_and_restock(self, app, toner):
        from models.inventory import adjust_quantity, get_adjustment_history

        item = adjust_quantity(toner, -3, 'Consommation', adjusted_by='accueil')
        assert item['quantity'] == 2
        assert item['status'] == 'low_stock'

        item = adjust_quantity(toner, -2, 'Consommation')
        assert item['quantity'] == 0
        assert item['status'] == 'out_of_stock'

        item = adjust_quantity(toner, 10, 'Livraison fournisseur')
        assert item['quantity'] == 10
        assert item['status'] == 'in_stock'

        history = get_adjustment_history(toner)
        assert [(h['quantity_before'], h['delta'], h['quantity_after']) for h in history] == [
            (5, -3, 2), (2, -2, 0), (0, 10, 10)
        ]
        assert history[0]['adjusted_by'] == 'accueil'

    def test_negative_stock_rejected(self, app, toner):
        from models.errors import NegativeStock
        from models.inventory import adjust_quantity, get_inventory_item_by_id, get_adjustment_history

        with pytest.raises(NegativeStock) as exc_info:
            adjust_quantity(toner, -6, 'Consommation')
        assert exc_info.value.context['quantity'] == 5

        item = get_inventory_item_by_id(toner)
        assert item['quantity'] == 5
        assert item['status'] == 'in_stock'
        assert get_adjustment_history(toner) == []

    @pytest.mark.parametrize('delta', [0, 1.5, '3', True])
    def test_invalid_delta(self, app, toner, delta):
        from models.errors import ValidationError
        from models.inventory import adjust_quantity

        with pytest.raises(ValidationError):
            adjust_quantity(toner, delta, 'Inventaire')

    @pytest.mark.parametrize('reason', ['', '   ', None])
    def test_reason_required(self, app, toner, reason):
        from models.errors import ValidationError
        from models.inventory import adjust_quantity

        with pytest.raises(ValidationError):
            adjust_quantity(toner, 1, reason)

    def test_unknown_item(self, app):
        from models.errors import EntityNotFound
        from models.inventory import adjust_quantity

        with pytest.raises(EntityNotFound):
            adjust_quantity(99999, 1, 'Livraison')

    def test_adjustment_is_audited(self, app, toner):
        from models.audit_log import get_audit_logs_for_entity
        from models.inventory import adjust_quantity

        adjust_quantity(toner, -1, 'Consommation', adjusted_by='accueil')
        logs = get_audit_logs_for_entity('inventory_item', toner)
        assert logs[0]['action'] == 'ADJUST'
        assert logs[0]['changes']['before']['quantity'] == 5
        assert logs[0]['changes']['after']['quantity'] == 4


class TestLowStock:

    def test_low_stock_listing(self, app, toner):
        from models.inventory import adjust_quantity, create_inventory_item, get_low_stock_items

        # Seeded items are all above their minimum
        assert get_low_stock_items() == []

        empty = create_inventory_item('Gobelets', quantity=0, min_quantity=20)
        adjust_quantity(toner, -4, 'Consommation')

        assert [i['id'] for i in get_low_stock_items()] == [empty, toner]

    def test_create_rejects_negative_quantity(self, app):
        from models.errors import ValidationError
        from models.inventory import create_inventory_item

        with pytest.raises(ValidationError):
            create_inventory_item('Stylos', quantity=-1)
        with pytest.raises(ValidationError):
            create_inventory_item('  ')


class TestAdjustRace:
    """Concurrent decrements that together exceed the stock."""

    def test_stock_never_negative(self, app, toner):
        from models.errors import NegativeStock
        from models.inventory import adjust_quantity, get_adjustment_history, get_inventory_item_by_id

        callers = 8
        barrier = threading.Barrier(callers)
        results = []
        errors = []
        lock = threading.Lock()

        def consume():
            with app.app_context():
                barrier.wait()
                try:
                    item = adjust_quantity(toner, -2, 'Impression brochures')
                    with lock:
                        results.append(item['quantity'])
                except NegativeStock as e:
                    with lock:
                        errors.append(e)

        threads = [threading.Thread(target=consume) for _ in range(callers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        # 5 in stock: two decrements of 2 fit, the rest are refused
        assert len(results) == 2
        assert len(errors) == callers - 2

        item = get_inventory_item_by_id(toner)
        assert item['quantity'] == 1
        assert item['status'] == 'low_stock'

        history = get_adjustment_history(toner)
        assert len(history) == 2
        assert sum(a['delta'] for a in history) == item['quantity'] - 5
        assert all(a['quantity_after'] >= 0 for a in history)
