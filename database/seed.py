"""
Database seed data.
Initial data population for fresh database installations.
Rates are in minor units (centimes).
"""

from utils.money import units_to_minor


def seed_database(db, promo_codes: dict = None):
    """
    Insert initial seed data.

    Args:
        db: Open connection
        promo_codes: Flat promo deductions {code: whole units} to register,
            with no validity window and no usage cap
    """

    # 1. Spaces
    spaces_data = [
        # name, type, capacity, hourly, daily, monthly, description
        ('Open Space', 'desk', 12, 0, 120000, 1500000,
         'Poste de travail en espace partagé'),
        ('Private Booth Aurès', 'office', 2, 0, 600000, 4500000,
         'Bureau privatif deux personnes'),
        ('Private Booth Hoggar', 'office', 2, 0, 600000, 3500000,
         'Bureau privatif deux personnes'),
        ('Private Booth Atlas', 'office', 4, 0, 1000000, 4500000,
         'Bureau privatif quatre personnes'),
        ('Salle de Réunion Premium', 'meeting_room', 12, 250000, 1200000, 0,
         'Salle de réunion équipée, écran et visioconférence'),
    ]

    for name, space_type, capacity, hourly, daily, monthly, description in spaces_data:
        db.execute('''
            INSERT INTO spaces (name, space_type, capacity, hourly_rate, daily_rate,
                                monthly_rate, description)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        ''', (name, space_type, capacity, hourly, daily, monthly, description))

    # 2. Inventory consumables
    inventory_data = [
        # name, category, quantity, min_quantity, unit, purchase_price
        ('Ramette papier A4', 'fournitures', 40, 10, 'ramette', 85000),
        ('Capsules café', 'cuisine', 200, 50, 'capsule', 6000),
        ('Cartouche toner', 'impression', 4, 2, 'cartouche', 950000),
    ]

    for name, category, quantity, min_quantity, unit, price in inventory_data:
        status = 'out_of_stock' if quantity == 0 else (
            'low_stock' if quantity <= min_quantity else 'in_stock'
        )
        db.execute('''
            INSERT INTO inventory_items (name, category, quantity, min_quantity, unit,
                                         purchase_price, status)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        ''', (name, category, quantity, min_quantity, unit, price, status))

    # 3. Promo codes
    for code, units in (promo_codes or {}).items():
        db.execute('''
            INSERT INTO promo_codes (code, amount)
            VALUES (?, ?)
        ''', (str(code).strip().upper(), units_to_minor(units)))
