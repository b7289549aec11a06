"""
Database schema definitions.
Table creation, indexes, and structure management.

Monetary columns hold integer minor units (centimes). Instants are stored as
'YYYY-MM-DD HH:MM:SS' text in the configured local timezone.
"""


def drop_tables(db):
    """Drop all existing tables."""
    # Disable foreign key constraints before dropping
    db.execute('PRAGMA foreign_keys = OFF')

    tables = [
        'audit_log',
        'promo_code_usages',
        'promo_codes',
        'maintenance_requests',
        'inventory_adjustments',
        'inventory_items',
        'payments',
        'invoice_items',
        'invoices',
        'reservation_status_history',
        'reservations',
        'spaces',
        'members',
    ]

    for table in tables:
        db.execute(f'DROP TABLE IF EXISTS {table}')

    # Re-enable foreign key constraints
    db.execute('PRAGMA foreign_keys = ON')


def create_tables(db):
    """Create all database tables."""

    # 1. Directories
    db.execute('''
        CREATE TABLE members (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            first_name TEXT NOT NULL,
            last_name TEXT,
            email TEXT UNIQUE,
            phone TEXT,
            company TEXT,
            billing_address TEXT,
            status TEXT NOT NULL DEFAULT 'active'
                CHECK (status IN ('active', 'inactive', 'suspended')),
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE spaces (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            space_type TEXT NOT NULL
                CHECK (space_type IN ('desk', 'meeting_room', 'office', 'event_space')),
            capacity INTEGER NOT NULL DEFAULT 1 CHECK (capacity >= 1),
            hourly_rate INTEGER NOT NULL DEFAULT 0 CHECK (hourly_rate >= 0),
            daily_rate INTEGER NOT NULL DEFAULT 0 CHECK (daily_rate >= 0),
            monthly_rate INTEGER NOT NULL DEFAULT 0 CHECK (monthly_rate >= 0),
            is_available INTEGER NOT NULL DEFAULT 1,
            maintenance_status TEXT NOT NULL DEFAULT 'operational'
                CHECK (maintenance_status IN ('operational', 'under_maintenance', 'out_of_order')),
            description TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE promo_codes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            code TEXT UNIQUE NOT NULL,
            amount INTEGER NOT NULL CHECK (amount > 0),
            valid_from TEXT,
            valid_until TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            max_uses INTEGER CHECK (max_uses IS NULL OR max_uses >= 1),
            current_uses INTEGER NOT NULL DEFAULT 0,
            min_amount INTEGER NOT NULL DEFAULT 0 CHECK (min_amount >= 0),
            description TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK (max_uses IS NULL OR current_uses <= max_uses)
        )
    ''')

    # 2. Reservations
    db.execute('''
        CREATE TABLE reservations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            space_id INTEGER NOT NULL REFERENCES spaces(id),
            member_id INTEGER NOT NULL REFERENCES members(id),
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'confirmed', 'cancelled', 'completed')),
            payment_status TEXT NOT NULL DEFAULT 'unpaid'
                CHECK (payment_status IN ('unpaid', 'partial', 'paid', 'refunded')),
            pricing_tier TEXT,
            base_amount INTEGER NOT NULL DEFAULT 0,
            discount INTEGER NOT NULL DEFAULT 0,
            total_amount INTEGER NOT NULL DEFAULT 0,
            promo_code TEXT,
            participants INTEGER NOT NULL DEFAULT 1,
            notes TEXT,
            check_in_time TEXT,
            check_out_time TEXT,
            cancelled_at TEXT,
            cancellation_reason TEXT,
            created_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK (start_time < end_time)
        )
    ''')

    db.execute('''
        CREATE TABLE reservation_status_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            reservation_id INTEGER NOT NULL REFERENCES reservations(id),
            status_type TEXT NOT NULL,
            action TEXT NOT NULL,
            changed_by TEXT,
            notes TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE promo_code_usages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            promo_code_id INTEGER NOT NULL REFERENCES promo_codes(id),
            member_id INTEGER NOT NULL REFERENCES members(id),
            reservation_id INTEGER NOT NULL REFERENCES reservations(id),
            discount INTEGER NOT NULL CHECK (discount > 0),
            amount_before INTEGER NOT NULL,
            amount_after INTEGER NOT NULL,
            used_at TEXT NOT NULL,
            UNIQUE(promo_code_id, member_id)
        )
    ''')

    # 3. Billing
    db.execute('''
        CREATE TABLE invoices (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            invoice_number TEXT UNIQUE NOT NULL,
            member_id INTEGER NOT NULL REFERENCES members(id),
            reservation_id INTEGER REFERENCES reservations(id),
            issue_date TEXT NOT NULL,
            due_date TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'draft'
                CHECK (status IN ('draft', 'sent', 'paid', 'overdue', 'cancelled')),
            subtotal INTEGER NOT NULL,
            tax_amount INTEGER NOT NULL,
            discount INTEGER NOT NULL DEFAULT 0,
            total INTEGER NOT NULL,
            paid_date TEXT,
            payment_method TEXT,
            notes TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK (total = subtotal + tax_amount - discount)
        )
    ''')

    db.execute('''
        CREATE TABLE invoice_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            invoice_id INTEGER NOT NULL REFERENCES invoices(id),
            position INTEGER NOT NULL,
            description TEXT NOT NULL,
            quantity TEXT NOT NULL,
            unit_price INTEGER NOT NULL,
            tax_rate TEXT NOT NULL,
            discount INTEGER NOT NULL DEFAULT 0,
            gross_amount INTEGER NOT NULL,
            tax_amount INTEGER NOT NULL,
            line_total INTEGER NOT NULL,
            UNIQUE(invoice_id, position)
        )
    ''')

    db.execute('''
        CREATE TABLE payments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            member_id INTEGER NOT NULL REFERENCES members(id),
            invoice_id INTEGER REFERENCES invoices(id),
            amount INTEGER NOT NULL CHECK (amount > 0),
            method TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'completed'
                CHECK (status IN ('pending', 'completed', 'failed', 'refunded')),
            reference TEXT,
            refund_amount INTEGER NOT NULL DEFAULT 0,
            refund_date TEXT,
            refund_reason TEXT,
            processed_at TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            CHECK (refund_amount >= 0 AND refund_amount <= amount)
        )
    ''')

    # 4. Inventory
    db.execute('''
        CREATE TABLE inventory_items (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            category TEXT,
            quantity INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0),
            min_quantity INTEGER NOT NULL DEFAULT 0 CHECK (min_quantity >= 0),
            unit TEXT NOT NULL DEFAULT 'unit',
            purchase_price INTEGER NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'in_stock'
                CHECK (status IN ('in_stock', 'low_stock', 'out_of_stock')),
            location TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE inventory_adjustments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            item_id INTEGER NOT NULL REFERENCES inventory_items(id),
            delta INTEGER NOT NULL,
            quantity_before INTEGER NOT NULL,
            quantity_after INTEGER NOT NULL,
            reason TEXT NOT NULL,
            adjusted_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 5. Maintenance
    db.execute('''
        CREATE TABLE maintenance_requests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            space_id INTEGER NOT NULL REFERENCES spaces(id),
            title TEXT NOT NULL,
            description TEXT,
            priority TEXT NOT NULL DEFAULT 'medium'
                CHECK (priority IN ('low', 'medium', 'high', 'critical')),
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'in_progress', 'completed', 'cancelled')),
            request_date TEXT NOT NULL,
            scheduled_date TEXT,
            completion_date TEXT,
            assigned_to TEXT,
            estimated_cost INTEGER,
            actual_cost INTEGER,
            reported_by TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 6. Audit
    db.execute('''
        CREATE TABLE audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            action TEXT NOT NULL,
            entity_type TEXT NOT NULL,
            entity_id INTEGER,
            changed_by TEXT,
            changes TEXT,
            ip_address TEXT,
            user_agent TEXT,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    ''')


def create_indexes(db):
    """Create indexes for frequent lookups."""
    indexes = [
        'CREATE INDEX idx_reservations_space_time ON reservations(space_id, start_time, end_time)',
        'CREATE INDEX idx_reservations_member ON reservations(member_id)',
        'CREATE INDEX idx_reservations_status ON reservations(status)',
        'CREATE INDEX idx_status_history_reservation ON reservation_status_history(reservation_id)',
        'CREATE INDEX idx_invoices_member ON invoices(member_id)',
        'CREATE INDEX idx_invoices_status_due ON invoices(status, due_date)',
        "CREATE UNIQUE INDEX idx_invoices_live_reservation ON invoices(reservation_id) "
        "WHERE reservation_id IS NOT NULL AND status != 'cancelled'",
        'CREATE INDEX idx_promo_code_usages_reservation ON promo_code_usages(reservation_id)',
        'CREATE INDEX idx_invoice_items_invoice ON invoice_items(invoice_id)',
        'CREATE INDEX idx_payments_member ON payments(member_id)',
        'CREATE INDEX idx_payments_invoice ON payments(invoice_id)',
        'CREATE INDEX idx_inventory_adjustments_item ON inventory_adjustments(item_id)',
        'CREATE INDEX idx_maintenance_space_status ON maintenance_requests(space_id, status)',
        'CREATE INDEX idx_audit_log_entity ON audit_log(entity_type, entity_id)',
    ]

    for sql in indexes:
        db.execute(sql)
