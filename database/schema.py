"""
Database schema definitions.
Table creation, indexes, and structure management.
"""


def drop_tables(db):
    """Drop all existing tables."""
    # Disable foreign key constraints before dropping
    db.execute('PRAGMA foreign_keys = OFF')

    tables = [
        'reservation_status_history',
        'cancellation_credits',
        'reservation_trays',
        'reservations',
        'calendar_overrides',
        'users',
        'roles'
    ]

    for table in tables:
        db.execute(f'DROP TABLE IF EXISTS {table}')

    # Re-enable foreign key constraints
    db.execute('PRAGMA foreign_keys = ON')


def create_tables(db):
    """Create all database tables."""

    # 1. Users & Roles (local mirror of the identity provider)
    db.execute('''
        CREATE TABLE roles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT UNIQUE NOT NULL,
            display_name TEXT NOT NULL,
            description TEXT,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    db.execute('''
        CREATE TABLE users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT UNIQUE NOT NULL,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT NOT NULL,
            full_name TEXT,
            phone TEXT,
            role_id INTEGER NOT NULL REFERENCES roles(id),
            active INTEGER DEFAULT 1,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            last_login DATETIME
        )
    ''')

    # 2. Calendar exceptions (one row per date)
    db.execute('''
        CREATE TABLE calendar_overrides (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            override_date TEXT UNIQUE NOT NULL,
            is_holiday INTEGER DEFAULT 0,
            notice TEXT,
            blocked_trays TEXT DEFAULT '',
            updated_by INTEGER REFERENCES users(id),
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 3. Reservations
    db.execute('''
        CREATE TABLE reservations (
            id TEXT PRIMARY KEY,
            ticket_number TEXT UNIQUE NOT NULL,
            owner_id INTEGER NOT NULL REFERENCES users(id),
            reservation_date TEXT NOT NULL,
            tray_numbers TEXT NOT NULL,
            total_trays INTEGER NOT NULL,
            dish_lines TEXT NOT NULL DEFAULT '[]',
            num_packets INTEGER DEFAULT 0,
            freeze_dried_packets INTEGER DEFAULT 0,
            freeze_dried_grams_per_packet INTEGER DEFAULT 0,
            dehydration_cost INTEGER DEFAULT 0,
            packing_cost INTEGER DEFAULT 0,
            vacuum_cost INTEGER DEFAULT 0,
            freeze_dried_cost INTEGER DEFAULT 0,
            subtotal INTEGER DEFAULT 0,
            applied_credit_amount INTEGER DEFAULT 0,
            total_cost INTEGER DEFAULT 0,
            payment_status TEXT NOT NULL DEFAULT 'pending'
                CHECK (payment_status IN ('pending', 'completed', 'failed')),
            status TEXT NOT NULL DEFAULT 'active'
                CHECK (status IN ('active', 'cancelled')),
            payment_method TEXT DEFAULT 'online',
            payment_reference TEXT,
            delivery_method TEXT DEFAULT 'not_sure',
            admin_created INTEGER DEFAULT 0,
            contact_name TEXT,
            contact_phone TEXT,
            created_by INTEGER REFERENCES users(id),
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            cancelled_at DATETIME
        )
    ''')

    # Tray claims: the unique pair makes double allocation impossible at storage level
    db.execute('''
        CREATE TABLE reservation_trays (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            reservation_id TEXT NOT NULL REFERENCES reservations(id) ON DELETE CASCADE,
            tray_date TEXT NOT NULL,
            tray_number INTEGER NOT NULL,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(tray_date, tray_number)
        )
    ''')

    db.execute('''
        CREATE TABLE reservation_status_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            reservation_id TEXT NOT NULL REFERENCES reservations(id) ON DELETE CASCADE,
            field TEXT NOT NULL,
            old_value TEXT,
            new_value TEXT NOT NULL,
            changed_by INTEGER,
            notes TEXT,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
    ''')

    # 4. Cancellation credits
    db.execute('''
        CREATE TABLE cancellation_credits (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id INTEGER NOT NULL REFERENCES users(id),
            credit_amount INTEGER NOT NULL CHECK (credit_amount >= 0),
            expiry_date TEXT NOT NULL,
            used INTEGER DEFAULT 0,
            original_reservation_id TEXT REFERENCES reservations(id),
            used_in_reservation_id TEXT REFERENCES reservations(id),
            used_at DATETIME,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
    ''')


def create_indexes(db):
    """Create database indexes for performance."""

    # Reservation indexes
    db.execute('CREATE INDEX idx_reservations_date_status ON reservations(reservation_date, status, payment_status)')
    db.execute('CREATE INDEX idx_reservations_owner ON reservations(owner_id)')

    # Tray claim indexes
    db.execute('CREATE INDEX idx_reservation_trays_reservation ON reservation_trays(reservation_id)')

    # History indexes
    db.execute('CREATE INDEX idx_status_history_reservation ON reservation_status_history(reservation_id)')

    # Credit indexes
    db.execute('CREATE INDEX idx_credits_owner ON cancellation_credits(owner_id, used)')
    db.execute('CREATE INDEX idx_credits_expiry ON cancellation_credits(expiry_date)')
