"""
Database seed data.
Initial data population for fresh database installations.
"""

import os

from werkzeug.security import generate_password_hash


def seed_database(db):
    """Insert initial seed data."""

    # 1. Create Roles
    roles_data = [
        ('admin', 'Administrator', 'Manages capacity, calendar and orders'),
        ('customer', 'Customer', 'Books trays for own orders'),
    ]

    for name, display_name, description in roles_data:
        db.execute('''
            INSERT INTO roles (name, display_name, description)
            VALUES (?, ?, ?)
        ''', (name, display_name, description))

    admin_role_id = db.execute("SELECT id FROM roles WHERE name = 'admin'").fetchone()[0]

    # 2. Create default admin user
    admin_password = os.environ.get('ADMIN_PASSWORD', 'admin123')
    db.execute('''
        INSERT INTO users (username, email, password_hash, full_name, role_id)
        VALUES (?, ?, ?, ?, ?)
    ''', (
        'admin',
        os.environ.get('ADMIN_EMAIL', 'admin@traydry.local'),
        generate_password_hash(admin_password),
        'Administrator',
        admin_role_id
    ))
