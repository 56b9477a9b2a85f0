"""
TrayDry - Food Dehydration Tray Booking Service
Flask application factory and initialization
"""

import os
import click
import logging
from datetime import timedelta
from flask import Flask, g
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Import configuration
from config import config

# Import extensions
from extensions import login_manager, csrf

# Import database functions
from database import close_db, init_db


def create_app(config_name=None):
    """
    Application factory for Flask app.

    Args:
        config_name: Configuration name ('development', 'production', 'test')

    Returns:
        Flask application instance
    """
    # Determine config
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    config_class = config[config_name]
    if config_name == 'production':
        config_class.validate()

    # Create Flask app
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config_class)

    # Initialize extensions
    initialize_extensions(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Register teardown handlers
    register_teardown_handlers(app)

    # Configure logging
    configure_logging(app)

    return app


def initialize_extensions(app):
    """Initialize Flask extensions."""
    # Initialize Flask-Login
    login_manager.init_app(app)
    # Initialize CSRF Protection
    csrf.init_app(app)


def register_blueprints(app):
    """Register Flask blueprints."""
    # Import blueprints
    from blueprints.auth.routes import auth_bp
    from blueprints.admin.routes import admin_bp
    from blueprints.booking import booking_bp
    from blueprints.api.routes import api_bp

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp, url_prefix='/admin/api')
    app.register_blueprint(booking_bp, url_prefix='/booking/api')
    app.register_blueprint(api_bp, url_prefix='/api')

    # Set default route
    @app.route('/')
    def index():
        """Service banner."""
        from utils.api_response import api_success

        return api_success(data={
            'app': app.config.get('APP_NAME', 'TrayDry'),
            'version': app.config.get('APP_VERSION', '1.0.0')
        })


def register_error_handlers(app):
    """Register error handlers."""
    from models.errors import BookingError, StorageUnavailable
    from utils.api_response import api_error, api_booking_error
    from utils.messages import MESSAGES

    @app.errorhandler(BookingError)
    def booking_error(error):
        """Handle booking rule violations that escaped a route."""
        return api_booking_error(error)

    @app.errorhandler(StorageUnavailable)
    def storage_unavailable(error):
        """Handle a database that stayed locked through all retries."""
        app.logger.error(f'Storage unavailable: {error}')
        return api_booking_error(error)

    @app.errorhandler(404)
    def not_found_error(error):
        """Handle 404 errors."""
        return api_error(MESSAGES['not_found'], 404, code='not_found')

    @app.errorhandler(405)
    def method_not_allowed(error):
        """Handle 405 errors."""
        return api_error('Method not allowed', 405, code='method_not_allowed')

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        # Rollback database on error
        db = g.get('db')
        if db:
            db.rollback()
        return api_error(MESSAGES['server_error'], 500, code='server_error')

    @app.errorhandler(403)
    def forbidden_error(error):
        """Handle 403 errors."""
        return api_error(MESSAGES['permission_denied'], 403, code='forbidden')


def register_cli_commands(app):
    """Register Flask CLI commands."""

    @app.cli.command('init-db')
    def init_db_command():
        """Initialize database with schema and seed data."""
        click.echo('Initializing database...')
        with app.app_context():
            init_db()
        click.echo('Database initialized successfully!')

    @app.cli.command('create-user')
    @click.argument('username')
    @click.argument('email')
    @click.option('--role', type=click.Choice(['admin', 'customer']), default='admin',
                  show_default=True, help='Role to assign')
    @click.option('--full-name', default=None, help='Display name')
    @click.option('--phone', default=None, help='Contact phone')
    @click.password_option()
    def create_user_command(username, email, role, full_name, phone, password):
        """Create a new user."""
        from models.user import create_user

        with app.app_context():
            try:
                user_id = create_user(
                    username=username,
                    email=email,
                    password=password,
                    full_name=full_name,
                    role_name=role,
                    phone=phone
                )
                click.echo(f'User created successfully! ID: {user_id}')
            except ValueError as e:
                click.echo(f'Error creating user: {str(e)}', err=True)

    @app.cli.command('expire-pending')
    @click.option('--hold-minutes', type=int, default=None,
                  help='Override PAYMENT_HOLD_MINUTES')
    def expire_pending_command(hold_minutes):
        """Mark unpaid reservations past the payment hold as failed."""
        from models.reservation import expire_stale_reservations

        with app.app_context():
            expired = expire_stale_reservations(hold_minutes=hold_minutes)
        click.echo(f'Expired {len(expired)} reservation(s)')
        for ticket in expired:
            click.echo(f'  {ticket}')

    @app.cli.command('daily-report')
    @click.option('--date', 'report_date', default=None,
                  help='Date to report (YYYY-MM-DD, default: tomorrow)')
    def daily_report_command(report_date):
        """Print paid, active bookings for a date."""
        from models.reservation import get_daily_report
        from utils.datetime_helpers import get_today
        from utils.validators import validate_date_format

        with app.app_context():
            if report_date is None:
                report_date = (get_today() + timedelta(days=1)).isoformat()
            elif not validate_date_format(report_date):
                raise click.BadParameter('expected YYYY-MM-DD', param_hint='--date')

            report = get_daily_report(report_date)

        click.echo(f"Bookings for {report['date']}: {report['reservation_count']} "
                   f"({report['total_trays']} trays, {report['total_packets']} packets)")
        for r in report['reservations']:
            dishes = ', '.join(f"{line['name']} x{line['tray_quantity']}" for line in r['dish_lines'])
            trays = ','.join(str(n) for n in r['tray_numbers'])
            click.echo(f"  {r['ticket_number']}  {r['customer_name']}  {r['customer_phone'] or '-'}  "
                       f"trays [{trays}]  {dishes}  ({r['delivery_method']})")


def register_teardown_handlers(app):
    """Register teardown handlers."""

    @app.teardown_appcontext
    def teardown_db(error):
        """Close database connection at end of request."""
        close_db(error)


def configure_logging(app):
    """Configure application logging."""
    if not app.debug and not app.testing:
        # Production logging
        if not os.path.exists('logs'):
            os.mkdir('logs')

        file_handler = logging.FileHandler('logs/traydry.log')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

        # Module loggers (models, database) propagate to the root logger
        root_logger = logging.getLogger()
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.INFO)

        app.logger.setLevel(logging.INFO)
        app.logger.info('TrayDry startup')
    else:
        # Development logging
        app.logger.setLevel(logging.DEBUG)
        logging.getLogger().setLevel(logging.DEBUG)


# Create application instance for development server
if __name__ == '__main__':
    app = create_app()
    # host='0.0.0.0' allows access from other devices on the network
    app.run(host='0.0.0.0', debug=True)
