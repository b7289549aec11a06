"""
Coworking Core - Reservation & Billing Service
Flask application factory and initialization
"""

import os
import click
import logging
from flask import Flask, g, request
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Import configuration
from config import config

# Import database functions
from database import close_db, init_db, init_schema


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

    # Create Flask app
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config[config_name])

    if config_name == 'production':
        config[config_name].validate()

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


def register_blueprints(app):
    """Register Flask blueprints."""
    from blueprints.api import api_bp

    app.register_blueprint(api_bp, url_prefix='/api')


def register_error_handlers(app):
    """Register JSON error handlers for errors raised outside the API views."""
    from utils.api_response import api_error

    @app.errorhandler(404)
    def not_found_error(error):
        """Handle 404 errors."""
        return api_error('Ressource introuvable', status=404, code='not_found')

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        """Handle 405 errors."""
        return api_error(f'Méthode {request.method} non autorisée', status=405, code='method_not_allowed')

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        # Rollback database on error
        db = g.get('db')
        if db:
            db.rollback()
        return api_error('Erreur interne du serveur', status=500, code='internal_error')


def register_cli_commands(app):
    """Register Flask CLI commands."""

    @app.cli.command('init-db')
    @click.option('--empty', is_flag=True, help='Create the schema without seed data.')
    def init_db_command(empty):
        """Initialize database with schema and seed data."""
        click.echo('Initializing database...')
        with app.app_context():
            if empty:
                init_schema()
            else:
                init_db()
        click.echo('Database initialized successfully!')

    @app.cli.command('create-member')
    @click.argument('first_name')
    @click.argument('last_name')
    @click.option('--email', default=None)
    @click.option('--phone', default=None)
    @click.option('--company', default=None)
    def create_member_command(first_name, last_name, email, phone, company):
        """Create a new active member."""
        from models.errors import CoworkingError
        from models.member import create_member

        with app.app_context():
            try:
                member_id = create_member(
                    first_name, last_name,
                    email=email, phone=phone, company=company
                )
                click.echo(f'Member created successfully! ID: {member_id}')
            except CoworkingError as e:
                click.echo(f'Error creating member: {e.message}', err=True)
                raise SystemExit(1)

    @app.cli.command('list-overdue')
    def list_overdue_command():
        """List sent invoices past their due date."""
        from models.invoice import get_overdue_invoices
        from utils.money import format_amount

        with app.app_context():
            invoices = get_overdue_invoices()
            currency = app.config.get('CURRENCY', 'DZD')
            if not invoices:
                click.echo('No overdue invoices.')
                return
            for invoice in invoices:
                click.echo(
                    f"{invoice['invoice_number']}  member={invoice['member_id']}  "
                    f"due={invoice['due_date']}  total={format_amount(invoice['total'], currency)}"
                )
            click.echo(f'{len(invoices)} overdue invoice(s).')

    @app.cli.command('cleanup-audit')
    @click.option('--days', default=90, show_default=True, help='Retention in days.')
    def cleanup_audit_command(days):
        """Delete audit log entries older than the retention period."""
        from models.audit_log import cleanup_old_logs

        with app.app_context():
            deleted = cleanup_old_logs(days)
        click.echo(f'Deleted {deleted} audit log entries.')


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

        file_handler = logging.FileHandler('logs/coworking.log')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        logging.getLogger().addHandler(file_handler)
        logging.getLogger().setLevel(logging.INFO)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Coworking Core startup')
    else:
        # Development logging
        app.logger.setLevel(logging.DEBUG)


# Create application instance for development server
if __name__ == '__main__':
    app = create_app()
    # host='0.0.0.0' allows access from other devices on the network
    app.run(host='0.0.0.0', debug=True)
