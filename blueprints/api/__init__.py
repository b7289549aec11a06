"""
JSON API package.
Split into smaller modules by entity for maintainability.
"""

import logging
import sqlite3

from flask import Blueprint

from database import is_lock_error
from models.errors import CoworkingError
from utils.api_response import api_error
from utils.messages import get_message

logger = logging.getLogger(__name__)

# Create the API blueprint
api_bp = Blueprint('api', __name__)


@api_bp.errorhandler(CoworkingError)
def handle_domain_error(error):
    """Map a domain error to its JSON envelope and HTTP status."""
    if error.http_status >= 500:
        logger.error(f"[API] {error.code}: {error.message} {error.context}")
    else:
        logger.info(f"[API] Rejected ({error.code}): {error.message}")
    return api_error(error.message, status=error.http_status, code=error.code, context=error.context)


@api_bp.errorhandler(sqlite3.OperationalError)
def handle_storage_error(error):
    """Storage contention that survived the retries is reported as 503."""
    if is_lock_error(error):
        logger.warning(f"[API] Storage busy: {error}")
        return api_error(get_message('storage_busy'), status=503, code='storage_busy')
    raise error


# Import and register routes from submodules
from blueprints.api import health
from blueprints.api import spaces
from blueprints.api import reservations
from blueprints.api import invoices
from blueprints.api import payments
from blueprints.api import inventory
from blueprints.api import maintenance
from blueprints.api import members
from blueprints.api import promo_codes

# Register all route functions on the blueprint
health.register_routes(api_bp)
spaces.register_routes(api_bp)
reservations.register_routes(api_bp)
invoices.register_routes(api_bp)
payments.register_routes(api_bp)
inventory.register_routes(api_bp)
maintenance.register_routes(api_bp)
members.register_routes(api_bp)
promo_codes.register_routes(api_bp)
