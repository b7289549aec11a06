"""
Health check endpoint.
"""

from flask import current_app

from database import get_db
from utils.api_response import api_success


def register_routes(bp):
    """Register health API routes on the blueprint."""

    @bp.route('/health')
    def health_check():
        """
        Liveness check (no authentication required).

        Returns:
            JSON with status, app name and version
        """
        get_db().execute('SELECT 1')
        return api_success(data={
            'status': 'ok',
            'version': current_app.config.get('APP_VERSION', '1.0.0'),
            'app': current_app.config.get('APP_NAME', 'Coworking Core'),
        })
