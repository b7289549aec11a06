"""
Request helpers shared by the API route modules.
"""

from flask import request


def json_body() -> dict:
    """Parsed JSON body, or an empty dict when absent or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def current_actor() -> str:
    """
    Name recorded as changed_by in history and audit rows.

    Taken from the X-Actor header, then the 'changed_by' body field.
    Requests without either are recorded as system actions (None).
    """
    actor = request.headers.get('X-Actor') or json_body().get('changed_by')
    return actor.strip()[:100] if isinstance(actor, str) and actor.strip() else None
