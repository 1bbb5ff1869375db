"""
Ops Routes
==========

Public health endpoint.
"""

from datetime import datetime, timezone

from flask import jsonify

from . import ops_health_bp
from ...core.database import Database
from ...core.errors import CMSError
from ...core.storage import get_storage


def _check_database():
    try:
        Database.ping()
        return {'status': 'ok'}
    except CMSError as e:
        return {'status': 'critical', 'error': e.message}


def _check_storage():
    try:
        return get_storage().check()
    except (CMSError, OSError) as e:
        return {'status': 'critical', 'error': str(e)}


def _build_health_response():
    """Build the health check response dict."""
    checks = {
        'database': _check_database(),
        'storage': _check_storage(),
    }
    statuses = [check['status'] for check in checks.values()]
    status = 'critical' if 'critical' in statuses else 'ok'

    result = {
        'status': status,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'checks': checks,
    }
    return result, status


@ops_health_bp.route('/')
@ops_health_bp.route('')
def health_check():
    """Public health endpoint for uptime monitors."""
    data, status = _build_health_response()
    code = 503 if status == 'critical' else 200
    return jsonify(data), code
