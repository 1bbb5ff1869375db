from functools import wraps

from flask import flash, g, redirect, request, session, url_for

from ...core.http import wants_json, json_error
from ...core.logging_service import LoggingService
from .sessions import authenticate


def admin_required(f):
    """Decorator to require an authenticated admin session.

    Runs before the view touches request.form or request.files, so an
    unauthenticated upload is rejected without its body being parsed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        principal = authenticate(getattr(session, 'sid', None))
        if principal is None:
            LoggingService.log_security_event(
                'Unauthenticated admin request', {'method': request.method, 'path': request.path}
            )
            if wants_json():
                return json_error('Authentication required', 401)
            flash('Please log in to continue', 'error')
            next_url = request.path if request.method == 'GET' else None
            return redirect(url_for('admin.login', next=next_url))

        g.admin = principal
        return f(*args, **kwargs)
    return decorated_function


def current_admin():
    return g.get('admin')
