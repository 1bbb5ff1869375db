"""
Admin Dashboard Module
======================

Admin login/logout, the dashboard overview, password change and the
contact-message inbox. Content CRUD lives in the content_admin module.
"""

from flask import Blueprint

dashboard_bp = Blueprint(
    'admin',
    __name__,
    url_prefix='/admin',
    template_folder='templates'
)

from . import routes

__all__ = ['dashboard_bp']
