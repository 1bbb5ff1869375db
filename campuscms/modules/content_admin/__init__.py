"""
Content Admin Module
====================

Admin interface for announcements, photos and videos.
Plugs into the admin dashboard module.

Provides:
- List / create / edit / delete for each content kind
- Image and video uploads through the configured storage backend
- Redirect + flash responses for HTML forms, JSON for API clients
"""

from flask import Blueprint

content_admin_bp = Blueprint(
    'content_admin',
    __name__,
    url_prefix='/admin',
    template_folder='templates'
)

from . import routes

__all__ = ['content_admin_bp']
