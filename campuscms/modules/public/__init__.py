"""
Public Site Module
==================

Public-facing pages for the college website.

Provides:
- Home, about, contact, gallery, videos and announcements pages
- Contact form that stores messages for the admin inbox
- Read-only JSON API (CORS enabled) with cursor pagination
- /uploads/<key> for blobs held by the local storage backend
"""

from flask import Blueprint

public_bp = Blueprint(
    'public',
    __name__,
    template_folder='templates'
)

from . import routes

__all__ = ['public_bp']
