"""
Auth Module
===========

The single administrator principal and the server-side sessions that prove it.

Provides:
- Credential store with scrypt password hashes and transparent re-hashing
- Session manager (login / authenticate / logout / purge_expired)
- Flask session interface backed by the same sessions table
- admin_required decorator for protected views
"""

from .database import AdminDatabase, init_admin_table
from .sessions import (
    SessionStore,
    ServerSideSessionInterface,
    init_sessions_table,
    login,
    authenticate,
    logout,
)
from .decorators import admin_required, current_admin

__all__ = [
    'AdminDatabase', 'init_admin_table',
    'SessionStore', 'ServerSideSessionInterface', 'init_sessions_table',
    'login', 'authenticate', 'logout',
    'admin_required', 'current_admin',
]
