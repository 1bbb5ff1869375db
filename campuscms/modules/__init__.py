"""
Campus CMS Modules
==================

Flask blueprint modules for the public site and the admin panel.
"""

__all__ = ['auth', 'content', 'content_admin', 'dashboard', 'public', 'ops']
