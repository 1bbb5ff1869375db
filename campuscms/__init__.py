"""
Campus CMS - A Flask Content Management Backend
===============================================

Content management for a college website:
- Public pages (home, about, contact, gallery, videos, announcements)
- Admin panel with server-side sessions
- Announcements, photos and videos with local or S3-compatible blob storage
- Contact message inbox and a public JSON API

Usage:
    from flask import Flask
    from campuscms import CampusCMS

    app = Flask(__name__)
    cms = CampusCMS(app)
"""

import os
import logging
import secrets

import click
from flask import render_template, request, g

from .core.config import Config
from .core.database import Database
from .core.errors import CMSError, ConfigurationError
from .core.http import MethodOverrideMiddleware, wants_json, json_error
from .core.logging_service import LoggingService, init_logs_table
from .core.storage import create_storage

__version__ = '0.1.0'

logger = logging.getLogger(__name__)

DEFAULT_FEATURES = {
    'dashboard': True,
    'content_admin': True,
    'public': True,
    'ops': True,
}


class CampusCMS:
    """Flask extension: configures the app and registers every module"""

    def __init__(self, app=None, config=None):
        self._config = config or {}
        self._registered_modules = []
        self.storage = None
        self.repository = None
        self.scheduler = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        from .modules.auth import AdminDatabase, ServerSideSessionInterface
        from .modules.content import ContentRepository

        self._apply_config(app)
        self._setup_database_dir(app)
        app.extensions['campuscms'] = self

        with app.app_context():
            self._init_tables()
            # No admin and no bootstrap credentials: refuse to start
            AdminDatabase.ensure_admin(
                app.config.get('ADMIN_USERNAME'),
                app.config.get('ADMIN_PASSWORD'),
                app.config.get('ADMIN_EMAIL'),
            )

        app.session_interface = ServerSideSessionInterface()
        app.wsgi_app = MethodOverrideMiddleware(app.wsgi_app)

        self.storage = self._config.get('storage') or create_storage(app.config)
        self.repository = ContentRepository(self.storage)

        self._register_modules(app)
        self._register_error_handlers(app)
        self._register_context_processor(app)
        self._register_cli(app)
        self._start_scheduler(app)

        logger.info(f"Campus CMS initialised with modules: {', '.join(self._registered_modules)}")

    # ===== Setup =====

    def _apply_config(self, app):
        """Fill app.config from Config for every key the host app left unset"""
        for key in dir(Config):
            if key.isupper() and app.config.get(key) is None:
                app.config[key] = getattr(Config, key)

        if app.config.get('SESSION_COOKIE_SAMESITE') is None:
            app.config['SESSION_COOKIE_SAMESITE'] = 'Strict'
        app.config['SESSION_COOKIE_HTTPONLY'] = True

        production = app.config.get('ENVIRONMENT') == 'production'
        if production:
            app.config['SESSION_COOKIE_SECURE'] = True

        if not app.config.get('SECRET_KEY'):
            if production:
                raise ConfigurationError('SESSION_SECRET must be set in production')
            logger.warning('SESSION_SECRET not set, using a random key for this process')
            app.config['SECRET_KEY'] = secrets.token_hex(32)

        if 'brand_name' in self._config:
            app.config['BRAND_NAME'] = self._config['brand_name']

    def _setup_database_dir(self, app):
        Database.ensure_db_dir(app.config['CMS_DB'])

    def _init_tables(self):
        from .modules.auth import init_admin_table, init_sessions_table
        from .modules.content import init_content_tables
        from .modules.public.messages import init_messages_table

        init_logs_table()
        init_admin_table()
        init_sessions_table()
        init_content_tables()
        init_messages_table()

    def _features(self):
        features = dict(DEFAULT_FEATURES)
        features.update(self._config.get('features', {}))
        return features

    def _register_modules(self, app):
        features = self._features()

        if features['dashboard']:
            from .modules.dashboard import dashboard_bp
            app.register_blueprint(dashboard_bp)
            self._registered_modules.append('dashboard')

        if features['content_admin']:
            from .modules.content_admin import content_admin_bp
            app.register_blueprint(content_admin_bp)
            self._registered_modules.append('content_admin')

        if features['public']:
            from .modules.public import public_bp
            app.register_blueprint(public_bp)
            self._registered_modules.append('public')

        if features['ops']:
            from .modules.ops import ops_health_bp
            app.register_blueprint(ops_health_bp)
            self._registered_modules.append('ops')

    def get_registered_modules(self):
        return list(self._registered_modules)

    # ===== Errors =====

    def _register_error_handlers(self, app):

        def error_response(message, status):
            has_pages = 'public' in self._registered_modules
            if not has_pages or wants_json() or request.path.startswith('/api/'):
                return json_error(message, status)
            return render_template('public/error.html', message=message, status=status), status

        @app.errorhandler(CMSError)
        def handle_cms_error(e):
            if e.status_code >= 500:
                LoggingService.error('app', e.message, {'type': type(e).__name__, 'details': e.details})
            return error_response(e.user_message, e.status_code)

        @app.errorhandler(404)
        def handle_not_found(e):
            return error_response('Page not found', 404)

        @app.errorhandler(413)
        def handle_too_large(e):
            return error_response('The uploaded file is too large', 413)

        @app.errorhandler(500)
        def handle_server_error(e):
            original = getattr(e, 'original_exception', None) or e
            LoggingService.log_error_with_traceback('app', original, {'path': request.path})
            return error_response('Something went wrong. Please try again later.', 500)

    def _register_context_processor(self, app):

        @app.context_processor
        def inject_campuscms_context():
            return {
                'campuscms_config': dict(self._config, features=self._features()),
                'brand_name': app.config.get('BRAND_NAME') or 'Campus College',
                'current_admin': g.get('admin'),
            }

    # ===== Signed URL refresh and housekeeping =====

    def _register_cli(self, app):
        from .modules.auth import SessionStore
        from .modules.content import refresh_signed_urls

        @app.cli.command('refresh-urls')
        def refresh_urls_command():
            """Re-sign stored blob URLs that expire soon."""
            stats = refresh_signed_urls(self.repository, self.storage, app.config['URL_REFRESH_WINDOW'])
            click.echo(
                f"Refreshed {stats['refreshed']}, skipped {stats['skipped']}, failed {stats['failed']}"
            )

        @app.cli.command('purge-sessions')
        def purge_sessions_command():
            """Delete expired admin and visitor sessions."""
            click.echo(f"Purged {SessionStore.purge_expired()} expired sessions")

    def _start_scheduler(self, app):
        from .modules.content import URLRefreshScheduler

        if not self.storage.signs_urls or app.config.get('TESTING'):
            return
        if not app.config.get('URL_REFRESH_ENABLED', True):
            return
        # The reloader parent process never serves requests
        if app.debug and os.environ.get('WERKZEUG_RUN_MAIN') != 'true':
            return

        self.scheduler = URLRefreshScheduler(
            app, app.config['URL_REFRESH_INTERVAL'], app.config['URL_REFRESH_WINDOW']
        )
        self.scheduler.start()


__all__ = ['CampusCMS', '__version__']
