"""
Session Manager
===============

Server-side sessions. The client only ever holds an opaque random token; the
sessions table (keyed by the SHA-256 of that token) is authoritative, so a
token without a live record is worthless and logins survive restarts and
multiple server processes.

The same table backs Flask's `session` through ServerSideSessionInterface,
which keeps flash messages server-side and read-once.
"""

import json
import hashlib
import secrets
import logging
from datetime import timedelta

from flask.sessions import SessionInterface, SessionMixin
from werkzeug.datastructures import CallbackDict

from ...core.config import get_config_value
from ...core.database import Database, utcnow, to_timestamp, from_timestamp
from ...core.errors import AuthError, PersistenceError
from ...core.logging_service import LoggingService
from .database import AdminDatabase, normalize_username

logger = logging.getLogger(__name__)


def init_sessions_table():
    with Database.transaction() as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS sessions (
                session_key TEXT PRIMARY KEY,
                principal_id TEXT,
                data TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL,
                expires_at TEXT NOT NULL
            )
        ''')
        conn.execute('CREATE INDEX IF NOT EXISTS idx_sessions_expires ON sessions(expires_at)')


def hash_token(token):
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def session_lifetime():
    return timedelta(seconds=int(get_config_value('SESSION_LIFETIME', 24 * 60 * 60)))


class SessionStore:
    """CRUD on the sessions table"""

    @staticmethod
    def create(principal_id=None, data=None):
        token = secrets.token_urlsafe(32)
        now = utcnow()
        record = {
            'token': token,
            'principal_id': principal_id,
            'data': data or {},
            'created_at': now,
            'expires_at': now + session_lifetime(),
        }
        with Database.transaction() as conn:
            conn.execute('''
                INSERT INTO sessions (session_key, principal_id, data, created_at, expires_at)
                VALUES (?, ?, ?, ?, ?)
            ''', (hash_token(token), principal_id, json.dumps(record['data']),
                  to_timestamp(now), to_timestamp(record['expires_at'])))
        return record

    @staticmethod
    def load(token):
        """Return the live record for a token, or None. Expired records are removed."""
        if not token:
            return None

        with Database.transaction() as conn:
            row = conn.execute(
                'SELECT * FROM sessions WHERE session_key = ?', (hash_token(token),)
            ).fetchone()

        if row is None:
            return None

        expires_at = from_timestamp(row['expires_at'])
        if expires_at <= utcnow():
            SessionStore.delete(token)
            return None

        return {
            'token': token,
            'principal_id': row['principal_id'],
            'data': json.loads(row['data'] or '{}'),
            'created_at': from_timestamp(row['created_at']),
            'expires_at': expires_at,
        }

    @staticmethod
    def save(token, data):
        """Write session data and slide the expiry forward"""
        with Database.transaction() as conn:
            cursor = conn.execute(
                'UPDATE sessions SET data = ?, expires_at = ? WHERE session_key = ?',
                (json.dumps(data), to_timestamp(utcnow() + session_lifetime()), hash_token(token))
            )
            return cursor.rowcount > 0

    @staticmethod
    def touch(token):
        with Database.transaction() as conn:
            cursor = conn.execute(
                'UPDATE sessions SET expires_at = ? WHERE session_key = ?',
                (to_timestamp(utcnow() + session_lifetime()), hash_token(token))
            )
            return cursor.rowcount > 0

    @staticmethod
    def delete(token):
        if not token:
            return False
        with Database.transaction() as conn:
            cursor = conn.execute('DELETE FROM sessions WHERE session_key = ?', (hash_token(token),))
            return cursor.rowcount > 0

    @staticmethod
    def purge_expired():
        with Database.transaction() as conn:
            cursor = conn.execute(
                'DELETE FROM sessions WHERE expires_at <= ?', (to_timestamp(utcnow()),)
            )
            deleted = cursor.rowcount
        if deleted:
            logger.info(f"Purged {deleted} expired sessions")
        return deleted


# ===== Session Manager operations =====

def login(username, password, data=None):
    """Verify credentials and issue a new session record. Raises AuthError."""
    principal = AdminDatabase.verify_credentials(username, password)
    if principal is None:
        LoggingService.log_security_event(
            'Failed admin login', {'username': normalize_username(username)}
        )
        raise AuthError('Invalid username or password')

    record = SessionStore.create(principal['id'], data)
    LoggingService.log_user_action('auth', 'login', user_id=principal['id'])
    return record


def authenticate(token):
    """Return the principal for a live session token, otherwise None.

    Each successful call slides the session expiry forward.
    """
    record = SessionStore.load(token)
    if record is None or not record['principal_id']:
        return None

    principal = AdminDatabase.get_admin_by_id(record['principal_id'])
    if principal is None:
        SessionStore.delete(token)
        return None

    SessionStore.touch(token)
    return principal


def logout(token):
    """Destroy the session record. Logging out twice is not an error."""
    record = SessionStore.load(token)
    SessionStore.delete(token)
    if record and record['principal_id']:
        LoggingService.log_user_action('auth', 'logout', user_id=record['principal_id'])


# ===== Flask integration =====

class ServerSideSession(CallbackDict, SessionMixin):
    """Flask session whose contents live in the sessions table"""

    def __init__(self, initial=None, sid=None, principal_id=None, stale_cookie=False):
        def on_update(self):
            self.modified = True

        super().__init__(initial, on_update)
        self.sid = sid
        self.principal_id = principal_id
        self.stale_cookie = stale_cookie
        self.new = sid is None
        self.modified = False

    def regenerate(self, record):
        """Move this session onto a freshly issued record, dropping the old one"""
        if self.sid and self.sid != record['token']:
            SessionStore.delete(self.sid)
        self.sid = record['token']
        self.principal_id = record['principal_id']
        self.modified = True

    def invalidate(self):
        """Forget everything; the response will clear the cookie"""
        self.clear()
        if self.sid:
            self.stale_cookie = True
        self.sid = None
        self.principal_id = None


class ServerSideSessionInterface(SessionInterface):
    session_class = ServerSideSession

    def open_session(self, app, request):
        token = request.cookies.get(self.get_cookie_name(app))
        if not token:
            return self.session_class()

        try:
            record = SessionStore.load(token)
        except PersistenceError as e:
            logger.error(f"Could not load session: {e.details}")
            return self.session_class(stale_cookie=True)

        if record is None:
            return self.session_class(stale_cookie=True)
        return self.session_class(record['data'], sid=token, principal_id=record['principal_id'])

    def save_session(self, app, session, response):
        name = self.get_cookie_name(app)
        domain = self.get_cookie_domain(app)
        path = self.get_cookie_path(app)
        secure = self.get_cookie_secure(app)
        samesite = self.get_cookie_samesite(app)
        httponly = self.get_cookie_httponly(app)

        if session.sid is None:
            if not session:
                if session.stale_cookie:
                    response.delete_cookie(name, domain=domain, path=path, secure=secure,
                                           samesite=samesite, httponly=httponly)
                return
            record = SessionStore.create(None, dict(session))
            session.sid = record['token']
        elif session.modified:
            if not session and session.principal_id is None:
                SessionStore.delete(session.sid)
                response.delete_cookie(name, domain=domain, path=path, secure=secure,
                                       samesite=samesite, httponly=httponly)
                return
            SessionStore.save(session.sid, dict(session))
        else:
            return

        response.set_cookie(
            name, session.sid,
            httponly=httponly, secure=secure, samesite=samesite,
            domain=domain, path=path,
        )
        response.vary.add('Cookie')
