import logging

from werkzeug.security import generate_password_hash, check_password_hash

from ...core.config import get_config_value
from ...core.database import Database, utcnow, to_timestamp
from ...core.errors import ConfigurationError, ValidationError, AuthError
from .utils import validate_password_strength

logger = logging.getLogger(__name__)

# Compared against when the username is unknown, so both failure paths do the same work
_DUMMY_HASH = generate_password_hash('campuscms-dummy-password', method='scrypt')

PUBLIC_FIELDS = ('id', 'username', 'email', 'created_at', 'updated_at')


def normalize_username(username):
    return (username or '').strip().lower()


def init_admin_table():
    """Initialize admin table if it doesn't exist"""
    with Database.transaction() as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS admins (
                id TEXT PRIMARY KEY,
                username TEXT UNIQUE NOT NULL,
                email TEXT,
                password_hash TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        ''')


class AdminDatabase:
    """The credential store: holds the single administrator principal"""

    @staticmethod
    def _hash_password(password):
        method = get_config_value('PASSWORD_HASH_METHOD', 'scrypt')
        return generate_password_hash(password, method=method)

    @staticmethod
    def _needs_rehash(password_hash):
        method = get_config_value('PASSWORD_HASH_METHOD', 'scrypt')
        return not password_hash.startswith(f"{method.split(':')[0]}:")

    @staticmethod
    def _public(row):
        if row is None:
            return None
        return {key: row[key] for key in PUBLIC_FIELDS}

    @staticmethod
    def count_admins():
        with Database.transaction() as conn:
            return conn.execute('SELECT COUNT(*) FROM admins').fetchone()[0]

    @staticmethod
    def get_admin_by_id(admin_id):
        """Get admin by ID (never includes the password hash)"""
        if not admin_id:
            return None
        with Database.transaction() as conn:
            row = conn.execute('SELECT * FROM admins WHERE id = ?', (admin_id,)).fetchone()
        return AdminDatabase._public(row)

    @staticmethod
    def get_admin_by_username(username):
        with Database.transaction() as conn:
            row = conn.execute(
                'SELECT * FROM admins WHERE username = ?', (normalize_username(username),)
            ).fetchone()
        return AdminDatabase._public(row)

    @staticmethod
    def create_admin(username, password, email=None):
        """Create the administrator. Returns the new principal."""
        username = normalize_username(username)
        if not username or not password:
            raise ValidationError('Username and password are required')

        now = to_timestamp(utcnow())
        admin_id = Database.new_id()
        with Database.transaction() as conn:
            conn.execute('''
                INSERT INTO admins (id, username, email, password_hash, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
            ''', (admin_id, username, (email or '').strip() or None,
                  AdminDatabase._hash_password(password), now, now))
        logger.info(f"Created admin principal {username}")
        return AdminDatabase.get_admin_by_id(admin_id)

    @staticmethod
    def ensure_admin(username, password, email):
        """
        Bootstrap: create the administrator from configuration if none exists.

        Raises ConfigurationError when no admin exists and the configuration
        does not supply username, password and email.
        """
        if AdminDatabase.count_admins() > 0:
            return None

        missing = [name for name, value in (
            ('ADMIN_USERNAME', username),
            ('ADMIN_PASSWORD', password),
            ('ADMIN_EMAIL', email),
        ) if not value]
        if missing:
            raise ConfigurationError(
                f"No admin account exists and {', '.join(missing)} "
                f"{'is' if len(missing) == 1 else 'are'} not configured"
            )
        return AdminDatabase.create_admin(username, password, email)

    @staticmethod
    def verify_credentials(username, password):
        """Return the principal for valid credentials, otherwise None"""
        username = normalize_username(username)
        with Database.transaction() as conn:
            row = conn.execute(
                'SELECT * FROM admins WHERE username = ?', (username,)
            ).fetchone()

        if row is None:
            check_password_hash(_DUMMY_HASH, password or '')
            return None

        if not check_password_hash(row['password_hash'], password or ''):
            return None

        if AdminDatabase._needs_rehash(row['password_hash']):
            AdminDatabase._set_password(row['id'], password)
            logger.info(f"Re-hashed password for {username} with the current method")

        return AdminDatabase._public(row)

    @staticmethod
    def verify(username, password):
        return AdminDatabase.verify_credentials(username, password) is not None

    @staticmethod
    def _set_password(admin_id, password):
        with Database.transaction() as conn:
            conn.execute(
                'UPDATE admins SET password_hash = ?, updated_at = ? WHERE id = ?',
                (AdminDatabase._hash_password(password), to_timestamp(utcnow()), admin_id)
            )

    @staticmethod
    def change_password(admin_id, current_password, new_password):
        """Change the admin password after checking the current one"""
        with Database.transaction() as conn:
            row = conn.execute('SELECT * FROM admins WHERE id = ?', (admin_id,)).fetchone()

        if row is None or not check_password_hash(row['password_hash'], current_password or ''):
            raise AuthError('Current password is incorrect')

        if not validate_password_strength(new_password or ''):
            raise ValidationError(
                'Password must be at least 8 characters and contain upper-case, '
                'lower-case and numeric characters'
            )

        AdminDatabase._set_password(admin_id, new_password)
        return True
