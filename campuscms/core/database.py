import os
import sqlite3
import uuid
import logging
from contextlib import contextmanager
from datetime import datetime, timezone

from .config import get_config_value
from .errors import PersistenceError

logger = logging.getLogger(__name__)


def utcnow():
    return datetime.now(timezone.utc)


def to_timestamp(value):
    """Store datetimes as fixed-width ISO strings so they sort lexically"""
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ')


def from_timestamp(value):
    if not value:
        return None
    return datetime.strptime(value, '%Y-%m-%dT%H:%M:%S.%fZ').replace(tzinfo=timezone.utc)


class Database:

    @staticmethod
    def get_db_path():
        return get_config_value('CMS_DB', 'cms.db')

    @staticmethod
    def connect(path=None):
        conn = sqlite3.connect(path or Database.get_db_path(), timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    @contextmanager
    def transaction(path=None):
        """
        Yield a connection that commits on success and rolls back on error.
        sqlite3 errors surface as PersistenceError.
        """
        try:
            conn = Database.connect(path)
        except sqlite3.Error as e:
            raise PersistenceError('Could not open database', details=str(e)) from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Database error: {e}")
            raise PersistenceError('Database operation failed', details=str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def new_id():
        return uuid.uuid4().hex

    @staticmethod
    def ensure_db_dir(path=None):
        db_dir = os.path.dirname(path or Database.get_db_path())
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    @staticmethod
    def ping():
        """Cheap connectivity check for the health endpoint"""
        with Database.transaction() as conn:
            conn.execute('SELECT 1').fetchone()
        return True
