import re
import logging

from ...core.database import Database, utcnow, to_timestamp
from ...core.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r'^\S+@\S+\.\S+$')

# field -> (label, max length)
MESSAGE_FIELDS = {
    'name': ('Name', 100),
    'email': ('Email', 100),
    'subject': ('Subject', 200),
    'message': ('Message', 2000),
}


def init_messages_table():
    with Database.transaction() as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT NOT NULL,
                subject TEXT NOT NULL,
                message TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        ''')
        conn.execute('CREATE INDEX IF NOT EXISTS idx_messages_created ON messages(created_at DESC)')


def validate_message(data):
    """Return the cleaned contact-form fields or raise ValidationError listing every problem"""
    cleaned, errors = {}, []
    for field, (label, limit) in MESSAGE_FIELDS.items():
        value = str(data.get(field) or '').strip()
        if not value:
            errors.append(f"{label} is required")
        elif len(value) > limit:
            errors.append(f"{label} cannot exceed {limit} characters")
        cleaned[field] = value

    if cleaned['email'] and not EMAIL_RE.match(cleaned['email']):
        errors.append('Please enter a valid email address')

    if errors:
        raise ValidationError(errors[0], errors=errors)
    return cleaned


class MessageStore:
    """Contact form submissions"""

    @staticmethod
    def create(data):
        cleaned = validate_message(data)
        cleaned['id'] = Database.new_id()
        cleaned['created_at'] = to_timestamp(utcnow())
        with Database.transaction() as conn:
            conn.execute('''
                INSERT INTO messages (id, name, email, subject, message, created_at)
                VALUES (:id, :name, :email, :subject, :message, :created_at)
            ''', cleaned)
        logger.info(f"Contact message {cleaned['id']} received")
        return cleaned

    @staticmethod
    def list(limit=None):
        sql = 'SELECT * FROM messages ORDER BY created_at DESC, id DESC'
        params = ()
        if limit is not None:
            sql += ' LIMIT ?'
            params = (int(limit),)
        with Database.transaction() as conn:
            return [dict(row) for row in conn.execute(sql, params).fetchall()]

    @staticmethod
    def count():
        with Database.transaction() as conn:
            return conn.execute('SELECT COUNT(*) FROM messages').fetchone()[0]

    @staticmethod
    def delete(message_id):
        with Database.transaction() as conn:
            cursor = conn.execute('DELETE FROM messages WHERE id = ?', (message_id,))
            if cursor.rowcount == 0:
                raise NotFoundError('Message not found')
        return True
