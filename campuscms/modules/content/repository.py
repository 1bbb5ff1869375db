"""
Content Repository
==================

CRUD for the three content kinds (announcements, photos, videos) over one
SQLite table each, with blob handling delegated to the storage backend.

Ordering rules for anything that touches a blob:
- create: store blob, insert record; a failed insert deletes the new blob
- update: store new blob, write record, then delete the old blob; a failed
  write deletes the new blob and leaves the old one referenced
- delete: remove record, then delete the blob best-effort
"""

import base64
import binascii
import logging

from ...core.database import Database, utcnow, to_timestamp
from ...core.errors import CMSError, NotFoundError, StorageError, ValidationError
from ...core.logging_service import LoggingService
from . import validators as v

logger = logging.getLogger(__name__)

KINDS = ('announcements', 'photos', 'videos')

# Upload category per kind; announcements carry no blob
UPLOAD_CATEGORY = {'photos': 'image', 'videos': 'video'}

FLAG_COLUMN = {
    'announcements': 'is_active',
    'photos': 'is_featured',
    'videos': 'is_featured',
}
FLAG_DEFAULT = {'is_active': True, 'is_featured': False}

AUTHOR_COLUMN = {
    'announcements': 'author_id',
    'photos': 'uploaded_by',
    'videos': 'uploaded_by',
}

URL_COLUMN = {'photos': 'image_url', 'videos': 'video_url'}

SINGULAR = {'announcements': 'Announcement', 'photos': 'Photo', 'videos': 'Video'}


def init_content_tables():
    """Create the content tables if they don't exist"""
    with Database.transaction() as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS announcements (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                content TEXT NOT NULL,
                media_title TEXT,
                media_description TEXT,
                media_url TEXT,
                media_type TEXT,
                is_active INTEGER NOT NULL DEFAULT 1,
                author_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        ''')
        conn.execute('''
            CREATE TABLE IF NOT EXISTS photos (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                image_url TEXT NOT NULL,
                storage_key TEXT NOT NULL,
                url_expires_at TEXT,
                is_featured INTEGER NOT NULL DEFAULT 0,
                uploaded_by TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        ''')
        conn.execute('''
            CREATE TABLE IF NOT EXISTS videos (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                video_url TEXT NOT NULL,
                source TEXT NOT NULL,
                storage_key TEXT,
                url_expires_at TEXT,
                is_featured INTEGER NOT NULL DEFAULT 0,
                uploaded_by TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        ''')
        for kind in KINDS:
            conn.execute(
                f'CREATE INDEX IF NOT EXISTS idx_{kind}_created ON {kind}(created_at DESC, id DESC)'
            )


def encode_cursor(item):
    """Opaque keyset cursor pointing just past `item` in newest-first order"""
    raw = f"{item['created_at']}|{item['id']}".encode('utf-8')
    return base64.urlsafe_b64encode(raw).decode('ascii')


def decode_cursor(cursor):
    try:
        raw = base64.urlsafe_b64decode(cursor.encode('ascii')).decode('utf-8')
        created_at, item_id = raw.split('|', 1)
    except (ValueError, UnicodeError, binascii.Error):
        raise ValidationError('Invalid cursor')
    if not created_at or not item_id:
        raise ValidationError('Invalid cursor')
    return created_at, item_id


def _flatten_media(fields):
    """Accept the embedded media object (JSON) as well as flat media_* form fields"""
    flat = dict(fields)
    media = flat.pop('media', None)
    if isinstance(media, dict):
        for key in ('title', 'description', 'url'):
            if key in media:
                flat.setdefault(f"media_{key}", media[key])
    return flat


def _to_item(kind, row):
    item = dict(row)
    flag = FLAG_COLUMN[kind]
    item[flag] = bool(item[flag])
    if kind == 'announcements':
        item['media'] = {
            'title': item.pop('media_title'),
            'description': item.pop('media_description'),
            'url': item.pop('media_url'),
            'type': item.pop('media_type'),
        }
    return item


class ContentRepository:
    """Persistence for announcements, photos and videos"""

    def __init__(self, storage):
        self.storage = storage

    @staticmethod
    def _check_kind(kind):
        if kind not in KINDS:
            raise NotFoundError(f"Unknown content type: {kind}")
        return kind

    # ===== Validation =====

    def _prepare(self, kind, fields, current, upload):
        """
        Merge submitted fields over the current record (or defaults) and
        validate the result. Returns (values, store_upload).
        """
        fields = v.normalize_fields(fields)
        values = dict(current) if current else {FLAG_COLUMN[kind]: FLAG_DEFAULT[FLAG_COLUMN[kind]]}

        body_field = 'content' if kind == 'announcements' else 'description'
        for key in ('title', body_field):
            if key in fields or current is None:
                values[key] = v.clean_text(fields.get(key))

        v.require(values.get('title'), 'Title')
        v.max_length(values['title'], v.TITLE_MAX, 'Title')
        v.require(values.get(body_field), 'Content' if kind == 'announcements' else 'Description')
        if kind != 'announcements':
            v.max_length(values[body_field], v.DESCRIPTION_MAX, 'Description')

        flag = FLAG_COLUMN[kind]
        if flag in fields:
            values[flag] = v.parse_bool(fields[flag])

        if kind == 'announcements':
            if upload is not None:
                raise ValidationError('Announcements do not accept file uploads')
            return self._prepare_announcement(fields, values, current), False
        if kind == 'photos':
            if upload is None and current is None:
                raise ValidationError('Please upload an image')
            return values, upload is not None
        return self._prepare_video(fields, values, current, upload)

    @staticmethod
    def _prepare_announcement(fields, values, current):
        fields = _flatten_media(fields)
        for key in ('media_title', 'media_description', 'media_url'):
            if key in fields or current is None:
                values[key] = v.clean_text(fields.get(key)) or None
        values['media_url'] = v.normalize_url(values['media_url'])

        v.max_length(values['media_title'], v.MEDIA_TITLE_MAX, 'Media title')
        v.max_length(values['media_description'], v.DESCRIPTION_MAX, 'Media description')
        if values['media_url'] and not v.is_valid_url(values['media_url']):
            raise ValidationError(f"{values['media_url']} is not a valid URL")

        values['media_type'] = v.infer_media_type(values['media_url'])
        return values

    @staticmethod
    def _prepare_video(fields, values, current, upload):
        source = v.clean_text(fields.get('source')) or (current or {}).get('source') or 'upload'
        if source not in v.VIDEO_SOURCES:
            raise ValidationError('Video source must be upload or youtube')

        if source == 'youtube':
            youtube_url = v.clean_text(fields.get('youtube_url'))
            if youtube_url:
                values['video_url'] = v.youtube_embed_url(youtube_url)
            elif not (current and current['source'] == 'youtube'):
                raise ValidationError('Please provide a YouTube URL')
            values['source'] = 'youtube'
            values['storage_key'] = None
            values['url_expires_at'] = None
            if not v.is_embed_url(values['video_url']):
                raise ValidationError('Invalid YouTube URL')
            return values, False

        has_blob = bool(current and current['source'] == 'upload' and current['storage_key'])
        if upload is None and not has_blob:
            raise ValidationError('Please upload a video file')
        values['source'] = 'upload'
        return values, upload is not None

    def _store_upload(self, kind, upload, values):
        blob = self.storage.store(
            upload.data, upload.mime_type, upload.filename, kind, UPLOAD_CATEGORY[kind]
        )
        values[URL_COLUMN[kind]] = blob.url
        values['storage_key'] = blob.storage_key
        values['url_expires_at'] = to_timestamp(blob.expires_at)
        return blob

    def _release(self, storage_key):
        """Best-effort blob delete. Failures are logged, never raised."""
        try:
            return self.storage.delete(storage_key)
        except (StorageError, OSError) as e:
            LoggingService.error('storage', f"Could not delete blob {storage_key}", {
                'storage_key': storage_key,
                'error': getattr(e, 'details', None) or str(e),
            })
            return False

    # ===== Reads =====

    def _fetch_row(self, kind, item_id):
        with Database.transaction() as conn:
            row = conn.execute(f'SELECT * FROM {kind} WHERE id = ?', (item_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"{SINGULAR[kind]} not found")
        return dict(row)

    def get(self, kind, item_id):
        kind = self._check_kind(kind)
        return _to_item(kind, self._fetch_row(kind, item_id))

    def list(self, kind, active_only=False, limit=None, cursor=None):
        """Newest first by (created_at, id). Pass encode_cursor(last_item) to get the next page."""
        kind = self._check_kind(kind)
        clauses, params = [], []

        if active_only:
            clauses.append(f"{FLAG_COLUMN[kind]} = 1")
        if cursor:
            created_at, item_id = decode_cursor(cursor)
            clauses.append('(created_at < ? OR (created_at = ? AND id < ?))')
            params.extend([created_at, created_at, item_id])

        sql = f'SELECT * FROM {kind}'
        if clauses:
            sql += ' WHERE ' + ' AND '.join(clauses)
        sql += ' ORDER BY created_at DESC, id DESC'
        if limit is not None:
            sql += ' LIMIT ?'
            params.append(int(limit))

        with Database.transaction() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_to_item(kind, row) for row in rows]

    def count(self, kind, active_only=False):
        kind = self._check_kind(kind)
        sql = f'SELECT COUNT(*) FROM {kind}'
        if active_only:
            sql += f' WHERE {FLAG_COLUMN[kind]} = 1'
        with Database.transaction() as conn:
            return conn.execute(sql).fetchone()[0]

    def expiring(self, kind, before):
        """Items whose stored blob URL expires at or before `before` (or never recorded one)"""
        kind = self._check_kind(kind)
        if kind not in URL_COLUMN:
            return []
        with Database.transaction() as conn:
            rows = conn.execute(f'''
                SELECT id, storage_key FROM {kind}
                WHERE storage_key IS NOT NULL
                AND (url_expires_at IS NULL OR url_expires_at <= ?)
            ''', (to_timestamp(before),)).fetchall()
        return [dict(row) for row in rows]

    # ===== Writes =====

    def create(self, kind, fields, author_id, upload=None):
        kind = self._check_kind(kind)
        values, store_upload = self._prepare(kind, fields, None, upload)

        blob = self._store_upload(kind, upload, values) if store_upload else None

        now = to_timestamp(utcnow())
        values['id'] = Database.new_id()
        values[AUTHOR_COLUMN[kind]] = author_id
        values['created_at'] = now
        values['updated_at'] = now

        columns = list(values)
        try:
            with Database.transaction() as conn:
                conn.execute(
                    f"INSERT INTO {kind} ({', '.join(columns)}) "
                    f"VALUES ({', '.join('?' for _ in columns)})",
                    [values[c] for c in columns]
                )
        except CMSError:
            if blob is not None:
                logger.warning(f"Insert into {kind} failed, removing new blob {blob.storage_key}")
                self._release(blob.storage_key)
            raise

        LoggingService.log_user_action('content', f"create {kind}", user_id=author_id,
                                       details={'id': values['id']})
        return self.get(kind, values['id'])

    def update(self, kind, item_id, fields, upload=None, user_id=None):
        kind = self._check_kind(kind)
        current = self._fetch_row(kind, item_id)
        values, store_upload = self._prepare(kind, fields, current, upload)

        blob = self._store_upload(kind, upload, values) if store_upload else None
        values['updated_at'] = to_timestamp(utcnow())

        columns = [c for c in values if c not in ('id', 'created_at', AUTHOR_COLUMN[kind])]
        try:
            with Database.transaction() as conn:
                cursor = conn.execute(
                    f"UPDATE {kind} SET {', '.join(f'{c} = ?' for c in columns)} WHERE id = ?",
                    [values[c] for c in columns] + [item_id]
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(f"{SINGULAR[kind]} not found")
        except CMSError:
            if blob is not None:
                logger.warning(f"Update of {kind}/{item_id} failed, removing new blob {blob.storage_key}")
                self._release(blob.storage_key)
            raise

        old_key = current.get('storage_key')
        if old_key and old_key != values.get('storage_key'):
            self._release(old_key)

        LoggingService.log_user_action('content', f"update {kind}", user_id=user_id,
                                       details={'id': item_id})
        return self.get(kind, item_id)

    def delete(self, kind, item_id, user_id=None):
        kind = self._check_kind(kind)
        current = self._fetch_row(kind, item_id)

        with Database.transaction() as conn:
            cursor = conn.execute(f'DELETE FROM {kind} WHERE id = ?', (item_id,))
            if cursor.rowcount == 0:
                raise NotFoundError(f"{SINGULAR[kind]} not found")

        if current.get('storage_key'):
            self._release(current['storage_key'])

        LoggingService.log_user_action('content', f"delete {kind}", user_id=user_id,
                                       details={'id': item_id})
        return True

    def refresh_url(self, kind, item_id, storage_key, url, expires_at):
        """Store a re-signed URL, only if the item still points at the same blob"""
        kind = self._check_kind(kind)
        with Database.transaction() as conn:
            cursor = conn.execute(
                f'UPDATE {kind} SET {URL_COLUMN[kind]} = ?, url_expires_at = ? '
                f'WHERE id = ? AND storage_key = ?',
                (url, to_timestamp(expires_at), item_id, storage_key)
            )
            return cursor.rowcount > 0


def get_repository():
    """The content repository of the running app"""
    from flask import current_app
    return current_app.extensions['campuscms'].repository
