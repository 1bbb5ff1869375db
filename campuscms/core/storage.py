"""
Storage Gateway
===============

Blob upload with cloud (S3-compatible: AWS S3, DigitalOcean Spaces, Backblaze B2)
/ local branching. Both backends expose the same three operations:

    store(data, mime_type, original_name, folder, category) -> BlobRef
    url(storage_key) -> str
    delete(storage_key) -> bool

Uploads are checked against a per-category policy (allowed MIME types,
extensions and a size ceiling) before any byte reaches a backend.
"""

import os
import time
import secrets
import logging
import tempfile
from collections import namedtuple
from datetime import timedelta

from werkzeug.utils import secure_filename

from .database import utcnow
from .errors import ValidationError, StorageError, ConfigurationError

logger = logging.getLogger(__name__)

MIB = 1024 * 1024

# Presigned URLs cannot outlive seven days on S3
MAX_SIGNED_URL_EXPIRY = 7 * 24 * 60 * 60

BlobRef = namedtuple('BlobRef', ['url', 'storage_key', 'expires_at'])
Upload = namedtuple('Upload', ['data', 'mime_type', 'filename'])


class UploadPolicy:
    """Allowed types and size ceiling for one content category"""

    def __init__(self, category, mime_types, extensions, max_bytes, type_message):
        self.category = category
        self.mime_types = frozenset(mime_types)
        self.extensions = frozenset(extensions)
        self.max_bytes = max_bytes
        self.type_message = type_message

    def check_type(self, mime_type, original_name):
        ext = os.path.splitext(original_name or '')[1].lower()
        if (mime_type or '').lower() not in self.mime_types or ext not in self.extensions:
            raise ValidationError(self.type_message)

    def check_size(self, size):
        if size > self.max_bytes:
            raise ValidationError(
                f"File too large: {self.category} uploads must be "
                f"{self.max_bytes // MIB} MB or smaller"
            )
        if size == 0:
            raise ValidationError('Uploaded file is empty')

    def validate(self, size, mime_type, original_name):
        self.check_type(mime_type, original_name)
        self.check_size(size)


UPLOAD_POLICIES = {
    'image': UploadPolicy(
        'image',
        {'image/jpeg', 'image/jpg', 'image/png', 'image/gif'},
        {'.jpg', '.jpeg', '.png', '.gif'},
        5 * MIB,
        'Only images (JPEG, JPG, PNG, GIF) are allowed',
    ),
    'video': UploadPolicy(
        'video',
        {'video/mp4', 'video/webm', 'video/ogg'},
        {'.mp4', '.webm', '.ogg', '.ogv'},
        50 * MIB,
        'Only videos (MP4, WebM, OGG) are allowed',
    ),
}


def get_policy(category):
    try:
        return UPLOAD_POLICIES[category]
    except KeyError:
        raise ValueError(f"Unknown upload category: {category}")


def read_upload(file_storage, category):
    """Read a Werkzeug FileStorage into an Upload, enforcing the category policy.

    Reads at most max_bytes + 1 so an oversized file is rejected without
    buffering all of it. Returns None when no file was submitted.
    """
    if file_storage is None or not file_storage.filename:
        return None

    policy = get_policy(category)
    policy.check_type(file_storage.mimetype, file_storage.filename)
    data = file_storage.stream.read(policy.max_bytes + 1)
    policy.check_size(len(data))
    return Upload(data, file_storage.mimetype, file_storage.filename)


class BlobStorage:
    """Common behaviour for storage backends"""
    name = 'base'
    signs_urls = False

    def store(self, data, mime_type, original_name, folder, category):
        """Validate and persist a blob. Returns BlobRef(url, storage_key, expires_at)."""
        get_policy(category).validate(len(data), mime_type, original_name)

        storage_key = self.generate_key(folder, original_name)
        self._put(storage_key, data, mime_type)
        url, expires_at = self.url_with_expiry(storage_key)
        logger.info(f"Stored {len(data)} bytes as {storage_key} ({self.name})")
        return BlobRef(url, storage_key, expires_at)

    @staticmethod
    def generate_key(folder, original_name):
        """<folder>/<epoch ms>-<random hex><original extension>"""
        ext = os.path.splitext(secure_filename(original_name or ''))[1].lower()
        folder = '/'.join(secure_filename(part) for part in (folder or '').split('/') if part)
        name = f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{ext}"
        return f"{folder}/{name}" if folder else name

    def url_with_expiry(self, storage_key):
        return self.url(storage_key), None

    def url(self, storage_key):
        raise NotImplementedError

    def delete(self, storage_key):
        raise NotImplementedError

    def check(self):
        """Health check, returns a dict with at least a 'status' key"""
        raise NotImplementedError

    def _put(self, storage_key, data, mime_type):
        raise NotImplementedError


class LocalStorage(BlobStorage):
    """Blobs on the local filesystem, served by the public blueprint at /uploads"""
    name = 'local'

    def __init__(self, root, base_url='/uploads'):
        self.root = os.path.abspath(root)
        self.base_url = base_url.rstrip('/')

    def path_for(self, storage_key):
        full_path = os.path.realpath(os.path.join(self.root, storage_key))
        root = os.path.realpath(self.root)
        if not full_path.startswith(root + os.sep):
            raise StorageError('Invalid storage key', details=storage_key)
        return full_path

    def _put(self, storage_key, data, mime_type):
        filepath = self.path_for(storage_key)
        try:
            os.makedirs(os.path.dirname(filepath), exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(filepath))
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(data)
                os.replace(tmp_path, filepath)
            except OSError:
                # Never leave a half-written temp file in the upload tree
                try:
                    os.unlink(tmp_path)
                except FileNotFoundError:
                    pass
                raise
        except OSError as e:
            logger.error(f"Local storage write failed for {storage_key}: {e}")
            raise StorageError('Local storage write failed', details=str(e)) from e

    def url(self, storage_key):
        return f"{self.base_url}/{storage_key}"

    def exists(self, storage_key):
        return os.path.isfile(self.path_for(storage_key))

    def delete(self, storage_key):
        if not storage_key:
            return False
        filepath = self.path_for(storage_key)
        try:
            os.unlink(filepath)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError('Local storage delete failed', details=str(e)) from e

    def check(self):
        os.makedirs(self.root, exist_ok=True)
        writable = os.access(self.root, os.W_OK)
        return {'status': 'ok' if writable else 'critical', 'backend': self.name}


class S3Storage(BlobStorage):
    """S3-compatible object storage via boto3, with optional presigned URLs"""
    name = 's3'

    def __init__(self, bucket, region=None, endpoint_url=None, access_key=None,
                 secret_key=None, prefix='uploads', signed=True,
                 expiry=MAX_SIGNED_URL_EXPIRY, timeout=30, client=None):
        self.bucket = bucket
        self.region = region or 'us-east-1'
        self.endpoint_url = endpoint_url
        self.access_key = access_key
        self.secret_key = secret_key
        self.prefix = (prefix or '').strip('/')
        self.signs_urls = bool(signed)
        self.expiry = min(int(expiry), MAX_SIGNED_URL_EXPIRY)
        self.timeout = timeout
        self._client = client

    @property
    def client(self):
        if self._client is None:
            import boto3
            from botocore.config import Config as BotoConfig

            self._client = boto3.client(
                's3',
                region_name=self.region,
                endpoint_url=self.endpoint_url,
                aws_access_key_id=self.access_key,
                aws_secret_access_key=self.secret_key,
                config=BotoConfig(
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    retries={'max_attempts': 2},
                ),
            )
        return self._client

    def object_key(self, storage_key):
        return f"{self.prefix}/{storage_key}" if self.prefix else storage_key

    def _put(self, storage_key, data, mime_type):
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=self.object_key(storage_key),
                Body=data,
                ContentType=mime_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload failed for {storage_key}: {e}")
            raise StorageError('Object storage upload failed', details=str(e)) from e

    def url_with_expiry(self, storage_key):
        url = self.url(storage_key)
        if self.signs_urls:
            return url, utcnow() + timedelta(seconds=self.expiry)
        return url, None

    def url(self, storage_key):
        from botocore.exceptions import BotoCoreError, ClientError

        key = self.object_key(storage_key)
        if not self.signs_urls:
            if self.endpoint_url:
                return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
            return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

        try:
            return self.client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket, 'Key': key},
                ExpiresIn=self.expiry,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError('Could not sign object URL', details=str(e)) from e

    def delete(self, storage_key):
        from botocore.exceptions import BotoCoreError, ClientError

        if not storage_key:
            return False
        key = self.object_key(storage_key)
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code')
            if code in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise StorageError('Object storage delete failed', details=str(e)) from e
        except BotoCoreError as e:
            raise StorageError('Object storage delete failed', details=str(e)) from e

        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError('Object storage delete failed', details=str(e)) from e
        return True

    def check(self):
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self.client.head_bucket(Bucket=self.bucket)
            return {'status': 'ok', 'backend': self.name}
        except (BotoCoreError, ClientError) as e:
            return {'status': 'critical', 'backend': self.name, 'error': str(e)}


def create_storage(config):
    """Build the configured backend from a mapping (usually app.config)"""
    storage_type = (config.get('STORAGE_TYPE') or 'local').lower()

    if storage_type == 'local':
        return LocalStorage(config.get('UPLOAD_FOLDER') or 'uploads')

    if storage_type in ('s3', 'cloud'):
        bucket = config.get('S3_BUCKET')
        if not bucket:
            raise ConfigurationError('S3_BUCKET must be set when STORAGE_TYPE is s3')
        return S3Storage(
            bucket,
            region=config.get('S3_REGION'),
            endpoint_url=config.get('S3_ENDPOINT_URL'),
            access_key=config.get('AWS_ACCESS_KEY_ID'),
            secret_key=config.get('AWS_SECRET_ACCESS_KEY'),
            prefix=config.get('S3_PREFIX', 'uploads'),
            signed=config.get('S3_SIGNED_URLS', True),
            expiry=config.get('SIGNED_URL_EXPIRY', MAX_SIGNED_URL_EXPIRY),
            timeout=config.get('STORAGE_TIMEOUT', 30),
        )

    raise ConfigurationError(f"Unknown STORAGE_TYPE: {storage_type}")


def get_storage():
    """The storage backend of the running app"""
    from flask import current_app
    return current_app.extensions['campuscms'].storage
