import os
from dotenv import load_dotenv

load_dotenv(override=True)


def _env_int(name, default):
    value = os.getenv(name)
    return int(value) if value not in (None, '') else default


def _env_bool(name, default):
    value = os.getenv(name)
    if value in (None, ''):
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _database_path(url, default):
    """Accept either a plain path or a sqlite:/// URL"""
    if not url:
        return default
    if url.startswith('sqlite:///'):
        return url[len('sqlite:///'):]
    return url


class Config:
    """
    Base configuration for Campus CMS.
    Every value can be overridden through the environment (or a .env file)
    or directly on the Flask app config before CampusCMS(app) runs.
    """
    # Flask settings
    SECRET_KEY = os.getenv('SESSION_SECRET') or os.getenv('FLASK_SECRET_KEY')
    ENVIRONMENT = os.getenv('ENVIRONMENT', 'development')
    MAX_CONTENT_LENGTH = _env_int('MAX_CONTENT_LENGTH', 55 * 1024 * 1024)

    # Database
    DB_DIR = os.getenv('DB_DIR', os.path.join(os.getcwd(), 'databases'))
    CMS_DB = os.getenv('CMS_DB') or _database_path(
        os.getenv('DATABASE_URL'), os.path.join(DB_DIR, 'cms.db'))

    # Bootstrap administrator (never hard-coded)
    ADMIN_USERNAME = os.getenv('ADMIN_USERNAME')
    ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD')
    ADMIN_EMAIL = os.getenv('ADMIN_EMAIL')
    PASSWORD_HASH_METHOD = os.getenv('PASSWORD_HASH_METHOD', 'scrypt')

    # Sessions (seconds, sliding)
    SESSION_LIFETIME = _env_int('SESSION_LIFETIME', 24 * 60 * 60)

    # Blob storage
    STORAGE_TYPE = os.getenv('STORAGE_TYPE', 'local')
    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', os.path.join(os.getcwd(), 'uploads'))
    S3_BUCKET = os.getenv('S3_BUCKET')
    S3_REGION = os.getenv('S3_REGION') or os.getenv('AWS_REGION', 'us-east-1')
    S3_ENDPOINT_URL = os.getenv('S3_ENDPOINT_URL')
    S3_PREFIX = os.getenv('S3_PREFIX', 'uploads')
    S3_SIGNED_URLS = _env_bool('S3_SIGNED_URLS', True)
    AWS_ACCESS_KEY_ID = os.getenv('AWS_ACCESS_KEY_ID')
    AWS_SECRET_ACCESS_KEY = os.getenv('AWS_SECRET_ACCESS_KEY')
    SIGNED_URL_EXPIRY = _env_int('SIGNED_URL_EXPIRY', 7 * 24 * 60 * 60)
    STORAGE_TIMEOUT = _env_int('STORAGE_TIMEOUT', 30)

    # Signed URL refresh sweep
    URL_REFRESH_ENABLED = _env_bool('URL_REFRESH_ENABLED', True)
    URL_REFRESH_INTERVAL = _env_int('URL_REFRESH_INTERVAL', 6 * 60 * 60)
    URL_REFRESH_WINDOW = _env_int('URL_REFRESH_WINDOW', 24 * 60 * 60)

    # Site
    BRAND_NAME = os.getenv('BRAND_NAME', 'Campus College')
    API_CORS_ORIGINS = [o.strip() for o in os.getenv('API_CORS_ORIGINS', '*').split(',') if o.strip()]
    API_PAGE_SIZE = _env_int('API_PAGE_SIZE', 20)

    # Port for local server
    port = _env_int('PORT', 5000)


def get_config_value(key, default=None):
    """Get configuration value: Flask app config first, then Config, then env var"""
    try:
        from flask import current_app
        val = current_app.config.get(key)
        if val is not None:
            return val
    except RuntimeError:
        pass
    val = getattr(Config, key, None)
    if val is not None:
        return val
    return os.getenv(key, default)
