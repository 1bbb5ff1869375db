"""
Campus CMS Core
===============

Configuration, database access, blob storage, logging, errors and HTTP
helpers shared by every module.
"""

from .config import Config, get_config_value
from .database import Database
from .errors import (
    CMSError, ValidationError, AuthError, NotFoundError,
    StorageError, PersistenceError, ConfigurationError,
)
from .logging_service import LoggingService, logger
from .storage import LocalStorage, S3Storage, create_storage, get_storage

__all__ = [
    'Config', 'get_config_value', 'Database',
    'CMSError', 'ValidationError', 'AuthError', 'NotFoundError',
    'StorageError', 'PersistenceError', 'ConfigurationError',
    'LoggingService', 'logger',
    'LocalStorage', 'S3Storage', 'create_storage', 'get_storage',
]
