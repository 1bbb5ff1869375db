"""
Content Module
==============

Announcements, photos and videos: validation, persistence, blob lifecycle
and the periodic re-signing of expiring blob URLs. No routes of its own; the
admin and public blueprints drive it through ContentRepository.
"""

from .repository import (
    KINDS,
    ContentRepository,
    init_content_tables,
    encode_cursor,
    decode_cursor,
    get_repository,
)
from .refresh import refresh_signed_urls, URLRefreshScheduler

__all__ = [
    'KINDS', 'ContentRepository', 'init_content_tables', 'encode_cursor', 'decode_cursor',
    'get_repository',
    'refresh_signed_urls', 'URLRefreshScheduler',
]
