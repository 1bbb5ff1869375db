"""
Signed URL refresh
==================

Backends that hand out expiring (presigned) URLs need the stored URLs
re-signed before they lapse. The sweep reads candidates, then writes each
one conditionally on its storage key, so it can run next to normal request
traffic without a lock.
"""

import logging
import threading
from datetime import timedelta

from ...core.database import utcnow
from ...core.errors import CMSError
from ...core.logging_service import LoggingService
from .repository import URL_COLUMN

logger = logging.getLogger(__name__)


def refresh_signed_urls(repository, storage, window):
    """
    Re-sign every stored URL expiring within `window` seconds.

    Returns a dict of counts: refreshed, skipped (item changed under us)
    and failed.
    """
    stats = {'refreshed': 0, 'skipped': 0, 'failed': 0}
    if not storage.signs_urls:
        return stats

    before = utcnow() + timedelta(seconds=int(window))
    for kind in URL_COLUMN:
        for item in repository.expiring(kind, before):
            try:
                url, expires_at = storage.url_with_expiry(item['storage_key'])
                if repository.refresh_url(kind, item['id'], item['storage_key'], url, expires_at):
                    stats['refreshed'] += 1
                else:
                    stats['skipped'] += 1
            except CMSError as e:
                stats['failed'] += 1
                LoggingService.error('storage', f"Could not refresh URL for {kind}/{item['id']}", {
                    'storage_key': item['storage_key'],
                    'error': e.details or e.message,
                })

    if stats['refreshed'] or stats['failed']:
        LoggingService.info('storage', 'Signed URL refresh finished', stats)
    return stats


class URLRefreshScheduler:
    """Runs the refresh sweep (and session purge) on a daemon thread"""

    def __init__(self, app, interval, window):
        self.app = app
        self.interval = int(interval)
        self.window = int(window)
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name='campuscms-url-refresh', daemon=True)
        self._thread.start()
        logger.info(f"URL refresh scheduler started (every {self.interval}s)")

    def stop(self, timeout=5):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def run_once(self):
        from ..auth.sessions import SessionStore

        ext = self.app.extensions['campuscms']
        with self.app.app_context():
            stats = refresh_signed_urls(ext.repository, ext.storage, self.window)
            SessionStore.purge_expired()
        return stats

    def _run(self):
        while not self._stop.wait(self.interval):
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"URL refresh sweep failed: {e}")
