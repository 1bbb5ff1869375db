"""
Centralized logging service for Campus CMS.
Provides structured logging with database storage and easy integration.
"""

import json
import logging
import traceback
from datetime import timedelta

from flask import request, has_request_context

from .database import Database, utcnow, to_timestamp

module_logger = logging.getLogger('campuscms')


def init_logs_table():
    """Ensure the app_logs table exists"""
    with Database.transaction() as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS app_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                level TEXT NOT NULL,
                source TEXT NOT NULL,
                message TEXT NOT NULL,
                details TEXT,
                ip_address TEXT,
                user_agent TEXT,
                request_path TEXT,
                user_id TEXT
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_logs_timestamp ON app_logs(timestamp DESC)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_logs_level ON app_logs(level)")


class LoggingService:
    """Centralized logging service for application-wide logging"""

    @staticmethod
    def _get_request_context():
        """Extract request context information"""
        if not has_request_context():
            return None, None, None

        ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
        if ip_address and ',' in ip_address:
            ip_address = ip_address.split(',')[0].strip()

        return ip_address, request.headers.get('User-Agent', ''), request.path

    @staticmethod
    def log(level, source, message, details=None, user_id=None):
        """
        Log a message to the standard logger and the app_logs table

        Args:
            level (str): Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            source (str): Source component (auth, content, storage, etc.)
            message (str): Main log message
            details (str/dict): Additional details (JSON-encoded if dict)
            user_id (str): Optional principal identifier
        """
        level = level.upper()
        module_logger.log(getattr(logging, level, logging.INFO), f"[{source}] {message}")

        if isinstance(details, dict):
            details = json.dumps(details, indent=2, default=str)

        try:
            ip_address, user_agent, request_path = LoggingService._get_request_context()
            with Database.transaction() as conn:
                conn.execute("""
                    INSERT INTO app_logs
                    (timestamp, level, source, message, details, ip_address, user_agent, request_path, user_id)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    to_timestamp(utcnow()), level, source, message, details,
                    ip_address, user_agent, request_path, user_id
                ))
        except Exception as e:
            # Fall back to the stdout logger only
            module_logger.warning(f"Logging service error: {e}")
            if details:
                module_logger.warning(f"Details: {details}")

    @staticmethod
    def debug(source, message, details=None, user_id=None):
        LoggingService.log('DEBUG', source, message, details, user_id)

    @staticmethod
    def info(source, message, details=None, user_id=None):
        LoggingService.log('INFO', source, message, details, user_id)

    @staticmethod
    def warning(source, message, details=None, user_id=None):
        LoggingService.log('WARNING', source, message, details, user_id)

    @staticmethod
    def error(source, message, details=None, user_id=None):
        LoggingService.log('ERROR', source, message, details, user_id)

    @staticmethod
    def log_user_action(source, action, user_id=None, details=None):
        """Log admin actions (login, create, delete, etc.)"""
        LoggingService.info(source, f"User action: {action}", details, user_id)

    @staticmethod
    def log_error_with_traceback(source, error, details=None):
        """Log error with full traceback"""
        error_details = {
            'error_type': type(error).__name__,
            'error_message': str(error),
            'traceback': traceback.format_exc()
        }
        if details:
            error_details['additional_details'] = details

        LoggingService.error(source, f"Exception occurred: {type(error).__name__}", error_details)

    @staticmethod
    def log_security_event(message, details=None):
        """Log security-related events"""
        LoggingService.warning('security', message, details)

    @staticmethod
    def get_recent_logs(limit=50, level=None):
        with Database.transaction() as conn:
            if level:
                rows = conn.execute(
                    "SELECT * FROM app_logs WHERE level = ? ORDER BY id DESC LIMIT ?",
                    (level.upper(), limit)
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM app_logs ORDER BY id DESC LIMIT ?", (limit,)
                ).fetchall()
        return [dict(row) for row in rows]

    @staticmethod
    def cleanup_old_logs(days_to_keep=30):
        """Clean up old log entries"""
        cutoff = to_timestamp(utcnow() - timedelta(days=days_to_keep))
        with Database.transaction() as conn:
            cursor = conn.execute("DELETE FROM app_logs WHERE timestamp < ?", (cutoff,))
            deleted_count = cursor.rowcount
        LoggingService.info('system', f"Cleaned up {deleted_count} old log entries")
        return deleted_count


# Convenience instance for easy importing
logger = LoggingService()
