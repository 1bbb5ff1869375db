"""
Error Taxonomy
==============

Every failure the CMS reports is one of these. Each carries the HTTP status the
admin controller and the app-wide error handlers map it to, and a message that
is safe to show to the user.
"""


class CMSError(Exception):
    """Base class for all Campus CMS errors"""
    status_code = 500
    public_message = 'Something went wrong. Please try again later.'

    def __init__(self, message=None, details=None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message
        self.details = details

    def to_dict(self):
        return {'success': False, 'message': self.user_message}

    @property
    def user_message(self):
        return self.public_message


class ValidationError(CMSError):
    """Missing or malformed input. The message is shown to the user as-is."""
    status_code = 400
    public_message = 'Invalid input'

    def __init__(self, message=None, errors=None):
        super().__init__(message)
        self.errors = errors or ([message] if message else [])

    @property
    def user_message(self):
        return self.message


class AuthError(CMSError):
    """Bad credentials or a missing/expired session"""
    status_code = 401
    public_message = 'Invalid username or password'

    @property
    def user_message(self):
        return self.message


class NotFoundError(CMSError):
    status_code = 404
    public_message = 'Not found'

    @property
    def user_message(self):
        return self.message


class StorageError(CMSError):
    """Blob backend failure. Detail stays in the logs."""
    status_code = 503
    public_message = 'The file could not be stored. Please try again.'


class PersistenceError(CMSError):
    """Database failure. Fatal to the request, never to the process."""
    status_code = 500


class ConfigurationError(CMSError):
    """Raised at startup when required configuration is missing"""

    @property
    def user_message(self):
        return self.message
