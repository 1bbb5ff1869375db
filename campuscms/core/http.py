"""
HTTP helpers shared by the blueprints: method override for HTML forms and
content negotiation between form-style (redirect + flash) and API-style (JSON)
clients.
"""

import io
from urllib.parse import parse_qs

from flask import request, jsonify

OVERRIDABLE_METHODS = {'PUT', 'PATCH', 'DELETE'}


class MethodOverrideMiddleware:
    """
    WSGI middleware letting HTML forms send PUT/PATCH/DELETE through POST.

    The override is read from the `_method` query parameter, the
    X-HTTP-Method-Override header, or a `_method` field of a url-encoded body.
    Multipart bodies are never read here, so authentication still runs before
    any upload is parsed.
    """

    def __init__(self, app, param='_method', max_form_bytes=64 * 1024):
        self.app = app
        self.param = param
        self.max_form_bytes = max_form_bytes

    def __call__(self, environ, start_response):
        if environ.get('REQUEST_METHOD', '').upper() == 'POST':
            method = self._override_from(environ)
            if method in OVERRIDABLE_METHODS:
                environ['campuscms.original_method'] = 'POST'
                environ['REQUEST_METHOD'] = method
        return self.app(environ, start_response)

    def _override_from(self, environ):
        query = parse_qs(environ.get('QUERY_STRING', ''))
        if self.param in query:
            return query[self.param][0].upper()

        header = environ.get('HTTP_X_HTTP_METHOD_OVERRIDE')
        if header:
            return header.upper()

        content_type = environ.get('CONTENT_TYPE', '')
        if content_type.startswith('application/x-www-form-urlencoded'):
            try:
                length = int(environ.get('CONTENT_LENGTH') or 0)
            except ValueError:
                return None
            if 0 < length <= self.max_form_bytes:
                body = environ['wsgi.input'].read(length)
                environ['wsgi.input'] = io.BytesIO(body)
                fields = parse_qs(body.decode('latin-1'))
                if self.param in fields:
                    return fields[self.param][0].upper()
        return None


def wants_json():
    """True for API-style clients: JSON bodies, XHR, or an Accept header preferring JSON"""
    if request.is_json:
        return True
    if request.headers.get('X-Requested-With') == 'XMLHttpRequest':
        return True
    best = request.accept_mimetypes.best_match(['application/json', 'text/html'])
    return best == 'application/json' and \
        request.accept_mimetypes[best] > request.accept_mimetypes['text/html']


def json_response(payload, status=200):
    return jsonify(payload), status


def json_error(message, status):
    return jsonify({'success': False, 'message': message}), status
