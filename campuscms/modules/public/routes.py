"""
Public Site Routes
==================

Public pages, the contact form, the read-only JSON API and local upload
serving. Nothing here requires a login.
"""

import logging

from flask import render_template, request, redirect, url_for, flash, session, jsonify, abort, send_from_directory
from flask_cors import cross_origin

from . import public_bp
from .messages import MessageStore
from ...core.config import Config, get_config_value
from ...core.errors import ValidationError
from ...core.http import wants_json, json_error
from ...core.storage import LocalStorage, get_storage
from ..content.repository import encode_cursor, get_repository

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

# Public API listings: kind -> only items with the display flag set
API_KINDS = {
    'announcements': True,
    'photos': False,
    'videos': False,
}


def _page(kind, active_only, default_limit):
    """One page of items plus the cursor for the next page (None on the last page)"""
    limit = request.args.get('limit', default_limit, type=int)
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    cursor = request.args.get('cursor') or None

    # One extra row tells us whether another page exists
    items = get_repository().list(kind, active_only=active_only, limit=limit + 1, cursor=cursor)
    next_cursor = encode_cursor(items[limit - 1]) if len(items) > limit else None
    return items[:limit], next_cursor


# ===== Pages =====

@public_bp.route('/')
def index():
    """Homepage: latest announcements with featured photos and videos"""
    repository = get_repository()
    return render_template(
        'public/index.html',
        announcements=repository.list('announcements', active_only=True, limit=3),
        photos=repository.list('photos', active_only=True, limit=6),
        videos=repository.list('videos', active_only=True, limit=3),
    )


@public_bp.route('/about')
def about():
    return render_template('public/about.html')


@public_bp.route('/contact', methods=['GET', 'POST'])
def contact():
    """Contact page; POST stores the message for the admin inbox"""
    if request.method == 'GET':
        return render_template('public/contact.html', form=session.pop('form_data', None) or {})

    if request.is_json:
        data = request.get_json(silent=True)
        data = data if isinstance(data, dict) else {}
    else:
        data = request.form

    try:
        MessageStore.create(data)
    except ValidationError as e:
        if wants_json():
            return jsonify({'success': False, 'message': e.user_message, 'errors': e.errors}), 400
        session['form_data'] = {key: (data.get(key) or '') for key in ('name', 'email', 'subject', 'message')}
        flash(e.user_message, 'error')
        return redirect(url_for('public.contact'))

    message = 'Thank you for your message. We will get back to you soon.'
    if wants_json():
        return jsonify({'success': True, 'message': message}), 201
    flash(message, 'success')
    return redirect(url_for('public.contact'))


@public_bp.route('/gallery')
def gallery():
    try:
        photos, next_cursor = _page('photos', False, 24)
    except ValidationError:
        abort(400)
    return render_template('public/gallery.html', photos=photos, next_cursor=next_cursor)


@public_bp.route('/videos')
def videos():
    try:
        items, next_cursor = _page('videos', False, 12)
    except ValidationError:
        abort(400)
    return render_template('public/videos.html', videos=items, next_cursor=next_cursor)


@public_bp.route('/announcements')
def announcements():
    try:
        items, next_cursor = _page('announcements', True, 10)
    except ValidationError:
        abort(400)
    return render_template('public/announcements.html', announcements=items, next_cursor=next_cursor)


@public_bp.route('/uploads/<path:storage_key>')
def uploads(storage_key):
    """Serve blobs held by the local storage backend"""
    storage = get_storage()
    if not isinstance(storage, LocalStorage):
        abort(404)
    return send_from_directory(storage.root, storage_key)


# ===== JSON API =====

@public_bp.route('/api/<any(announcements, photos, videos):kind>', methods=['GET', 'OPTIONS'])
@cross_origin(origins=Config.API_CORS_ORIGINS, supports_credentials=False)
def api_list(kind):
    """
    Public listing endpoint.

    Query params:
        limit: Page size (default API_PAGE_SIZE, max 100)
        cursor: next_cursor from the previous page

    Returns JSON:
        { "success": true, "items": [...], "next_cursor": "..." | null }
    """
    try:
        items, next_cursor = _page(kind, API_KINDS[kind], int(get_config_value('API_PAGE_SIZE', 20)))
    except ValidationError as e:
        return json_error(e.user_message, 400)
    return jsonify({'success': True, 'items': items, 'next_cursor': next_cursor})
