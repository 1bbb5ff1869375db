"""
Content Admin Routes
====================

Authenticated CRUD for announcements, photos and videos.

Every mutating request ends in one of three states: success, validation
failure or storage failure. HTML form clients get a redirect plus a one-shot
flash message (failed forms keep their text fields for re-editing); API
clients get a JSON body with the matching status code.
"""

from flask import render_template, request, redirect, url_for, flash, session, jsonify, g

from . import content_admin_bp
from ...core.errors import ValidationError, StorageError, NotFoundError
from ...core.http import wants_json, json_error
from ...core.logging_service import LoggingService
from ...core.storage import read_upload
from ..auth.decorators import admin_required
from ..content.repository import SINGULAR, UPLOAD_CATEGORY, get_repository

KIND = '<any(announcements, photos, videos):kind>'

# Multipart file field per kind
FILE_FIELD = {'photos': 'image', 'videos': 'video'}


# ===== Helper Functions =====

def _submitted_fields():
    """Text fields from a JSON body or a form post. The last value wins for repeated keys."""
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError('Request body must be a JSON object')
        return data
    return {key: values[-1] for key, values in request.form.lists() if key != '_method'}


def _read_upload(kind, fields):
    field = FILE_FIELD.get(kind)
    if field is None:
        return None
    if kind == 'videos' and fields.get('source') == 'youtube':
        return None
    return read_upload(request.files.get(field), UPLOAD_CATEGORY[kind])


def _failed(error, fields, back_to):
    """Map a validation/storage/not-found failure to JSON or flash + redirect"""
    if isinstance(error, StorageError):
        LoggingService.error('storage', error.message, {'details': error.details, 'path': request.path},
                             user_id=g.admin['id'])

    if wants_json():
        return json_error(error.user_message, error.status_code)

    if isinstance(error, ValidationError):
        session['form_data'] = {k: val for k, val in fields.items() if isinstance(val, (str, bool))}
    flash(error.user_message, 'error')
    return redirect(back_to)


def _form_values(item=None):
    """Values to pre-fill a form: a failed submission first, then the stored item"""
    saved = session.pop('form_data', None)
    if saved:
        return saved
    if item is None:
        return {}
    values = dict(item)
    media = values.pop('media', None)
    if media:
        values.update({f"media_{key}": val for key, val in media.items()})
    return values


# ===== Routes =====

@content_admin_bp.route(f'/{KIND}')
@admin_required
def list_items(kind):
    """Admin listing: everything, newest first"""
    items = get_repository().list(kind)
    if wants_json():
        return jsonify({'success': True, 'items': items})
    return render_template('content_admin/list.html', kind=kind, label=SINGULAR[kind], items=items)


@content_admin_bp.route(f'/{KIND}/new')
@admin_required
def new_item(kind):
    return render_template(
        'content_admin/form.html',
        kind=kind, label=SINGULAR[kind], item=None, form=_form_values(),
        file_field=FILE_FIELD.get(kind),
    )


@content_admin_bp.route(f'/{KIND}', methods=['POST'])
@admin_required
def create_item(kind):
    fields = {}
    try:
        fields = _submitted_fields()
        item = get_repository().create(kind, fields, g.admin['id'], upload=_read_upload(kind, fields))
    except (ValidationError, StorageError) as e:
        return _failed(e, fields, url_for('content_admin.new_item', kind=kind))

    if wants_json():
        return jsonify({'success': True, 'item': item}), 201

    flash(f"{SINGULAR[kind]} created successfully", 'success')
    return redirect(url_for('content_admin.list_items', kind=kind))


@content_admin_bp.route(f'/{KIND}/<item_id>')
@admin_required
def get_item(kind, item_id):
    try:
        item = get_repository().get(kind, item_id)
    except NotFoundError as e:
        return json_error(e.user_message, 404)
    return jsonify({'success': True, 'item': item})


@content_admin_bp.route(f'/{KIND}/<item_id>/edit')
@admin_required
def edit_item(kind, item_id):
    try:
        item = get_repository().get(kind, item_id)
    except NotFoundError as e:
        flash(e.user_message, 'error')
        return redirect(url_for('content_admin.list_items', kind=kind))

    return render_template(
        'content_admin/form.html',
        kind=kind, label=SINGULAR[kind], item=item, form=_form_values(item),
        file_field=FILE_FIELD.get(kind),
    )


@content_admin_bp.route(f'/{KIND}/<item_id>', methods=['PUT', 'PATCH', 'POST'])
@admin_required
def update_item(kind, item_id):
    fields = {}
    try:
        fields = _submitted_fields()
        item = get_repository().update(
            kind, item_id, fields, upload=_read_upload(kind, fields), user_id=g.admin['id']
        )
    except NotFoundError as e:
        return _failed(e, fields, url_for('content_admin.list_items', kind=kind))
    except (ValidationError, StorageError) as e:
        return _failed(e, fields, url_for('content_admin.edit_item', kind=kind, item_id=item_id))

    if wants_json():
        return jsonify({'success': True, 'item': item})

    flash(f"{SINGULAR[kind]} updated successfully", 'success')
    return redirect(url_for('content_admin.list_items', kind=kind))


@content_admin_bp.route(f'/{KIND}/<item_id>', methods=['DELETE'])
@content_admin_bp.route(f'/{KIND}/<item_id>/delete', methods=['POST'])
@admin_required
def delete_item(kind, item_id):
    try:
        get_repository().delete(kind, item_id, user_id=g.admin['id'])
    except NotFoundError as e:
        return _failed(e, {}, url_for('content_admin.list_items', kind=kind))

    if wants_json():
        return jsonify({'success': True})

    flash(f"{SINGULAR[kind]} deleted successfully", 'success')
    return redirect(url_for('content_admin.list_items', kind=kind))
