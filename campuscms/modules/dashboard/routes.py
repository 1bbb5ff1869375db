"""
Admin Dashboard Routes
======================

Session lifecycle for the administrator plus the dashboard overview,
password change and the contact-message inbox.
"""

from flask import render_template, request, redirect, url_for, flash, session, jsonify, g

from . import dashboard_bp
from ...core.errors import AuthError, ValidationError, NotFoundError
from ...core.http import wants_json, json_error
from ...core.logging_service import LoggingService
from ..auth import sessions
from ..auth.database import AdminDatabase
from ..auth.decorators import admin_required
from ..auth.utils import safe_next_url
from ..content.repository import KINDS, get_repository
from ..public.messages import MessageStore


def _request_data():
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form


@dashboard_bp.route('/login', methods=['GET', 'POST'])
def login():
    """Admin login route"""
    if request.method == 'GET':
        if sessions.authenticate(session.sid):
            return redirect(url_for('admin.dashboard'))
        if request.args.get('logout') == 'success':
            flash('You have been logged out', 'info')
        return render_template('dashboard/login.html')

    data = _request_data()
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''

    if not username or not password:
        message = 'Please enter both username and password'
        if wants_json():
            return json_error(message, 400)
        flash(message, 'error')
        return render_template('dashboard/login.html', username=username), 400

    try:
        record = sessions.login(username, password)
    except AuthError as e:
        if wants_json():
            return json_error(e.user_message, 401)
        flash(e.user_message, 'error')
        return render_template('dashboard/login.html', username=username), 401

    # Fresh record and token: nothing from the anonymous session carries over
    session.clear()
    session.regenerate(record)

    if wants_json():
        return jsonify({'success': True, 'redirect': url_for('admin.dashboard')})

    flash('Login successful', 'success')
    return redirect(safe_next_url(request.args.get('next'), url_for('admin.dashboard')))


@dashboard_bp.route('/logout')
def logout():
    """Admin logout route"""
    sessions.logout(session.sid)
    session.invalidate()

    if wants_json():
        return jsonify({'success': True})
    return redirect(url_for('admin.login', logout='success'))


@dashboard_bp.route('/')
@dashboard_bp.route('/dashboard')
@admin_required
def dashboard():
    """Admin dashboard with content counts and the latest messages"""
    repository = get_repository()
    counts = {kind: repository.count(kind) for kind in KINDS}
    counts['messages'] = MessageStore.count()

    if wants_json():
        return jsonify({'success': True, 'counts': counts})

    return render_template(
        'dashboard/dashboard.html',
        counts=counts,
        recent_messages=MessageStore.list(limit=5),
    )


@dashboard_bp.route('/change-password', methods=['GET', 'POST'])
@admin_required
def change_password():
    """Change admin password"""
    if request.method == 'GET':
        return render_template('dashboard/change_password.html')

    data = _request_data()
    current_password = data.get('current_password') or ''
    new_password = data.get('new_password') or ''
    confirm_password = data.get('confirm_password') or ''

    try:
        if not all([current_password, new_password, confirm_password]):
            raise ValidationError('All fields are required')
        if new_password != confirm_password:
            raise ValidationError('New passwords do not match')
        AdminDatabase.change_password(g.admin['id'], current_password, new_password)
    except (AuthError, ValidationError) as e:
        status = 400 if isinstance(e, AuthError) else e.status_code
        if wants_json():
            return json_error(e.user_message, status)
        flash(e.user_message, 'error')
        return redirect(url_for('admin.change_password'))

    LoggingService.log_user_action('auth', 'change password', user_id=g.admin['id'])

    if wants_json():
        return jsonify({'success': True, 'message': 'Password changed successfully'})
    flash('Password changed successfully', 'success')
    return redirect(url_for('admin.dashboard'))


@dashboard_bp.route('/messages')
@admin_required
def messages():
    """Contact-form inbox"""
    items = MessageStore.list()
    if wants_json():
        return jsonify({'success': True, 'items': items})
    return render_template('dashboard/messages.html', messages=items)


@dashboard_bp.route('/messages/<message_id>', methods=['DELETE'])
@admin_required
def delete_message(message_id):
    try:
        MessageStore.delete(message_id)
    except NotFoundError as e:
        if wants_json():
            return json_error(e.user_message, 404)
        flash(e.user_message, 'error')
        return redirect(url_for('admin.messages'))

    LoggingService.log_user_action('messages', 'delete message', user_id=g.admin['id'],
                                   details={'id': message_id})

    if wants_json():
        return jsonify({'success': True})
    flash('Message deleted', 'success')
    return redirect(url_for('admin.messages'))
