from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from datetime import date

from poker.models import AdminUser

admin = Blueprint('admin', __name__)

MAX_LIMIT = 1000


def _registry():
    return current_app.extensions['room_registry']


def _audit():
    return current_app.extensions['audit_logger']


def _parse_limit(default):
    raw = request.args.get('limit')
    if raw is None:
        return default
    try:
        limit = int(raw)
    except ValueError:
        return None
    return max(1, min(limit, MAX_LIMIT))


@admin.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    username = data.get('username')
    password = data.get('password')
    if not username or not password:
        return jsonify({'error': 'Missing username or password'}), 400

    expected = current_app.config.get('ADMIN_USERNAME')
    valid = username == expected and AdminUser.check_password(
        current_app.config.get('ADMIN_PASSWORD_HASH'), password
    )
    _audit().log_action(
        'admin_login_attempt',
        user_name=username,
        details={'attempt': 'successful' if valid else 'failed'},
        ip=request.remote_addr,
        user_agent=request.headers.get('User-Agent'),
    )
    if not valid:
        current_app.logger.warning(f"[admin-login-failed] user={username}")
        return jsonify({'error': 'Invalid username or password'}), 401

    user = AdminUser(username)
    login_user(user)
    return jsonify({'success': True, 'user': user.to_dict()})


@admin.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})


@admin.route('/status')
def status():
    if current_user.is_authenticated:
        return jsonify({'authenticated': True, 'user': current_user.to_dict()})
    return jsonify({'authenticated': False})


@admin.route('/stats')
@login_required
def stats():
    registry = _registry()
    return jsonify({
        'activeRooms': registry.size,
        'activeUsers': registry.member_count(),
        'summary': _audit().summary(),
    })


@admin.route('/rooms')
@login_required
def rooms():
    return jsonify(_registry().summaries())


@admin.route('/actions')
@login_required
def actions():
    """Action history: by date range, by user, or the most recent entries."""
    audit = _audit()
    start_raw = request.args.get('date')
    user_name = request.args.get('user')

    if start_raw:
        end_raw = request.args.get('endDate')
        try:
            start = date.fromisoformat(start_raw)
            end = date.fromisoformat(end_raw) if end_raw else None
        except ValueError:
            return jsonify({'error': 'Dates must be formatted YYYY-MM-DD'}), 400
        if end is not None and end < start:
            return jsonify({'error': 'endDate must not be before date'}), 400
        return jsonify(audit.actions_by_date(start, end))

    if user_name:
        limit = _parse_limit(100)
        if limit is None:
            return jsonify({'error': 'limit must be an integer'}), 400
        return jsonify(audit.actions_by_user(user_name, limit))

    limit = _parse_limit(50)
    if limit is None:
        return jsonify({'error': 'limit must be an integer'}), 400
    return jsonify(audit.recent_actions(limit))
