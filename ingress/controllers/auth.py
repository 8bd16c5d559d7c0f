# controllers/auth.py
"""
Authentication routes for operator login, logout and password management.
"""

from flask import Blueprint, request, jsonify
from flask_login import current_user

from ingress.services.auth_service import AuthService
from ingress.utils.auth import current_operator
from ingress.utils.request_data import json_body

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    """Operator login."""
    data = json_body() or request.form

    success, user, message = AuthService.authenticate_user(
        email=data.get('email', ''),
        password=data.get('password', ''),
        remember_me=bool(data.get('remember_me', False))
    )

    if not success:
        return jsonify({'success': False, 'message': message, 'error_code': 'login_failed'}), 401

    return jsonify({
        'success': True,
        'message': message,
        'operator': current_operator().to_dict()
    })


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Operator logout."""
    AuthService.logout_user_session()
    return jsonify({'success': True, 'message': 'You have been logged out successfully.'})


@auth_bp.route('/me')
def me():
    """Current operator and capabilities."""
    operator = current_operator()
    if operator is None:
        return jsonify({'success': False, 'error': 'Authentication required',
                        'error_code': 'authentication_required'}), 401
    return jsonify({'success': True, 'operator': operator.to_dict()})


@auth_bp.route('/change-password', methods=['POST'])
def change_password():
    """Change the signed-in operator's password. Body: current_password, new_password, confirm_password."""
    if current_operator() is None:
        return jsonify({'success': False, 'error': 'Authentication required',
                        'error_code': 'authentication_required'}), 401

    data = json_body()
    success, message = AuthService.change_password(
        current_user,
        data.get('current_password', ''),
        data.get('new_password', ''),
        data.get('confirm_password', '')
    )

    if not success:
        return jsonify({'success': False, 'message': message, 'error_code': 'password_change_failed'}), 400
    return jsonify({'success': True, 'message': message})


@auth_bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    """Mail a password reset link. Body: email."""
    data = json_body()
    success, message = AuthService.initiate_password_reset(data.get('email', ''))

    if not success:
        return jsonify({'success': False, 'message': message, 'error_code': 'reset_request_failed'}), 400
    return jsonify({'success': True, 'message': message})


@auth_bp.route('/reset-password/<user_id>/<token>', methods=['GET'])
def check_reset_link(user_id, token):
    """Tell the client whether a reset link can still be used."""
    valid, _, message = AuthService.verify_reset_token(user_id, token)
    if not valid:
        return jsonify({'success': False, 'message': message, 'error_code': 'invalid_reset_link'}), 400
    return jsonify({'success': True, 'message': message})


@auth_bp.route('/reset-password/<user_id>/<token>', methods=['POST'])
def reset_password(user_id, token):
    """Set a new password from a reset link. Body: new_password, confirm_password."""
    data = json_body()
    success, message = AuthService.complete_password_reset(
        user_id, token, data.get('new_password', ''), data.get('confirm_password', '')
    )

    if not success:
        return jsonify({'success': False, 'message': message, 'error_code': 'password_reset_failed'}), 400
    return jsonify({'success': True, 'message': message})
