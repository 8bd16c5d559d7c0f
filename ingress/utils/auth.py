# utils/auth.py
from dataclasses import dataclass
from functools import wraps

from flask import jsonify, g
from flask_login import current_user


def authorize(capabilities, required):
    """Pure capability check: does the holder have every required capability?"""
    if isinstance(required, str):
        required = {required}
    return set(required).issubset(capabilities or ())


@dataclass(frozen=True)
class OperatorSession:
    """The signed-in operator, passed explicitly to code that needs it."""
    user_id: str
    email: str
    name: str
    capabilities: frozenset

    @classmethod
    def from_user(cls, user):
        return cls(
            user_id=user.id,
            email=user.email,
            name=user.name,
            capabilities=user.get_capabilities()
        )

    def can(self, capability):
        return authorize(self.capabilities, capability)

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'email': self.email,
            'name': self.name,
            'capabilities': sorted(self.capabilities)
        }


def current_operator():
    """OperatorSession for the current request, or None when anonymous."""
    if not current_user.is_authenticated:
        return None
    if 'operator' not in g:
        g.operator = OperatorSession.from_user(current_user)
    return g.operator


def capability_required(*capabilities):
    """Decorator to require all of the given capabilities."""

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            operator = current_operator()
            if operator is None:
                return jsonify({'success': False, 'error': 'Authentication required',
                                'error_code': 'authentication_required'}), 401

            if not operator.can(capabilities):
                return jsonify({'success': False, 'error': 'Insufficient permissions',
                                'error_code': 'permission_denied'}), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator
