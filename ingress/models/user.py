# models/user.py
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime
import json

from ingress.extensions import db
from .base import BaseModel


class Capability:
    """Define operator capabilities as constants."""

    MANAGE_EVENTS = 'manage_events'
    MANAGE_USERS = 'manage_users'
    IMPORT_ROSTER = 'import_roster'
    EXPORT_DATA = 'export_data'
    SCAN = 'scan'

    @classmethod
    def all(cls):
        return frozenset(
            value for name, value in vars(cls).items()
            if name.isupper() and isinstance(value, str)
        )


class RolePreset:
    """Named capability sets offered when creating an operator account."""
    ADMIN = 'admin'
    SCANNER = 'scanner'
    ADMIN_SCANNER = 'admin_scanner'

    CAPABILITIES = {
        ADMIN: frozenset({
            Capability.MANAGE_EVENTS, Capability.IMPORT_ROSTER, Capability.EXPORT_DATA,
        }),
        SCANNER: frozenset({Capability.SCAN}),
        ADMIN_SCANNER: Capability.all(),
    }

    @classmethod
    def capabilities_for(cls, preset):
        if not isinstance(preset, str) or preset not in cls.CAPABILITIES:
            raise ValueError(f"Unknown role preset: {preset}")
        return cls.CAPABILITIES[preset]


class User(UserMixin, BaseModel):
    """Operator account (administrator and/or scanner)."""

    __tablename__ = 'users'

    email = db.Column(db.String(120), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    capabilities = db.Column(db.Text, nullable=False, default='[]')  # JSON list
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login = db.Column(db.DateTime)
    password_reset_token = db.Column(db.String(64))
    password_reset_expires = db.Column(db.DateTime)

    def __repr__(self):
        return f'<User {self.email}>'

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def get_capabilities(self):
        """Get the set of capabilities held by this user."""
        if not self.capabilities:
            return frozenset()
        try:
            return frozenset(json.loads(self.capabilities))
        except (TypeError, ValueError):
            return frozenset()

    def set_capabilities(self, capabilities):
        unknown = set(capabilities) - Capability.all()
        if unknown:
            raise ValueError(f"Unknown capabilities: {', '.join(sorted(unknown))}")
        self.capabilities = json.dumps(sorted(capabilities))

    def record_login(self):
        self.last_login = datetime.now()

    def to_dict(self):
        """Override to exclude sensitive data."""
        result = super().to_dict(exclude=('password_hash', 'password_reset_token', 'password_reset_expires'))
        result['capabilities'] = sorted(self.get_capabilities())
        return result
