# models/__init__.py
from .base import BaseModel
from .user import User, Capability, RolePreset
from .event import Event
from .participant import Participant

__all__ = [
    'BaseModel',
    'User',
    'Capability',
    'RolePreset',
    'Event',
    'Participant',
]
