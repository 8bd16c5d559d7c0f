from types import SimpleNamespace

import pytest

from ingress import create_app
from ingress.extensions import db
from ingress.models.user import RolePreset
from ingress.services.auth_service import AuthService
from ingress.services.event_service import EventService
from ingress.services.roster_store import RosterStore
from ingress.services.token_codec import TokenCodec

PASSWORD = 'secret123'


@pytest.fixture
def app():
    app = create_app('testing')
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def codec(app):
    return TokenCodec.from_config(app.config)


def seed_event(name='Tech Fest', date='2026-03-14', venue='Main Hall', is_active=True, roster=None):
    """Create an event with participants; must run inside an app context."""
    event = EventService.create_event(name=name, date=date, venue=venue, is_active=is_active)['event']
    participants = RosterStore().bulk_insert(event['id'], roster or [])
    return SimpleNamespace(
        id=event['id'],
        name=event['name'],
        participants={p.enrollment: p.id for p in participants}
    )


@pytest.fixture
def seeded(app):
    """Two live events. Asha (21CS001) and Ravi (21CS002) are on the Tech Fest roster."""
    with app.app_context():
        tech_fest = seed_event(roster=[
            {'name': 'Asha', 'enrollment': '21CS001', 'email': 'asha@example.com'},
            {'name': 'Ravi', 'enrollment': '21CS002', 'email': 'ravi@example.com'},
        ])
        hackathon = seed_event(name='Hackathon', venue='Lab 2', roster=[
            {'name': 'Meera', 'enrollment': '21CS050', 'email': ''},
        ])
    return SimpleNamespace(e1=tech_fest, e2=hackathon)


@pytest.fixture
def users(app):
    with app.app_context():
        for email, role in (
            ('admin@example.com', RolePreset.ADMIN),
            ('scanner@example.com', RolePreset.SCANNER),
            ('lead@example.com', RolePreset.ADMIN_SCANNER),
        ):
            AuthService.create_user(email=email, name=email.split('@')[0].title(), password=PASSWORD, role=role)
    return SimpleNamespace(admin='admin@example.com', scanner='scanner@example.com', lead='lead@example.com')


def login(client, email, password=PASSWORD):
    return client.post('/auth/login', json={'email': email, 'password': password})


@pytest.fixture
def admin_client(app, users):
    client = app.test_client()
    assert login(client, users.admin).status_code == 200
    return client


@pytest.fixture
def scanner_client(app, users):
    client = app.test_client()
    assert login(client, users.scanner).status_code == 200
    return client


@pytest.fixture
def lead_client(app, users):
    client = app.test_client()
    assert login(client, users.lead).status_code == 200
    return client
