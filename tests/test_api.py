import io
import zipfile

import pandas as pd

from conftest import login, PASSWORD


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'ok'


def test_database_health(client):
    response = client.get('/health/database')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'


def test_login_and_me(client, users):
    response = login(client, users.lead)
    assert response.status_code == 200
    assert 'scan' in response.get_json()['operator']['capabilities']

    me = client.get('/auth/me').get_json()
    assert me['operator']['email'] == users.lead


def test_login_rejects_bad_password(client, users):
    response = login(client, users.admin, password='wrong-password')
    assert response.status_code == 401
    assert response.get_json()['error_code'] == 'login_failed'


def test_logout(lead_client):
    assert lead_client.post('/auth/logout').status_code == 200
    assert lead_client.get('/auth/me').status_code == 401


def test_anonymous_requests_are_rejected(client, seeded):
    assert client.get('/admin/events').status_code == 401
    assert client.post('/check-in/verify', json={'qr_data': 'x'}).status_code == 401


def test_capabilities_are_enforced(admin_client, scanner_client):
    # admin preset cannot scan, scanner preset cannot manage events
    assert admin_client.get('/check-in/session').status_code == 403
    assert scanner_client.get('/admin/events').status_code == 403
    assert admin_client.post('/admin/users', json={}).status_code == 403


def test_create_and_toggle_event(admin_client):
    response = admin_client.post('/admin/events', json={
        'name': 'Tech Fest', 'date': '2026-03-14', 'venue': 'Main Hall'
    })
    assert response.status_code == 201
    event = response.get_json()['event']
    assert event['status'] == 'LIVE'

    toggled = admin_client.post(f"/admin/events/{event['id']}/toggle")
    assert toggled.get_json()['event']['is_active'] is False
    assert toggled.get_json()['message'] == 'Event marked as completed'

    forced = admin_client.post(f"/admin/events/{event['id']}/toggle", json={'is_active': True})
    assert forced.get_json()['event']['status'] == 'LIVE'


def test_create_event_validates_input(admin_client):
    response = admin_client.post('/admin/events', json={'name': '', 'date': '14/03/2026', 'venue': 'Hall'})

    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'validation_error'
    assert 'Date must be in YYYY-MM-DD format' in response.get_json()['errors']


def test_unknown_event_is_404(admin_client):
    assert admin_client.get('/admin/events/nope').status_code == 404
    assert admin_client.post('/admin/events/nope/toggle').status_code == 404


def test_import_roster_upload(admin_client, seeded):
    data = {'file': (io.BytesIO(b'Name,Enrollment,Email\nKiran,21CS010,k@example.com\n,21CS011,\n'), 'roster.csv')}

    response = admin_client.post(
        f'/admin/events/{seeded.e1.id}/import', data=data, content_type='multipart/form-data'
    )

    body = response.get_json()
    assert response.status_code == 200
    assert body['participants_added'] == 1
    assert body['message'] == 'Imported 1 participants. (Skipped 1 invalid rows)'

    listing = admin_client.get(f'/admin/events/{seeded.e1.id}/participants').get_json()
    assert listing['stats']['total'] == 3


def test_import_rejects_other_file_types(admin_client, seeded):
    data = {'file': (io.BytesIO(b'hello'), 'roster.txt')}

    response = admin_client.post(
        f'/admin/events/{seeded.e1.id}/import', data=data, content_type='multipart/form-data'
    )

    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'invalid_file_type'


def test_participant_qr_png(admin_client, seeded):
    asha_id = seeded.e1.participants['21CS001']

    response = admin_client.get(f'/admin/events/{seeded.e1.id}/participants/{asha_id}/qr.png')

    assert response.status_code == 200
    assert response.mimetype == 'image/png'
    assert response.data[:8] == b'\x89PNG\r\n\x1a\n'


def test_qr_archive(admin_client, seeded):
    response = admin_client.get(f'/admin/events/{seeded.e1.id}/qr.zip')

    assert response.status_code == 200
    with zipfile.ZipFile(io.BytesIO(response.data)) as archive:
        assert sorted(archive.namelist()) == [
            'Tech_Fest/Asha_21CS001.png',
            'Tech_Fest/Ravi_21CS002.png',
        ]


def test_verify_flow(lead_client, seeded, codec):
    e1 = seeded.e1
    asha = codec.encode(e1.id, e1.participants['21CS001'])

    session = lead_client.get('/check-in/session').get_json()
    assert session['state'] == 'scanning'
    assert session['event']['id'] == e1.id

    granted = lead_client.post('/check-in/verify', json={'qr_data': asha, 'device_id': 'gate-1'})
    assert granted.status_code == 200
    assert granted.get_json()['participant']['name'] == 'Asha'
    assert granted.get_json()['status'] == 'granted'

    # Same device, same code, inside the window
    repeat = lead_client.post('/check-in/verify', json={'qr_data': asha, 'device_id': 'gate-1'})
    assert repeat.status_code == 202
    assert repeat.get_json()['error_code'] == 'duplicate_scan'

    # Another gate sees the same code
    other_gate = lead_client.post('/check-in/verify', json={'qr_data': asha, 'device_id': 'gate-2'})
    assert other_gate.status_code == 409
    assert other_gate.get_json()['error_code'] == 'already_checked_in'

    history = lead_client.get('/check-in/history').get_json()['recent_scans']
    assert [scan['status'] for scan in history] == ['Denied', 'Granted']


def test_verify_against_selected_event(lead_client, seeded, codec):
    e1, e2 = seeded.e1, seeded.e2
    asha = codec.encode(e1.id, e1.participants['21CS001'])

    selected = lead_client.post('/check-in/select', json={'event_id': e2.id})
    assert selected.status_code == 200
    assert lead_client.get('/check-in/session').get_json()['event']['id'] == e2.id

    response = lead_client.post('/check-in/verify', json={'qr_data': asha, 'device_id': 'gate-1'})
    assert response.status_code == 409
    assert response.get_json()['error_code'] == 'wrong_event'
    assert response.get_json()['message'] == 'QR code is not valid for Hackathon'


def test_select_inactive_event(lead_client, seeded):
    lead_client.post(f'/admin/events/{seeded.e2.id}/toggle')

    response = lead_client.post('/check-in/select', json={'event_id': seeded.e2.id})

    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'event_not_active'


def test_verify_denials_map_to_status_codes(lead_client, seeded):
    malformed = lead_client.post('/check-in/verify', json={'qr_data': 'not-a-token', 'device_id': 'a'})
    assert malformed.status_code == 400
    assert malformed.get_json()['error_code'] == 'malformed_token'

    forged = f'{{"eventId":"{seeded.e1.id}","participantId":"x","signature":"valid"}}'
    invalid = lead_client.post('/check-in/verify', json={'qr_data': forged, 'device_id': 'b'})
    assert invalid.status_code == 403
    assert invalid.get_json()['error_code'] == 'invalid_signature'

    missing = lead_client.post('/check-in/verify', json={'device_id': 'c'})
    assert missing.status_code == 400


def test_no_active_event(lead_client, seeded, codec):
    for event in (seeded.e1, seeded.e2):
        lead_client.post(f'/admin/events/{event.id}/toggle', json={'is_active': False})

    session = lead_client.get('/check-in/session').get_json()
    assert session['state'] == 'no_active_event'

    response = lead_client.post('/check-in/verify', json={
        'qr_data': codec.encode(seeded.e1.id, seeded.e1.participants['21CS001'])
    })
    assert response.status_code == 409
    assert response.get_json()['error_code'] == 'no_active_event'


def test_export_attendance(lead_client, seeded, codec):
    e1 = seeded.e1
    nothing = lead_client.get(f'/admin/events/{e1.id}/export.xlsx')
    assert nothing.status_code == 400

    lead_client.post('/check-in/verify', json={'qr_data': codec.encode(e1.id, e1.participants['21CS002'])})

    response = lead_client.get(f'/admin/events/{e1.id}/export.xlsx')
    assert response.status_code == 200

    df = pd.read_excel(io.BytesIO(response.data), sheet_name='Attendance')
    assert list(df.columns) == ['Sr No.', 'Name', 'Enrollment', 'Email', 'Checked In At']
    assert df['Name'].tolist() == ['Ravi']


def test_create_operator(lead_client):
    response = lead_client.post('/admin/users', json={
        'email': 'Gate2@Example.com', 'name': 'Gate Two', 'password': PASSWORD, 'role': 'scanner'
    })
    assert response.status_code == 201
    assert response.get_json()['user']['capabilities'] == ['scan']
    assert 'password_hash' not in response.get_json()['user']

    duplicate = lead_client.post('/admin/users', json={
        'email': 'gate2@example.com', 'name': 'Again', 'password': PASSWORD
    })
    assert duplicate.status_code == 400


def test_verify_denies_deeply_nested_payload(lead_client, seeded):
    response = lead_client.post('/check-in/verify', json={'qr_data': '[' * 5000, 'device_id': 'gate-1'})

    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'malformed_token'


def test_non_object_json_bodies_are_treated_as_empty(lead_client, seeded):
    for body in (['x'], 'qr', 42):
        verify = lead_client.post('/check-in/verify', json=body)
        assert verify.status_code == 400
        assert verify.get_json()['error_code'] == 'missing_data'

        select = lead_client.post('/check-in/select', json=body)
        assert select.status_code == 400
        assert select.get_json()['error_code'] == 'missing_event'

    created = lead_client.post('/admin/events', json=['Tech Fest'])
    assert created.status_code == 400
    assert created.get_json()['error_code'] == 'validation_error'

    user = lead_client.post('/admin/users', json=['gate@example.com'])
    assert user.status_code == 400


def test_login_with_non_object_body(client, users):
    response = client.post('/auth/login', json=['admin@example.com', PASSWORD])
    assert response.status_code == 401
