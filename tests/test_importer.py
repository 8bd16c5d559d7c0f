import pandas as pd

from ingress.services.importer import import_roster, map_columns, extract_rows
from ingress.services.roster_store import RosterStore

from conftest import seed_event


def test_map_columns_matches_header_aliases():
    mapping = map_columns(['  Student  Name ', 'Roll No', 'Email ID', 'Phone'])

    assert mapping == {'name': '  Student  Name ', 'enrollment': 'Roll No', 'email': 'Email ID'}


def test_map_columns_reports_missing_fields():
    assert map_columns(['Name', 'Phone'])['enrollment'] is None


def test_extract_rows_cleans_cells_and_counts_skips():
    df = pd.DataFrame({
        'Full Name': ['Asha', '  Ravi  Kumar ', None, 'No Enrollment'],
        'Enrollment Number': [21001.0, '21CS002', '21CS003', None],
        'Email': ['ASHA@Example.com ', None, 'x@example.com', 'y@example.com'],
    })

    rows, skipped = extract_rows(df)

    assert rows == [
        {'name': 'Asha', 'enrollment': '21001', 'email': 'asha@example.com'},
        {'name': 'Ravi Kumar', 'enrollment': '21CS002', 'email': ''},
    ]
    assert skipped == 2


def test_import_csv_roster(app, tmp_path):
    roster = tmp_path / 'roster.csv'
    roster.write_text(
        'Participant Name,Reg No,Contact Email\n'
        'Asha,21CS001,asha@example.com\n'
        'Ravi,21CS002,\n'
        ',21CS003,ghost@example.com\n',
        encoding='utf-8'
    )

    with app.app_context():
        event = seed_event()
        result = import_roster(event.id, str(roster))

        assert result == {'success': True, 'participants_added': 2, 'skipped': 1}

        participants = RosterStore().list_participants(event.id)
        assert sorted(p.enrollment for p in participants) == ['21CS001', '21CS002']
        assert not any(p.checked_in for p in participants)
        assert all(p.checked_in_at is None for p in participants)


def test_import_latin1_csv(app, tmp_path):
    roster = tmp_path / 'roster.csv'
    roster.write_bytes('Name,Enrollment\nJosé,21CS009\n'.encode('latin-1'))

    with app.app_context():
        event = seed_event()
        result = import_roster(event.id, str(roster))
        assert result['participants_added'] == 1
        assert RosterStore().list_participants(event.id)[0].name == 'José'


def test_import_xlsx_roster(app, tmp_path):
    roster = tmp_path / 'roster.xlsx'
    pd.DataFrame({'Name': ['Asha'], 'Enrollment': ['21CS001'], 'Email': ['asha@example.com']}).to_excel(
        roster, index=False
    )

    with app.app_context():
        event = seed_event()
        assert import_roster(event.id, str(roster))['participants_added'] == 1


def test_import_without_recognised_headers_fails(app, tmp_path):
    roster = tmp_path / 'roster.csv'
    roster.write_text('Phone,City\n123,Pune\n', encoding='utf-8')

    with app.app_context():
        event = seed_event()
        result = import_roster(event.id, str(roster))

    assert not result['success']
    assert 'column headers' in result['error']
    assert result['skipped'] == 1


def test_import_into_unknown_event_fails(app, tmp_path):
    roster = tmp_path / 'roster.csv'
    roster.write_text('Name,Enrollment\nAsha,21CS001\n', encoding='utf-8')

    with app.app_context():
        result = import_roster('missing', str(roster))

    assert result['success'] is False
    assert result['error'] == 'Event not found'
